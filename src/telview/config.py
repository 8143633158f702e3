"""Typed configuration loader for the telemetry viewer."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .contracts.error import BadInputError

DEFAULT_ENDPOINT = "http://127.0.0.1:8080"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
    raise BadInputError(f"{name} must be boolean")


@dataclass
class PollingPolicy:
    interval: float = 0.5
    live: bool = True
    timeout: float = 2.0

    def validate(self) -> None:
        if self.interval <= 0:
            raise BadInputError("polling.interval must be > 0")
        if self.timeout <= 0:
            raise BadInputError("polling.timeout must be > 0")


@dataclass
class GraphPolicy:
    margin: float = 10.0
    point_size: float = 5.0
    defocus_delay: float = 0.25
    max_idle_passes: int = 2

    def validate(self) -> None:
        if self.margin < 0:
            raise BadInputError("graph.margin must be >= 0")
        if self.point_size <= 0:
            raise BadInputError("graph.point_size must be > 0")
        if self.defocus_delay < 0:
            raise BadInputError("graph.defocus_delay must be >= 0")
        if self.max_idle_passes < 0:
            raise BadInputError("graph.max_idle_passes must be >= 0")


@dataclass
class ViewerConfig:
    endpoint: str = DEFAULT_ENDPOINT
    polling: PollingPolicy = field(default_factory=PollingPolicy)
    graph: GraphPolicy = field(default_factory=GraphPolicy)

    @classmethod
    def load(cls, path: Path | None) -> ViewerConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViewerConfig:
        endpoint = data.get("endpoint", DEFAULT_ENDPOINT)
        if not isinstance(endpoint, str):
            raise BadInputError("endpoint must be a string")

        polling_data = data.get("polling", {})
        if not isinstance(polling_data, dict):
            raise BadInputError("[polling] section must be a table")
        polling_kwargs = dict(polling_data)
        if "live" in polling_kwargs:
            polling_kwargs["live"] = _parse_bool(polling_kwargs["live"], "polling.live")

        graph_data = data.get("graph", {})
        if not isinstance(graph_data, dict):
            raise BadInputError("[graph] section must be a table")

        try:
            polling = PollingPolicy(**polling_kwargs)
            graph = GraphPolicy(**graph_data)
        except TypeError as exc:
            raise BadInputError(f"Unknown configuration key: {exc}") from exc
        return cls(endpoint=endpoint, polling=polling, graph=graph)

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        raw_endpoint = env.get("TELVIEW_ENDPOINT")
        if raw_endpoint is not None:
            self.endpoint = raw_endpoint.strip()

        polling_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "TELVIEW_POLL_INTERVAL": ("interval", float),
            "TELVIEW_TIMEOUT": ("timeout", float),
        }
        for key, (attr, caster) in polling_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.polling, attr, value)

        raw_live = env.get("TELVIEW_LIVE")
        if raw_live is not None:
            try:
                self.polling.live = _parse_bool(raw_live, "TELVIEW_LIVE")
            except BadInputError as exc:
                raise BadInputError(f"Invalid env override TELVIEW_LIVE={raw_live!r}") from exc

    def validate(self) -> None:
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise BadInputError(
                f"endpoint must be an http(s) URL; got {self.endpoint!r}",
                hint="e.g. http://127.0.0.1:8080",
            )
        self.polling.validate()
        self.graph.validate()


DEFAULT_CONFIG = ViewerConfig()


def load_viewer_config(path: str | None) -> ViewerConfig:
    config_path = Path(path) if path else None
    return ViewerConfig.load(config_path)


__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_ENDPOINT",
    "GraphPolicy",
    "PollingPolicy",
    "ViewerConfig",
    "load_viewer_config",
]
