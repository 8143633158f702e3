"""Command line entry points: ``telview tui``, ``telview desktop`` and ``telview reset``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler

from .client import ApiClient
from .config import ViewerConfig, load_viewer_config
from .contracts.error import BadInputError, Exit, guard_cli

logger = logging.getLogger("telview")

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    console: bool = True,
    level: int = logging.INFO,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Configure console (and optional rotating file) logging on the ``telview`` logger.

    The terminal viewer owns the screen, so it runs with ``console=False``;
    without a log file its records are then dropped.
    """

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)

    for handler in list(logger.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        logger.removeHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--endpoint", default=None, help="Viewer backend base URL (default: config or http://127.0.0.1:8080)")
    parser.add_argument("--config", default=None, help="TOML configuration file")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON objects")
    parser.add_argument("--log-file", default=None, help="Also write logs to a rotating file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")


def _add_polling(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between refreshes while live (default: 0.5)",
    )
    parser.add_argument("--no-live", action="store_true", help="Start with live updates paused")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="telview",
        description="Browse traces, logs and metrics collected by a telemetry viewer backend.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    tui = sub.add_parser("tui", help="Terminal viewer (Textual)")
    _add_common(tui)
    _add_polling(tui)
    tui.set_defaults(func=cmd_tui)

    desktop = sub.add_parser("desktop", help="Desktop viewer (PyQt6)")
    _add_common(desktop)
    _add_polling(desktop)
    desktop.set_defaults(func=cmd_desktop)

    reset = sub.add_parser("reset", help="Drop everything the backend has stored")
    _add_common(reset)
    reset.set_defaults(func=cmd_reset)
    return parser


def resolve_config(args: argparse.Namespace) -> ViewerConfig:
    """Config file and environment first, then command line flags on top."""

    cfg = load_viewer_config(args.config)
    if args.endpoint:
        cfg.endpoint = args.endpoint.strip()
    interval = getattr(args, "poll_interval", None)
    if interval is not None:
        cfg.polling.interval = interval
    if getattr(args, "no_live", False):
        cfg.polling.live = False
    cfg.validate()
    return cfg


def _setup_logging(args: argparse.Namespace, *, console: bool = True) -> None:
    configure_logging(
        use_json=args.log_json,
        log_file=args.log_file,
        console=console,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )


@guard_cli
def cmd_tui(args: argparse.Namespace) -> int:
    _setup_logging(args, console=False)
    cfg = resolve_config(args)
    from .tui.app import run_tui

    try:
        run_tui(cfg)
    except ImportError as exc:
        raise BadInputError(str(exc), hint="pip install textual") from exc
    return int(Exit.OK)


@guard_cli
def cmd_desktop(args: argparse.Namespace) -> int:
    _setup_logging(args)
    cfg = resolve_config(args)
    from .desktop.app import run_desktop

    try:
        return run_desktop(cfg)
    except RuntimeError as exc:
        raise BadInputError(str(exc), hint="pip install PyQt6") from exc


@guard_cli
def cmd_reset(args: argparse.Namespace) -> int:
    _setup_logging(args)
    cfg = resolve_config(args)
    client = ApiClient(cfg.endpoint, timeout=cfg.polling.timeout)
    asyncio.run(client.reset())
    logger.info("Reset %s", cfg.endpoint)
    return int(Exit.OK)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    return int(args.func(args))


def console_main() -> None:
    sys.exit(main())


__all__ = [
    "JsonFormatter",
    "build_parser",
    "configure_logging",
    "console_main",
    "main",
    "resolve_config",
]
