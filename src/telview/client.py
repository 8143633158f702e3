"""Async wrappers around the viewer backend's JSON API."""

from __future__ import annotations

import asyncio
import gzip
import logging
import zlib
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urljoin, urlparse
from urllib.request import Request, urlopen

from .contracts.error import BadInputError, FetchError, WireDecodeError
from .core.wire import decode_json

logger = logging.getLogger(__name__)

_CLIENT_USER_AGENT = "telview/1.0"
_MAX_RESPONSE_BYTES = 64 * 1024 * 1024


def _build_base_url(endpoint: str) -> str:
    parsed = urlparse(endpoint.strip())
    if parsed.scheme.lower() not in {"http", "https"}:
        raise BadInputError(f"Unsupported endpoint scheme {parsed.scheme!r} (allowed: http, https)")
    if not parsed.netloc:
        raise BadInputError("Endpoint must include a host")
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path.rstrip('/')}/"


class ApiClient:
    """Fetch and decode API resources; every call raises :class:`FetchError` on failure."""

    def __init__(self, endpoint: str, timeout: float = 2.0) -> None:
        self.base_url = _build_base_url(endpoint)
        self.timeout = timeout

    def _request(self, path: str, method: str = "GET") -> bytes:
        if not path.startswith("/"):
            raise ValueError(f"Expected path starting with '/'; got {path!r}")
        target = urljoin(self.base_url, path.lstrip("/"))
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "User-Agent": _CLIENT_USER_AGENT,
        }
        req = Request(target, headers=headers, method=method)  # noqa: S310  # nosec B310
        try:
            with urlopen(req, timeout=self.timeout) as resp:  # noqa: S310  # nosec B310
                payload = resp.read(_MAX_RESPONSE_BYTES + 1)
                if len(payload) > _MAX_RESPONSE_BYTES:
                    raise FetchError(f"Response from {path} exceeds {_MAX_RESPONSE_BYTES} bytes")
                if resp.headers.get("Content-Encoding", "").lower() == "gzip":
                    payload = gzip.decompress(payload)
        except HTTPError as exc:
            raise FetchError(f"Request returned code {exc.code}", status_code=exc.code) from exc
        except (EOFError, zlib.error) as exc:
            raise FetchError(f"Corrupt gzip body from {target}: {exc}") from exc
        except (URLError, TimeoutError, ConnectionError, OSError) as exc:
            raise FetchError(f"Request to {target} failed: {exc}") from exc
        return payload

    def _get_sync(self, path: str) -> Any:
        payload = self._request(path)
        if not payload:
            return None
        try:
            return decode_json(payload)
        except WireDecodeError as exc:
            raise FetchError(f"Malformed response from {path}: {exc}") from exc

    async def get(self, path: str) -> Any:
        loop = asyncio.get_running_loop()
        logger.debug("GET %s", path)
        return await loop.run_in_executor(None, self._get_sync, path)

    async def post(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: self._request(path, method="POST"))

    async def traces(self) -> dict[str, Any]:
        return await self.get("/api/traces") or {}

    async def span(self, trace_id: str, span_id: str) -> dict[str, Any]:
        return await self.get(f"/api/span/{quote(trace_id)}/{quote(span_id)}")

    async def logs(self) -> list[dict[str, Any]]:
        return await self.get("/api/logs") or []

    async def log(self, log_id: int) -> dict[str, Any]:
        return await self.get(f"/api/log/{int(log_id)}")

    async def metrics(self) -> dict[str, Any]:
        return await self.get("/api/metrics") or {}

    async def metric(self, metric_id: str) -> dict[str, Any]:
        return await self.get(f"/api/metric/{quote(metric_id)}")

    async def reset(self) -> None:
        await self.post("/api/reset")


__all__ = ["ApiClient"]
