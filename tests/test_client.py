from __future__ import annotations

import asyncio
import gzip
import io
from email.message import Message
from typing import Any
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

from telview.client import ApiClient
from telview.contracts.error import BadInputError, FetchError
from telview.core.wire import Timestamp


class DummyResponse:
    def __init__(self, payload: bytes, headers: dict[str, str] | None = None) -> None:
        self._payload = payload
        self.headers = headers or {}

    def __enter__(self) -> "DummyResponse":
        return self

    def __exit__(self, *_: Any) -> None:
        return None

    def read(self, _limit: int = -1) -> bytes:
        return self._payload


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


def test_rejects_bad_endpoints() -> None:
    with pytest.raises(BadInputError):
        ApiClient("ftp://example.com")
    with pytest.raises(BadInputError):
        ApiClient("http://")


def test_base_url_normalised() -> None:
    assert ApiClient(" http://host:8080/viewer/ ").base_url == "http://host:8080/viewer/"


def test_traces_decodes_tagged_values() -> None:
    body = b'{"t1": {"spans": {}, "start": {"_ts": "5"}, "n": {"_int": "9007199254740993"}}}'
    urlopen = MagicMock(return_value=DummyResponse(body))
    with patch("telview.client.urlopen", urlopen):
        payload = _run(ApiClient("http://host").traces())
    assert payload["t1"]["start"] == Timestamp(5)
    assert payload["t1"]["n"] == 9007199254740993
    request = urlopen.call_args.args[0]
    assert request.full_url == "http://host/api/traces"
    assert request.get_method() == "GET"


def test_paths_are_quoted() -> None:
    urlopen = MagicMock(return_value=DummyResponse(b"{}"))
    client = ApiClient("http://host/base")
    with patch("telview.client.urlopen", urlopen):
        _run(client.span("a b", "c/d"))
        _run(client.log(7))
        _run(client.metric("m 1"))
    urls = [call.args[0].full_url for call in urlopen.call_args_list]
    assert urls == [
        "http://host/base/api/span/a%20b/c/d",
        "http://host/base/api/log/7",
        "http://host/base/api/metric/m%201",
    ]


def test_gzip_body_is_decompressed() -> None:
    body = gzip.compress(b'[{"id": 1}]')
    response = DummyResponse(body, {"Content-Encoding": "gzip"})
    with patch("telview.client.urlopen", MagicMock(return_value=response)):
        assert _run(ApiClient("http://host").logs()) == [{"id": 1}]


@pytest.mark.parametrize(
    "body",
    [gzip.compress(b'[{"id": 1}]')[:-12], b"\x1f\x8b\x08\x00" + b"\x00" * 6 + b"not deflate"],
)
def test_corrupt_gzip_body_is_fetch_error(body: bytes) -> None:
    response = DummyResponse(body, {"Content-Encoding": "gzip"})
    with patch("telview.client.urlopen", MagicMock(return_value=response)):
        with pytest.raises(FetchError):
            _run(ApiClient("http://host").traces())


def test_empty_list_endpoints_default() -> None:
    with patch("telview.client.urlopen", MagicMock(return_value=DummyResponse(b""))):
        client = ApiClient("http://host")
        assert _run(client.logs()) == []
        assert _run(client.metrics()) == {}


def test_http_error_carries_status() -> None:
    error = HTTPError("http://host/api/span/a/b", 404, "Not Found", Message(), io.BytesIO(b""))
    with patch("telview.client.urlopen", MagicMock(side_effect=error)):
        with pytest.raises(FetchError) as info:
            _run(ApiClient("http://host").span("a", "b"))
    assert info.value.status_code == 404
    assert "404" in str(info.value)


def test_connection_error_becomes_fetch_error() -> None:
    with patch("telview.client.urlopen", MagicMock(side_effect=URLError("refused"))):
        with pytest.raises(FetchError) as info:
            _run(ApiClient("http://host").metrics())
    assert info.value.status_code is None


def test_malformed_json_becomes_fetch_error() -> None:
    with patch("telview.client.urlopen", MagicMock(return_value=DummyResponse(b"{oops"))):
        with pytest.raises(FetchError, match="Malformed"):
            _run(ApiClient("http://host").traces())


def test_reset_posts() -> None:
    urlopen = MagicMock(return_value=DummyResponse(b""))
    with patch("telview.client.urlopen", urlopen):
        _run(ApiClient("http://host").reset())
    request = urlopen.call_args.args[0]
    assert request.get_method() == "POST"
    assert request.full_url == "http://host/api/reset"
