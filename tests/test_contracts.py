from __future__ import annotations

import json

import pytest

from telview.contracts.error import (
    BadInputError,
    ErrorEnvelope,
    Exit,
    FetchError,
    MetricDecodeError,
    WireDecodeError,
    guard_cli,
)


def test_envelope_json_omits_empty_hint() -> None:
    assert json.loads(ErrorEnvelope("Fetch", "down").to_json()) == {"error": "Fetch", "detail": "down"}
    payload = json.loads(ErrorEnvelope("Fetch", "down", hint="start the backend").to_json())
    assert payload["hint"] == "start the backend"


@pytest.mark.parametrize(
    ("exc", "code", "label"),
    [
        (BadInputError("bad flag", hint="see --help"), Exit.BAD_INPUT, "BadInput"),
        (FetchError("refused", status_code=None), Exit.FETCH, "Fetch"),
        (WireDecodeError("bad tag"), Exit.DECODE, "WireDecode"),
        (MetricDecodeError("bad type"), Exit.DECODE, "MetricDecode"),
    ],
)
def test_guard_cli_maps_exceptions(
    exc: Exception, code: Exit, label: str, capsys: pytest.CaptureFixture[str]
) -> None:
    @guard_cli
    def handler() -> int:
        raise exc

    with pytest.raises(SystemExit) as info:
        handler()
    assert info.value.code == int(code)
    payload = json.loads(capsys.readouterr().err.strip())
    assert payload["error"] == label
    assert payload["detail"] == str(exc)


def test_guard_cli_file_not_found(capsys: pytest.CaptureFixture[str]) -> None:
    @guard_cli
    def handler() -> int:
        raise FileNotFoundError("missing.toml")

    with pytest.raises(SystemExit) as info:
        handler()
    assert info.value.code == Exit.BAD_INPUT
    assert json.loads(capsys.readouterr().err)["error"] == "FileNotFound"


def test_guard_cli_passes_results_through() -> None:
    @guard_cli
    def handler(value: int) -> int:
        return value * 2

    assert handler(21) == 42
