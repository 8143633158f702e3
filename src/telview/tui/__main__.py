"""Entry point for ``python -m telview.tui``."""

from __future__ import annotations

from collections.abc import Sequence

from ..cli import main as cli_main


def main(argv: Sequence[str] | None = None) -> int:
    return cli_main(["tui", *(argv or [])])


if __name__ == "__main__":
    raise SystemExit(main())
