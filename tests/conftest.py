import os
import sys
from pathlib import Path

import pytest

# Qt widgets render without an attached display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if SRC.exists():
    sys.path.insert(0, str(SRC))

# Register shared Hypothesis profiles for deterministic CI runs and fast local loops.
from tests.util import hypothesis_profiles  # noqa: E402,F401  pylint: disable=unused-import


def pytest_configure(config: pytest.Config) -> None:
    """Keep custom marks registered even when no ini file is picked up."""
    config.addinivalue_line("markers", "qt: PyQt6 dependent tests")
    config.addinivalue_line("markers", "tui: Textual dependent tests")
