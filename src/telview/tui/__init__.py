"""Terminal front end built on Textual."""

from .app import TelviewApp, run_tui

__all__ = ["TelviewApp", "run_tui"]
