"""PyQt6 desktop front end."""

from .app import ViewerWindow, run_desktop
from .controller import DesktopController

__all__ = ["DesktopController", "ViewerWindow", "run_desktop"]
