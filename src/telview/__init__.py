"""Terminal and desktop viewer for traces, logs and metrics."""

from . import client, config, contracts, core, polling, session, views

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "client",
    "config",
    "contracts",
    "core",
    "polling",
    "session",
    "views",
]
