"""Host side: project file store and the HTTP application serving it."""

from .app import create_app, run_host
from .ignore_registry import IgnoreConfigHandler, IgnoreConfigWatcher, IgnoreRegistry
from .store import ProjectStore

__all__ = [
    "create_app",
    "run_host",
    "IgnoreConfigHandler",
    "IgnoreConfigWatcher",
    "IgnoreRegistry",
    "ProjectStore",
]
