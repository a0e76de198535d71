"""Client-side sync: bulk copy from the host and watch-driven upload."""

from .download import CopyEngine, CopyResult, copy_project
from .operations import SyncOperations
from .scanner import DirectoryScanner, LocalFile
from .watcher import ChangeEvent, ChangeKind, LocalChangeHandler, WatchSync, sync_project

__all__ = [
    "CopyEngine",
    "CopyResult",
    "copy_project",
    "SyncOperations",
    "DirectoryScanner",
    "LocalFile",
    "ChangeEvent",
    "ChangeKind",
    "LocalChangeHandler",
    "WatchSync",
    "sync_project",
]
