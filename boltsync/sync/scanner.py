"""Directory scanning utilities for sync operations."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import BoltLocalIOError
from ..ignore import (
    ALWAYS_IGNORED,
    in_subset,
    is_always_ignored,
    normalize_relative_path,
    normalize_subset,
)
from ..utils import walk_files

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime_ns: int
    """Last modification time in nanoseconds"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime_ns=stat.st_mtime_ns,
        )

    @property
    def signature(self) -> tuple[int, int]:
        """(size, mtime_ns) pair used to recognise unchanged files."""
        return (self.size, self.mtime_ns)


class DirectoryScanner:
    """Scans a local tree and decides which relative paths are in scope.

    A path is in scope iff none of its segments is always-ignored and, when
    a subset is configured, it starts with the normalized subset prefix.

    Examples:
        >>> scanner = DirectoryScanner(subset="src")
        >>> scanner.is_eligible("src/app.py")
        True
        >>> scanner.is_eligible(".git/config")
        False
    """

    def __init__(self, subset: Optional[str] = None):
        """Initialize directory scanner.

        Args:
            subset: Optional path prefix limiting the scan
        """
        self.prefix = normalize_subset(subset)

    def is_eligible(self, relative_path: str) -> bool:
        rel = normalize_relative_path(relative_path)
        if not rel or is_always_ignored(rel):
            return False
        return in_subset(rel, self.prefix)

    def scan_local(self, directory: Path) -> list[LocalFile]:
        """List every in-scope file below ``directory``.

        Always-ignored directories are pruned before descending.

        Raises:
            BoltLocalIOError: If the directory cannot be read
        """
        try:
            relative_paths = walk_files(directory, skip_dirs=ALWAYS_IGNORED)
        except OSError as e:
            raise BoltLocalIOError(f"Cannot scan {directory}: {e}") from e

        files: list[LocalFile] = []
        for rel in relative_paths:
            if not self.is_eligible(rel):
                continue
            try:
                files.append(LocalFile.from_path(directory / rel, directory))
            except FileNotFoundError:
                # Removed between listing and stat
                logger.debug("Skipping vanished file %s", rel)
        return files
