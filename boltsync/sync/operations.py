"""Sync operations wrapper for unified upload/download interface."""

import logging
from pathlib import Path
from typing import Iterable

from ..api import BoltClient
from ..exceptions import BoltLocalIOError
from .scanner import LocalFile

logger = logging.getLogger(__name__)


class SyncOperations:
    """Unified transfer operations for one remote project."""

    def __init__(self, client: BoltClient, project: str):
        """Initialize sync operations.

        Args:
            client: Host API client
            project: Remote project ID
        """
        self.client = client
        self.project = project

    def upload_file(self, local_file: LocalFile) -> None:
        """Upload a local file, replacing the remote content wholesale."""
        self.client.put_file(self.project, local_file.relative_path, local_file.path)

    def download_file(self, relative_path: str, local_path: Path) -> int:
        """Download a remote file to local storage.

        Args:
            relative_path: Project-relative path of the remote file
            local_path: Local path where the file should be saved

        Returns:
            Number of bytes written
        """
        return self.client.download_file(self.project, relative_path, local_path)

    def delete_remote(self, relative_path: str) -> None:
        """Delete a remote file (or directory) as-is."""
        self.client.delete_file(self.project, relative_path)

    def delete_local(self, local_file: LocalFile) -> None:
        """Delete a local file.

        Raises:
            BoltLocalIOError: If the file cannot be removed
        """
        try:
            local_file.path.unlink()
        except FileNotFoundError:
            logger.debug("Already gone: %s", local_file.path)
        except OSError as e:
            raise BoltLocalIOError(f"Failed to delete {local_file.path}: {e}") from e

    def prune_empty_dirs(self, root: Path, removed: Iterable[Path]) -> list[Path]:
        """Remove directories left empty by deleting ``removed``.

        Only ancestors of removed files strictly below ``root`` are
        considered, deepest first, so a parent is checked after its
        children have been pruned.

        Returns:
            Directories that were removed
        """
        candidates: set[Path] = set()
        for path in removed:
            for parent in path.parents:
                if parent == root or root not in parent.parents:
                    break
                candidates.add(parent)

        pruned: list[Path] = []
        for directory in sorted(candidates, key=lambda p: len(p.parts), reverse=True):
            try:
                if directory.is_dir() and not any(directory.iterdir()):
                    directory.rmdir()
                    pruned.append(directory)
            except OSError as e:
                raise BoltLocalIOError(f"Failed to remove {directory}: {e}") from e
        return pruned
