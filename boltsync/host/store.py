"""Filesystem-backed project file store."""

import logging
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional, Union

from ..exceptions import (
    BoltForbiddenError,
    BoltNotFoundError,
    BoltProjectNotFoundError,
    BoltStoreError,
)
from ..ignore import ALWAYS_IGNORED, is_ignored, normalize_relative_path
from ..utils import DEFAULT_CHUNK_SIZE, walk_files, write_atomic
from .ignore_registry import IgnoreRegistry

logger = logging.getLogger(__name__)


class ProjectStore:
    """CRUD over files kept under ``<workspace>/projects/<project>``.

    Every operation consults the registry's current ignore patterns at call
    time, so configuration reloads take effect for the next request.

    Examples:
        >>> store = ProjectStore(Path("/srv/workspace"))
        >>> store.ensure_layout()
        >>> store.list_files("demo")
        ['a.txt', 'src/main.py']
    """

    def __init__(self, workspace: Path, registry: Optional[IgnoreRegistry] = None):
        """Initialize the store.

        Args:
            workspace: Host workspace directory
            registry: Live ignore configuration (a new empty one if omitted)
        """
        self.workspace = Path(workspace)
        self.projects_dir = self.workspace / "projects"
        self.configs_dir = self.workspace / "configs"
        self.registry = registry or IgnoreRegistry()

    def ensure_layout(self) -> None:
        """Create the ``projects`` and ``configs`` directories if missing."""
        self.projects_dir.mkdir(parents=True, exist_ok=True)
        self.configs_dir.mkdir(parents=True, exist_ok=True)

    def project_root(self, project: str) -> Path:
        """Return the root directory of a project.

        Raises:
            BoltProjectNotFoundError: If the ID is not a single path segment
        """
        if (
            not project
            or project in (".", "..")
            or "/" in project
            or "\\" in project
            or "\x00" in project
        ):
            raise BoltProjectNotFoundError("Project not found")
        return self.projects_dir / project

    def exists(self, project: str) -> bool:
        try:
            return self.project_root(project).is_dir()
        except BoltProjectNotFoundError:
            return False

    def _resolve(self, project: str, relative_path: str) -> tuple[Path, str]:
        """Map a project-relative path onto the filesystem.

        Returns:
            Tuple of (absolute path, normalized relative path)

        Raises:
            BoltForbiddenError: If the path escapes the project root
        """
        root = self.project_root(project)
        rel = normalize_relative_path(relative_path)
        if not rel or rel == ".." or rel.startswith("../") or "\x00" in rel:
            raise BoltForbiddenError("Path is outside the project")

        full_path = root / rel
        try:
            full_path.resolve().relative_to(root.resolve())
        except ValueError as e:
            raise BoltForbiddenError("Path is outside the project") from e
        return full_path, rel

    def _check_ignored(self, project: str, rel: str) -> None:
        if is_ignored(rel, self.registry.patterns_for(project)):
            raise BoltForbiddenError("File is ignored")

    def list_files(self, project: str) -> list[str]:
        """List all non-ignored files of a project.

        Raises:
            BoltProjectNotFoundError: If the project root does not exist
            BoltStoreError: If the directory tree cannot be read
        """
        root = self.project_root(project)
        if not root.is_dir():
            raise BoltProjectNotFoundError("Project not found")

        patterns = self.registry.patterns_for(project)
        try:
            files = walk_files(root, skip_dirs=ALWAYS_IGNORED)
        except OSError as e:
            raise BoltStoreError(str(e)) from e

        if patterns:
            files = [f for f in files if not is_ignored(f, patterns)]
        return files

    def read_file(self, project: str, relative_path: str) -> Iterator[bytes]:
        """Open a project file and return an iterator over its content.

        Checks and the open happen before this method returns, so every
        failure is raised here rather than while streaming.

        Raises:
            BoltNotFoundError: If the file does not exist
            BoltForbiddenError: If the path is ignored
            BoltStoreError: If the file cannot be opened
        """
        full_path, rel = self._resolve(project, relative_path)
        if not full_path.is_file():
            raise BoltNotFoundError("File not found")
        self._check_ignored(project, rel)

        try:
            handle = open(full_path, "rb")
        except FileNotFoundError as e:
            raise BoltNotFoundError("File not found") from e
        except OSError as e:
            raise BoltStoreError(str(e)) from e
        return self._stream(handle)

    @staticmethod
    def _stream(handle: BinaryIO) -> Iterator[bytes]:
        with handle:
            while True:
                chunk = handle.read(DEFAULT_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    def write_file(
        self,
        project: str,
        relative_path: str,
        data: Union[bytes, Iterable[bytes]],
    ) -> int:
        """Replace a file's content, creating parent directories as needed.

        Returns:
            Number of bytes written

        Raises:
            BoltProjectNotFoundError: If the project root does not exist
            BoltForbiddenError: If the path is ignored
            BoltStoreError: If the file cannot be written
        """
        if not self.exists(project):
            raise BoltProjectNotFoundError("Project not found")
        full_path, rel = self._resolve(project, relative_path)
        self._check_ignored(project, rel)

        if full_path.is_dir():
            raise BoltStoreError(f"Path is a directory: {rel}")

        chunks = [data] if isinstance(data, bytes) else data
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            written = write_atomic(full_path, chunks)
        except OSError as e:
            raise BoltStoreError(str(e)) from e
        logger.debug("Wrote %s/%s (%d bytes)", project, rel, written)
        return written

    def delete_file(self, project: str, relative_path: str) -> None:
        """Delete a file, or an empty directory.

        Parent directories are left in place even when they become empty.

        Raises:
            BoltNotFoundError: If the path does not exist
            BoltForbiddenError: If the path is ignored
            BoltStoreError: If the path cannot be removed
        """
        full_path, rel = self._resolve(project, relative_path)
        if not full_path.exists() and not full_path.is_symlink():
            raise BoltNotFoundError("File not found")
        self._check_ignored(project, rel)

        try:
            if full_path.is_dir() and not full_path.is_symlink():
                full_path.rmdir()
            else:
                full_path.unlink()
        except FileNotFoundError as e:
            raise BoltNotFoundError("File not found") from e
        except OSError as e:
            raise BoltStoreError(str(e)) from e
        logger.debug("Deleted %s/%s", project, rel)
