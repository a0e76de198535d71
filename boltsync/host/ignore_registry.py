"""Live per-project ignore configuration.

Each project may have ``configs/<project>/.syncignore`` in the host
workspace. The registry keeps the last successfully read pattern list of
every project in an immutable snapshot; writers build a new mapping and
rebind it, so request handlers read without taking a lock.
"""

import logging
import os
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..ignore import IGNORE_FILE_NAME, parse_ignore_file

logger = logging.getLogger(__name__)


class IgnoreRegistry:
    """Copy-on-write mapping of project ID to ignore patterns."""

    def __init__(self) -> None:
        self._snapshot: Mapping[str, tuple[str, ...]] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def snapshot(self) -> Mapping[str, tuple[str, ...]]:
        """Return the current read-only mapping."""
        return self._snapshot

    def patterns_for(self, project: str) -> tuple[str, ...]:
        """Return the current patterns for a project (empty if none)."""
        return self._snapshot.get(project, ())

    def set_patterns(self, project: str, patterns: Iterable[str]) -> None:
        with self._write_lock:
            updated = dict(self._snapshot)
            updated[project] = tuple(patterns)
            self._snapshot = MappingProxyType(updated)
        logger.debug("Ignore patterns for %s: %s", project, updated[project])

    def remove(self, project: str) -> None:
        with self._write_lock:
            if project not in self._snapshot:
                return
            updated = dict(self._snapshot)
            del updated[project]
            self._snapshot = MappingProxyType(updated)
        logger.debug("Ignore patterns for %s removed", project)

    def reload(self, project: str, ignore_file: Path) -> None:
        """Re-read a project's ignore file.

        A read failure removes the project's entry, which leaves the project
        unfiltered until the file becomes readable again.
        """
        try:
            text = ignore_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s, dropping its patterns: %s", ignore_file, e)
            self.remove(project)
            return
        self.set_patterns(project, parse_ignore_file(text))


class IgnoreConfigHandler(FileSystemEventHandler):
    """Routes watchdog events under the configs directory into the registry."""

    def __init__(self, registry: IgnoreRegistry, configs_dir: Path):
        super().__init__()
        self.registry = registry
        self.configs_dir = configs_dir

    def _project_for(self, raw_path: "str | bytes") -> Optional[str]:
        """Return the project ID a path belongs to, if it is an ignore file."""
        try:
            rel = Path(os.fsdecode(raw_path)).relative_to(self.configs_dir)
        except ValueError:
            return None
        if len(rel.parts) == 2 and rel.parts[1] == IGNORE_FILE_NAME:
            return rel.parts[0]
        return None

    def _reload(self, raw_path: "str | bytes") -> None:
        project = self._project_for(raw_path)
        if project is not None:
            self.registry.reload(project, Path(os.fsdecode(raw_path)))

    def _forget(self, raw_path: "str | bytes", is_directory: bool) -> None:
        if is_directory:
            # A removed configs/<project> directory takes its ignore file along
            try:
                rel = Path(os.fsdecode(raw_path)).relative_to(self.configs_dir)
            except ValueError:
                return
            if len(rel.parts) == 1:
                self.registry.remove(rel.parts[0])
            return
        project = self._project_for(raw_path)
        if project is not None:
            self.registry.remove(project)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._reload(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._reload(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forget(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._forget(event.src_path, event.is_directory)
        if not event.is_directory:
            self._reload(event.dest_path)
            return
        # A project directory moved in brings its ignore file without a file event
        try:
            rel = Path(os.fsdecode(event.dest_path)).relative_to(self.configs_dir)
        except ValueError:
            return
        if len(rel.parts) == 1:
            ignore_file = self.configs_dir / rel / IGNORE_FILE_NAME
            if ignore_file.is_file():
                self.registry.reload(rel.parts[0], ignore_file)


class IgnoreConfigWatcher:
    """Loads existing ignore files and keeps watching for changes."""

    def __init__(self, registry: IgnoreRegistry, configs_dir: Path):
        self.registry = registry
        self.configs_dir = configs_dir.resolve()
        self._observer: Optional[Observer] = None

    def load_existing(self) -> None:
        """Load every ``configs/*/.syncignore`` present right now."""
        for ignore_file in sorted(self.configs_dir.glob(f"*/{IGNORE_FILE_NAME}")):
            if ignore_file.is_file():
                self.registry.reload(ignore_file.parent.name, ignore_file)

    def start(self) -> None:
        self.load_existing()
        handler = IgnoreConfigHandler(self.registry, self.configs_dir)
        observer = Observer()
        observer.schedule(handler, str(self.configs_dir), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug("Watching %s for ignore file changes", self.configs_dir)

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
