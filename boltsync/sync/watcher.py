"""Watch session mirroring local filesystem changes to a remote project.

The watchdog handler only enqueues change events into a bounded queue.
A single dispatcher thread consumes the queue and performs one remote
operation per event; a failure is reported and the loop carries on.
"""

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..api import BoltClient
from ..exceptions import BoltNotFoundError
from ..output import OutputFormatter
from ..utils import DEFAULT_EVENT_QUEUE_SIZE
from .operations import SyncOperations
from .scanner import DirectoryScanner, LocalFile

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """What happened to a local path."""

    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    path: Path


class LocalChangeHandler(FileSystemEventHandler):
    """Translates watchdog events into queued change events.

    ``put`` blocks while the queue is full, which holds back the observer
    thread instead of dropping events.
    """

    def __init__(self, events: "queue.Queue[Optional[ChangeEvent]]"):
        super().__init__()
        self.events = events

    def _enqueue(self, kind: ChangeKind, raw_path: "str | bytes") -> None:
        self.events.put(ChangeEvent(kind, Path(os.fsdecode(raw_path))))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._enqueue(ChangeKind.UPSERT, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._enqueue(ChangeKind.UPSERT, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._enqueue(ChangeKind.DELETE, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._enqueue(ChangeKind.DELETE, event.src_path)
        if not event.is_directory:
            self._enqueue(ChangeKind.UPSERT, event.dest_path)


class WatchSync:
    """One running watch session bound to a project and a local directory.

    Examples:
        >>> session = WatchSync(client, "demo", Path("./demo"), subset="src")
        >>> session.push_all()
        >>> session.run_forever()
    """

    def __init__(
        self,
        client: BoltClient,
        project: str,
        local_path: Path,
        subset: Optional[str] = None,
        output: Optional[OutputFormatter] = None,
        baseline: Optional[Mapping[str, tuple[int, int]]] = None,
        queue_size: int = DEFAULT_EVENT_QUEUE_SIZE,
    ):
        """Initialize the watch session.

        Args:
            client: Host API client
            project: Remote project ID
            local_path: Local directory to mirror
            subset: Optional path prefix limiting what is mirrored
            output: Output formatter for progress/status messages
            baseline: (size, mtime_ns) per relative path of files written by
                a preceding copy; a matching first event for such a file is
                not uploaded back
            queue_size: Maximum number of pending change events
        """
        self.client = client
        self.project = project
        self.local_path = Path(local_path).resolve()
        self.scanner = DirectoryScanner(subset)
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(client, project)
        self.events: "queue.Queue[Optional[ChangeEvent]]" = queue.Queue(
            maxsize=queue_size
        )
        self._baseline = dict(baseline or {})
        self._observer: Optional[Observer] = None
        self._dispatcher: Optional[threading.Thread] = None

    def push_all(self) -> int:
        """Upload every in-scope local file, one request per file.

        Returns:
            Number of files pushed

        Raises:
            BoltAPIError: On the first failure, aborting the push
        """
        files = self.scanner.scan_local(self.local_path)
        for local_file in files:
            self.operations.upload_file(local_file)
            self.output.success(f"Pushed {local_file.relative_path}")
        return len(files)

    def relative_path(self, path: Path) -> Optional[str]:
        """Return ``path`` relative to the watched root, or None if outside."""
        try:
            rel = path.relative_to(self.local_path).as_posix()
        except ValueError:
            return None
        return None if rel in ("", ".") else rel

    def _matches_baseline(self, rel: str, local_file: LocalFile) -> bool:
        expected = self._baseline.pop(rel, None)
        return expected is not None and expected == local_file.signature

    def handle_event(self, event: ChangeEvent) -> bool:
        """Mirror one change event to the remote project.

        Returns:
            True if a remote operation was performed successfully
        """
        rel = self.relative_path(event.path)
        if rel is None or not self.scanner.is_eligible(rel):
            return False

        try:
            if event.kind is ChangeKind.DELETE:
                try:
                    self.operations.delete_remote(rel)
                except BoltNotFoundError:
                    # Editors delete temp files that were never uploaded
                    logger.debug("Remote %s already absent, nothing to delete", rel)
                    return False
                self.output.info(f"Deleted {rel}")
                return True

            if not event.path.is_file():
                # Gone again, or not a regular file
                return False
            local_file = LocalFile.from_path(event.path, self.local_path)
            if self._matches_baseline(rel, local_file):
                logger.debug("Skipping %s, unchanged since copy", rel)
                return False
            self.operations.upload_file(local_file)
            self.output.success(f"Synced {rel}")
            return True
        except Exception as e:
            self.output.error(f"Error syncing {rel}: {e}")
            logger.debug("Event %s on %s failed", event.kind.value, rel, exc_info=True)
            return False

    def _dispatch_loop(self) -> None:
        while True:
            event = self.events.get()
            try:
                if event is None:
                    return
                self.handle_event(event)
            finally:
                self.events.task_done()

    def start(self) -> None:
        """Start the dispatcher thread and the filesystem observer."""
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="boltsync-dispatch", daemon=True
        )
        self._dispatcher.start()

        observer = Observer()
        observer.schedule(
            LocalChangeHandler(self.events), str(self.local_path), recursive=True
        )
        observer.start()
        self._observer = observer
        logger.debug("Watching %s", self.local_path)

    def stop(self) -> None:
        """Stop observing and let the dispatcher drain pending events."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._dispatcher is not None:
            self.events.put(None)
            self._dispatcher.join()
            self._dispatcher = None

    def run_forever(self) -> None:
        """Watch until the process is interrupted."""
        self.start()
        self.output.info("Watching for file changes... Press Ctrl+C to stop")
        try:
            while True:
                time.sleep(1)
        finally:
            self.stop()


def sync_project(
    project: str,
    host: str,
    secret: str,
    local_path: Path,
    push_all: bool = False,
    subset: Optional[str] = None,
    output: Optional[OutputFormatter] = None,
    baseline: Optional[Mapping[str, tuple[int, int]]] = None,
) -> None:
    """Optionally push everything, then mirror local changes forever."""
    with BoltClient(host, secret) as client:
        session = WatchSync(
            client,
            project,
            Path(local_path),
            subset=subset,
            output=output,
            baseline=baseline,
        )
        if push_all:
            session.push_all()
        session.run_forever()
