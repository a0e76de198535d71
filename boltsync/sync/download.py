"""Copy engine: pull a clean copy of a remote project."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..api import BoltClient
from ..exceptions import BoltAPIError, BoltLocalIOError
from ..ignore import normalize_relative_path
from ..output import OutputFormatter
from ..utils import DEFAULT_TRANSFER_LIMIT, format_size
from .operations import SyncOperations
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


@dataclass
class CopyResult:
    """Outcome of a copy operation."""

    downloaded: list[str] = field(default_factory=list)
    """Relative paths that were downloaded"""

    removed: list[str] = field(default_factory=list)
    """Relative paths deleted locally by ``clean``"""

    bytes_downloaded: int = 0

    baseline: dict[str, tuple[int, int]] = field(default_factory=dict)
    """(size, mtime_ns) of every downloaded file right after it was written"""


class CopyEngine:
    """Downloads a remote project into a local directory.

    Examples:
        >>> engine = CopyEngine(client, "demo")
        >>> result = engine.copy_project(Path("./demo"), clean=True)
        >>> print(f"Downloaded {len(result.downloaded)} files")
    """

    def __init__(
        self,
        client: BoltClient,
        project: str,
        output: Optional[OutputFormatter] = None,
        max_workers: int = DEFAULT_TRANSFER_LIMIT,
    ):
        """Initialize copy engine.

        Args:
            client: Host API client
            project: Remote project ID
            output: Output formatter for displaying progress/status
            max_workers: Maximum simultaneous downloads (default: 5)
        """
        self.client = client
        self.project = project
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(client, project)
        self.max_workers = max_workers

    def copy_project(
        self,
        local_path: Path,
        clean: bool = False,
        subset: Optional[str] = None,
    ) -> CopyResult:
        """Copy the remote project into ``local_path``.

        The first failed download fails the whole copy: downloads not yet
        started are skipped, running ones finish, and the first error is
        re-raised.

        Args:
            local_path: Local directory (created if missing)
            clean: Remove local files that are absent remotely
            subset: Optional path prefix limiting the copy and the cleanup

        Returns:
            CopyResult describing what changed

        Raises:
            BoltAPIError: On the first transfer or filesystem failure
        """
        try:
            local_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BoltLocalIOError(f"Cannot create {local_path}: {e}") from e

        scanner = DirectoryScanner(subset)
        remote_files = self.client.list_files(self.project)
        if scanner.prefix is not None:
            remote_files = [f for f in remote_files if scanner.is_eligible(f)]
        logger.debug("Copying %d file(s) from %s", len(remote_files), self.project)

        targets = self._plan_targets(local_path, remote_files)
        result = CopyResult()
        self._download_all(targets, result)

        if clean:
            result.removed = self._clean(local_path, set(remote_files), scanner)

        if not self.output.quiet:
            self.output.info(
                f"Downloaded {len(result.downloaded)} file(s) "
                f"({format_size(result.bytes_downloaded)})"
            )
            if result.removed:
                self.output.info(f"Removed {len(result.removed)} local file(s)")
        return result

    def _plan_targets(
        self, local_path: Path, remote_files: list[str]
    ) -> list[tuple[str, Path]]:
        """Map remote paths onto local targets, rejecting escapes."""
        root = local_path.resolve()
        targets = []
        for rel in remote_files:
            normalized = normalize_relative_path(rel)
            if not normalized or normalized == ".." or normalized.startswith("../"):
                raise BoltAPIError(f"Refusing to write outside {local_path}: {rel}")
            targets.append((rel, root / normalized))
        return targets

    def _download_all(
        self, targets: list[tuple[str, Path]], result: CopyResult
    ) -> None:
        """Download all targets with bounded parallelism."""
        stop = threading.Event()
        first_error: Optional[BaseException] = None

        def download(rel: str, target: Path) -> Optional[tuple[str, int, tuple]]:
            if stop.is_set():
                return None
            start = time.time()
            try:
                size = self.operations.download_file(rel, target)
            except BaseException:
                stop.set()
                raise
            stat = target.stat()
            logger.debug("Download of %s took %.2fs", rel, time.time() - start)
            self.output.success(f"✓ Downloaded {rel}")
            return rel, size, (stat.st_size, stat.st_mtime_ns)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(download, rel, target): rel for rel, target in targets
            }
            for future in as_completed(futures):
                try:
                    outcome = future.result()
                except Exception as e:
                    if first_error is None:
                        first_error = e
                        self.output.error(f"Failed to download {futures[future]}: {e}")
                    continue
                if outcome is None:
                    continue
                rel, size, signature = outcome
                result.downloaded.append(rel)
                result.bytes_downloaded += size
                result.baseline[normalize_relative_path(rel)] = signature

        result.downloaded.sort()
        if first_error is not None:
            raise first_error

    def _clean(
        self, local_path: Path, keep: set[str], scanner: DirectoryScanner
    ) -> list[str]:
        """Delete in-scope local files missing from ``keep``."""
        keep = {normalize_relative_path(f) for f in keep}
        root = local_path.resolve()
        removed: list[str] = []
        removed_paths: list[Path] = []

        for local_file in scanner.scan_local(root):
            if local_file.relative_path in keep:
                continue
            self.operations.delete_local(local_file)
            removed.append(local_file.relative_path)
            removed_paths.append(local_file.path)
            logger.debug("Removed stale file %s", local_file.relative_path)

        self.operations.prune_empty_dirs(root, removed_paths)
        return removed


def copy_project(
    project: str,
    host: str,
    secret: str,
    local_path: Path,
    clean: bool = False,
    subset: Optional[str] = None,
    output: Optional[OutputFormatter] = None,
) -> CopyResult:
    """Download a remote project into ``local_path``.

    Convenience wrapper that creates and closes its own client.
    """
    with BoltClient(host, secret) as client:
        engine = CopyEngine(client, project, output=output)
        return engine.copy_project(Path(local_path), clean=clean, subset=subset)
