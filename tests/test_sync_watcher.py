"""Tests for the watch session."""

import queue
import time
from unittest.mock import Mock, call, patch

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from boltsync.api import BoltClient
from boltsync.exceptions import BoltConnectivityError, BoltForbiddenError
from boltsync.sync import (
    ChangeEvent,
    ChangeKind,
    LocalChangeHandler,
    WatchSync,
    sync_project,
)
from boltsync.sync.scanner import DirectoryScanner

SECRET = "test-secret"


@pytest.fixture
def session(client, quiet_output, local_dir):
    return WatchSync(client, "demo", local_dir, output=quiet_output)


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def write(root, rel, content=b"x"):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class TestDirectoryScanner:
    """Tests for DirectoryScanner eligibility."""

    def test_eligibility(self):
        """Test the always-ignored and subset rules."""
        scanner = DirectoryScanner(subset="src")
        assert scanner.is_eligible("src/a.py")
        assert not scanner.is_eligible("docs/a.md")
        assert not scanner.is_eligible("src/.git/config")
        assert not scanner.is_eligible("")

    def test_scan_local(self, local_dir):
        """Test that scanning skips .git and reports metadata."""
        write(local_dir, "a.txt", b"abc")
        write(local_dir, ".git/HEAD")

        files = DirectoryScanner().scan_local(local_dir)

        assert [f.relative_path for f in files] == ["a.txt"]
        assert files[0].size == 3


class TestLocalChangeHandler:
    """Tests for translating watchdog events."""

    def drain(self, events):
        items = []
        while not events.empty():
            items.append(events.get_nowait())
        return items

    def test_file_events(self, tmp_path):
        """Test created, modified and deleted files."""
        events = queue.Queue()
        handler = LocalChangeHandler(events)
        path = str(tmp_path / "a.txt")

        handler.dispatch(FileCreatedEvent(path))
        handler.dispatch(FileModifiedEvent(path))
        handler.dispatch(FileDeletedEvent(path))

        assert self.drain(events) == [
            ChangeEvent(ChangeKind.UPSERT, tmp_path / "a.txt"),
            ChangeEvent(ChangeKind.UPSERT, tmp_path / "a.txt"),
            ChangeEvent(ChangeKind.DELETE, tmp_path / "a.txt"),
        ]

    def test_directory_creation_is_ignored(self, tmp_path):
        """Test that new directories produce no event."""
        events = queue.Queue()
        LocalChangeHandler(events).dispatch(DirCreatedEvent(str(tmp_path / "d")))
        assert events.empty()

    def test_move_is_delete_plus_upsert(self, tmp_path):
        """Test that a rename maps onto two events."""
        events = queue.Queue()
        LocalChangeHandler(events).dispatch(
            FileMovedEvent(str(tmp_path / "old.txt"), str(tmp_path / "new.txt"))
        )

        assert self.drain(events) == [
            ChangeEvent(ChangeKind.DELETE, tmp_path / "old.txt"),
            ChangeEvent(ChangeKind.UPSERT, tmp_path / "new.txt"),
        ]


class TestPushAll:
    """Tests for WatchSync.push_all."""

    def test_pushes_every_file(self, session, local_dir, project_root):
        """Test the initial full push."""
        write(local_dir, "a.txt", b"a")
        write(local_dir, "src/b.txt", b"b")
        write(local_dir, ".git/HEAD", b"ref")

        assert session.push_all() == 2
        assert (project_root / "a.txt").read_bytes() == b"a"
        assert (project_root / "src" / "b.txt").read_bytes() == b"b"
        assert not (project_root / ".git").exists()

    def test_subset(self, client, quiet_output, local_dir, project_root):
        """Test that only the subset is pushed."""
        write(local_dir, "src/a.py")
        write(local_dir, "docs/b.md")
        session = WatchSync(client, "demo", local_dir, subset="src", output=quiet_output)

        assert session.push_all() == 1
        assert (project_root / "src" / "a.py").exists()
        assert not (project_root / "docs").exists()

    def test_failure_aborts(self, client, quiet_output, local_dir, registry):
        """Test that the first failed upload propagates."""
        write(local_dir, "a.env")
        registry.set_patterns("demo", ["*.env"])
        session = WatchSync(client, "demo", local_dir, output=quiet_output)

        with pytest.raises(BoltForbiddenError):
            session.push_all()


class TestHandleEvent:
    """Tests for WatchSync.handle_event."""

    def test_upsert_uploads(self, session, local_dir, project_root):
        """Test that a changed file is uploaded."""
        path = write(local_dir, "src/a.py", b"v1")

        assert session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))
        assert (project_root / "src" / "a.py").read_bytes() == b"v1"

    def test_delete_removes_remote(self, session, local_dir, project_root):
        """Test that a local delete is mirrored."""
        write(project_root, "a.txt")

        assert session.handle_event(ChangeEvent(ChangeKind.DELETE, local_dir / "a.txt"))
        assert not (project_root / "a.txt").exists()

    def test_git_paths_are_skipped(self, session, local_dir, project_root):
        """Test that .git changes are never sent."""
        path = write(local_dir, ".git/index")

        assert not session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))
        assert not (project_root / ".git").exists()

    def test_outside_subset(self, client, quiet_output, local_dir, project_root):
        """Test that paths outside the subset are skipped."""
        path = write(local_dir, "docs/a.md")
        session = WatchSync(client, "demo", local_dir, subset="src", output=quiet_output)

        assert not session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))
        assert not (project_root / "docs").exists()

    def test_outside_root(self, session, tmp_path):
        """Test that paths outside the watched directory are skipped."""
        path = write(tmp_path, "elsewhere.txt")
        assert not session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))

    def test_vanished_file(self, session, local_dir):
        """Test that an upsert for a file that is gone again does nothing."""
        event = ChangeEvent(ChangeKind.UPSERT, local_dir / "gone.txt")
        assert not session.handle_event(event)

    def test_errors_are_reported_and_swallowed(self, quiet_output, local_dir):
        """Test that a failing event does not stop the session."""
        client = Mock()
        client.put_file.side_effect = [BoltConnectivityError("down"), None]
        quiet_output.error = Mock()
        session = WatchSync(client, "demo", local_dir, output=quiet_output)
        first = write(local_dir, "a.txt")
        second = write(local_dir, "b.txt")

        assert not session.handle_event(ChangeEvent(ChangeKind.UPSERT, first))
        assert session.handle_event(ChangeEvent(ChangeKind.UPSERT, second))

        quiet_output.error.assert_called_once()
        assert "a.txt" in quiet_output.error.call_args[0][0]

    def test_remote_missing_on_delete(self, session, quiet_output, local_dir):
        """Test that deleting a file the host never had stays quiet."""
        quiet_output.error = Mock()
        event = ChangeEvent(ChangeKind.DELETE, local_dir / "never-existed.txt")

        assert not session.handle_event(event)
        quiet_output.error.assert_not_called()

    def test_other_delete_failures_are_reported(self, quiet_output, local_dir):
        """Test that a delete rejected by the host is still shown."""
        client = Mock()
        client.delete_file.side_effect = BoltForbiddenError("HTTP error! status: 403")
        quiet_output.error = Mock()
        session = WatchSync(client, "demo", local_dir, output=quiet_output)

        assert not session.handle_event(ChangeEvent(ChangeKind.DELETE, local_dir / "a.env"))
        quiet_output.error.assert_called_once()
        assert "403" in quiet_output.error.call_args[0][0]

    def test_baseline_skips_unchanged_copy(self, quiet_output, local_dir):
        """Test that the first event for an untouched copied file is skipped."""
        path = write(local_dir, "a.txt", b"copied")
        stat = path.stat()
        client = Mock()
        session = WatchSync(
            client,
            "demo",
            local_dir,
            output=quiet_output,
            baseline={"a.txt": (stat.st_size, stat.st_mtime_ns)},
        )

        assert not session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))
        client.put_file.assert_not_called()

        # The baseline applies once
        assert session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))
        client.put_file.assert_called_once()

    def test_baseline_does_not_hide_edits(self, quiet_output, local_dir):
        """Test that a modified copied file is uploaded."""
        path = write(local_dir, "a.txt", b"copied")
        client = Mock()
        session = WatchSync(
            client,
            "demo",
            local_dir,
            output=quiet_output,
            baseline={"a.txt": (999, 0)},
        )

        assert session.handle_event(ChangeEvent(ChangeKind.UPSERT, path))
        client.put_file.assert_called_once()


class TestDispatcher:
    """Tests for the queue consumer thread."""

    def test_queued_events_are_processed_in_order(self, quiet_output, local_dir):
        """Test that start/stop drain the queue through one dispatcher."""
        client = Mock()
        session = WatchSync(client, "demo", local_dir, output=quiet_output)
        path = write(local_dir, "a.txt")

        session.start()
        try:
            session.events.put(ChangeEvent(ChangeKind.UPSERT, local_dir / "a.txt"))
            session.events.put(ChangeEvent(ChangeKind.DELETE, local_dir / "b.txt"))
            session.events.join()
        finally:
            session.stop()

        client.put_file.assert_called_with("demo", "a.txt", path)
        client.delete_file.assert_called_with("demo", "b.txt")
        assert [name for name, _, _ in client.method_calls] == ["put_file", "delete_file"]


class TestLiveWatch:
    """End-to-end runs with a real filesystem observer."""

    def test_mirrors_local_changes(self, client, quiet_output, local_dir, project_root):
        """Test that an unlink and a create on disk reach the host."""
        write(local_dir, "a.txt", b"a")
        write(project_root, "a.txt", b"a")
        spy = Mock(wraps=client)
        session = WatchSync(spy, "demo", local_dir, output=quiet_output)

        session.start()
        try:
            (local_dir / "a.txt").unlink()
            write(local_dir, "b.txt", b"new")
            assert wait_for(
                lambda: not (project_root / "a.txt").exists()
                and (project_root / "b.txt").is_file()
                and (project_root / "b.txt").read_bytes() == b"new"
            )
        finally:
            session.stop()

        assert spy.delete_file.call_args_list == [call("demo", "a.txt")]
        assert all(c[0][1] == "b.txt" for c in spy.put_file.call_args_list)


class TestSyncProject:
    """Tests for the sync_project convenience wrapper."""

    @patch.object(WatchSync, "run_forever")
    def test_push_all_then_watch(
        self, mock_run_forever, http, quiet_output, local_dir, project_root
    ):
        """Test that push_all uploads everything before watching starts."""
        write(local_dir, "a.txt", b"a")
        write(local_dir, "src/b.py", b"b")
        created = []

        def make_client(host, secret):
            created.append((host, secret))
            return BoltClient(host, secret, http_client=http)

        with patch("boltsync.sync.watcher.BoltClient", side_effect=make_client):
            sync_project(
                "demo",
                "http://testserver",
                SECRET,
                local_dir,
                push_all=True,
                output=quiet_output,
            )

        assert created == [("http://testserver", SECRET)]
        assert (project_root / "a.txt").read_bytes() == b"a"
        assert (project_root / "src" / "b.py").read_bytes() == b"b"
        mock_run_forever.assert_called_once()

    @patch.object(WatchSync, "run_forever")
    def test_without_push_all(
        self, mock_run_forever, http, quiet_output, local_dir, project_root
    ):
        """Test that nothing is uploaded up front by default."""
        write(local_dir, "a.txt", b"a")

        with patch(
            "boltsync.sync.watcher.BoltClient",
            side_effect=lambda host, secret: BoltClient(host, secret, http_client=http),
        ):
            sync_project("demo", "http://testserver", SECRET, local_dir, output=quiet_output)

        assert not (project_root / "a.txt").exists()
        mock_run_forever.assert_called_once()
