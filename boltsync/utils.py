"""Utility functions and constants for boltsync."""

import os
import tempfile
from pathlib import Path
from typing import Iterable

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for streaming file bodies (64 KB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Simultaneous downloads during a copy
DEFAULT_TRANSFER_LIMIT: int = 5

# Request timeout in seconds
DEFAULT_TIMEOUT: float = 30.0

# Pause between a copy and the watch session that follows it
SETTLE_DELAY: float = 1.0

# Bounded queue size for watch events
DEFAULT_EVENT_QUEUE_SIZE: int = 1024


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# File writing utilities
# =============================================================================


def write_atomic(target: Path, chunks: Iterable[bytes]) -> int:
    """Write chunks to a temp file next to ``target`` and move it into place.

    Readers never observe a partially written file. Parent directories
    must already exist.

    Args:
        target: Final file path
        chunks: Byte chunks to write

    Returns:
        Number of bytes written

    Raises:
        OSError: If the file cannot be written
    """
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".part", dir=target.parent
    )
    written = 0
    try:
        with os.fdopen(fd, "wb") as f:
            for chunk in chunks:
                if chunk:
                    f.write(chunk)
                    written += len(chunk)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return written


def iter_file_chunks(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE):
    """Yield the content of ``path`` in chunks without buffering it whole."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


# =============================================================================
# Directory walking utilities
# =============================================================================


def walk_files(root: Path, skip_dirs: Iterable[str] = ()) -> list[str]:
    """List every regular file below ``root`` as a relative POSIX path.

    Uses an explicit stack rather than recursion. Directories named in
    ``skip_dirs`` are pruned before descending; symlinked directories are
    not followed.

    Args:
        root: Directory to walk
        skip_dirs: Directory names that are never entered

    Returns:
        Sorted list of relative paths using forward slashes

    Raises:
        OSError: If ``root`` or a subdirectory cannot be read
    """
    skip = set(skip_dirs)
    files: list[str] = []
    stack: list[tuple[Path, str]] = [(root, "")]

    while stack:
        directory, prefix = stack.pop()
        with os.scandir(directory) as entries:
            for entry in entries:
                relative = f"{prefix}{entry.name}"
                if entry.is_dir(follow_symlinks=False):
                    if entry.name not in skip:
                        stack.append((Path(entry.path), f"{relative}/"))
                elif entry.is_file():
                    files.append(relative)

    files.sort()
    return files
