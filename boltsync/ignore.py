"""Ignore pattern matching for project files.

Patterns are shell globs matched against the whole relative path: ``*``
and ``?`` never cross a ``/``, ``**`` spans any number of directories, and
character classes and brace alternatives are supported. Leading-dot names
are only matched by patterns that spell the dot out. Each pattern is
evaluated on its own, so a path is ignored iff at least one pattern
matches it. A leading ``!`` has no special meaning, so no line can
un-ignore a path that another pattern excludes.

Examples:
    >>> is_ignored("b/c.txt", ["b/*"])
    True
    >>> is_ignored("a.txt", ["b/*"])
    False
    >>> is_ignored("src/deep/dir/app.log", ["**/*.log"])
    True
    >>> is_ignored("src/app.log", ["*.log"])
    False
"""

import posixpath
from typing import Iterable, Optional

from wcmatch import glob

IGNORE_FILE_NAME = ".syncignore"

# Directory names that are never listed, scanned or transferred
ALWAYS_IGNORED: tuple[str, ...] = (".git",)


# Globstar, brace expansion and case-sensitive matching on every platform
GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.CASE


def is_ignored(relative_path: str, patterns: Iterable[str]) -> bool:
    """Check whether a relative path matches any of the given patterns.

    Args:
        relative_path: Project-relative path using forward slashes
        patterns: Glob patterns

    Returns:
        True if at least one pattern matches
    """
    return any(
        glob.globmatch(relative_path, pattern, flags=GLOB_FLAGS) for pattern in patterns
    )


def is_always_ignored(relative_path: str) -> bool:
    """Check whether any segment of the path is an always-ignored name."""
    return any(part in ALWAYS_IGNORED for part in relative_path.split("/"))


def normalize_relative_path(path: str) -> str:
    """Normalize a relative path to forward slashes without leading ``./``.

    Examples:
        >>> normalize_relative_path("./src\\\\app//main.py")
        'src/app/main.py'
        >>> normalize_relative_path(".")
        ''
    """
    normalized = posixpath.normpath(path.replace("\\", "/"))
    normalized = normalized.lstrip("/")
    if normalized == ".":
        return ""
    return normalized


def normalize_subset(subset: Optional[str]) -> Optional[str]:
    """Normalize a subset prefix, returning None when it selects everything."""
    if subset is None:
        return None
    prefix = normalize_relative_path(subset)
    return prefix or None


def in_subset(relative_path: str, prefix: Optional[str]) -> bool:
    """Check whether a relative path lies within the subset prefix.

    The test is a plain string prefix on the normalized path, so a prefix
    of ``src`` also selects ``src2/x``.
    """
    if prefix is None:
        return True
    return normalize_relative_path(relative_path).startswith(prefix)


def parse_ignore_file(text: str) -> tuple[str, ...]:
    """Split the content of a ``.syncignore`` file into patterns.

    Every non-empty line is one pattern. Surrounding whitespace on a line
    is kept except for a trailing carriage return.
    """
    patterns = []
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if line:
            patterns.append(line)
    return tuple(patterns)
