"""boltsync - keep a local project directory in sync with a remote host."""

__version__ = "1.0.0"

from .api import BoltClient  # noqa: E402
from .exceptions import (  # noqa: E402
    BoltAPIError,
    BoltConfigError,
    BoltConnectivityError,
    BoltForbiddenError,
    BoltInvalidResponseError,
    BoltLocalIOError,
    BoltNotFoundError,
    BoltProjectNotFoundError,
    BoltStoreError,
    BoltTransportError,
    BoltUnauthorizedError,
)
from .ignore import is_ignored  # noqa: E402

__all__ = [
    "__version__",
    "BoltClient",
    "BoltAPIError",
    "BoltConfigError",
    "BoltConnectivityError",
    "BoltForbiddenError",
    "BoltInvalidResponseError",
    "BoltLocalIOError",
    "BoltNotFoundError",
    "BoltProjectNotFoundError",
    "BoltStoreError",
    "BoltTransportError",
    "BoltUnauthorizedError",
    "is_ignored",
]
