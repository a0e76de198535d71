"""Exceptions for boltsync."""

from __future__ import annotations


class BoltAPIError(Exception):
    """Base exception for all boltsync errors."""


class BoltConfigError(BoltAPIError):
    """Raised when required configuration is missing or invalid."""


class BoltConnectivityError(BoltAPIError):
    """Raised when no response could be obtained from the host.

    Covers refused connections, DNS failures and timeouts.
    """


class BoltLocalIOError(BoltAPIError):
    """Raised when a local filesystem operation fails on the client."""


class BoltInvalidResponseError(BoltAPIError):
    """Raised when the host returns a payload that cannot be understood."""


class BoltTransportError(BoltAPIError):
    """An error that maps onto an HTTP status code.

    Raised by the client for every non-success response, and by the
    project store for failures the host turns into error responses.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "",
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.body = body

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class BoltStoreError(BoltTransportError):
    """Unexpected filesystem failure inside the project store."""

    status_code = 500


class BoltUnauthorizedError(BoltTransportError):
    """Missing or wrong bearer secret."""

    status_code = 401


class BoltForbiddenError(BoltTransportError):
    """The path is excluded by the project's ignore patterns."""

    status_code = 403


class BoltNotFoundError(BoltTransportError):
    """The requested file does not exist."""

    status_code = 404


class BoltProjectNotFoundError(BoltNotFoundError):
    """The project root directory does not exist."""
