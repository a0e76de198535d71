"""API client for a boltsync host."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .exceptions import (
    BoltConnectivityError,
    BoltForbiddenError,
    BoltInvalidResponseError,
    BoltLocalIOError,
    BoltNotFoundError,
    BoltTransportError,
    BoltUnauthorizedError,
)
from .utils import DEFAULT_CHUNK_SIZE, DEFAULT_TIMEOUT, iter_file_chunks, write_atomic

_STATUS_ERRORS: dict[int, type[BoltTransportError]] = {
    401: BoltUnauthorizedError,
    403: BoltForbiddenError,
    404: BoltNotFoundError,
}


def quote_path(relative_path: str) -> str:
    """URL-quote each segment of a relative path, keeping the separators."""
    return "/".join(quote(part, safe="") for part in relative_path.split("/"))


class BoltClient:
    """Client for the list/read/write/delete protocol of a boltsync host.

    Every request carries ``Authorization: Bearer <secret>``. No retries
    are attempted; callers decide how to handle failures.
    """

    def __init__(
        self,
        host: str,
        secret: str,
        api_prefix: str = "/api",
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            host: Base URL of the host (e.g. ``http://localhost:8017``)
            secret: Shared bearer secret
            api_prefix: Path prefix the host's routes are mounted under
            timeout: Request timeout in seconds (default: 30.0)
            http_client: Pre-configured httpx client to use instead of
                creating one (the bearer header is still sent per request)
        """
        self.host = host.rstrip("/")
        self.secret = secret
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.secret}"}

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> BoltClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _url(self, endpoint: str) -> str:
        return f"{self.host}{self.api_prefix}/{endpoint.lstrip('/')}"

    def _file_url(self, project: str, relative_path: str) -> str:
        return self._url(
            f"sync/file/{quote(project, safe='')}/{quote_path(relative_path)}"
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        """Raise the matching transport error for a non-success response."""
        if response.is_success:
            return
        try:
            body = response.text
        except (httpx.ResponseNotRead, UnicodeDecodeError):
            body = None

        message = f"HTTP error! status: {response.status_code}"
        detail = None
        if body:
            try:
                data = response.json()
                if isinstance(data, dict):
                    detail = data.get("error") or data.get("detail")
            except ValueError:
                detail = None
        if detail:
            message = f"{message}: {detail}"

        error_class = _STATUS_ERRORS.get(response.status_code, BoltTransportError)
        raise error_class(message, status_code=response.status_code, body=body)

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request and classify failures.

        Raises:
            BoltTransportError: On a non-success status
            BoltConnectivityError: If no response was obtained
        """
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            response = self._get_client().request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise BoltConnectivityError(f"Network error: {e}") from e
        self._raise_for_status(response)
        return response

    # =========================
    # Host Operations
    # =========================

    def status(self) -> dict[str, Any]:
        """Return the host's health payload."""
        result: dict[str, Any] = self._request("GET", self._url("status")).json()
        return result

    def list_files(self, project: str) -> list[str]:
        """List the relative paths of all files in a remote project.

        Raises:
            BoltNotFoundError: If the project does not exist on the host
            BoltInvalidResponseError: If the payload is not a file list
        """
        response = self._request(
            "GET", self._url(f"sync/list/{quote(project, safe='')}")
        )
        try:
            data = response.json()
        except ValueError as e:
            raise BoltInvalidResponseError("Invalid JSON response from host") from e

        # Some hosts answer with a bare array instead of {"files": [...]}
        files = data.get("files") if isinstance(data, dict) else data
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise BoltInvalidResponseError(f"Unexpected file list payload: {data!r}")
        return files

    def fetch_file(self, project: str, relative_path: str) -> Iterator[bytes]:
        """Stream the content of a remote file.

        The request is sent lazily when the iterator is first advanced.

        Raises:
            BoltNotFoundError: If the file does not exist
            BoltForbiddenError: If the path is ignored on the host
        """
        url = self._file_url(project, relative_path)
        try:
            with self._get_client().stream("GET", url, headers=self.headers) as response:
                if not response.is_success:
                    response.read()
                self._raise_for_status(response)
                yield from response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE)
        except httpx.RequestError as e:
            raise BoltConnectivityError(f"Network error during download: {e}") from e

    def download_file(self, project: str, relative_path: str, target: Path) -> int:
        """Download a remote file to ``target``, replacing it atomically.

        Parent directories of ``target`` are created as needed.

        Returns:
            Number of bytes written

        Raises:
            BoltLocalIOError: If the local file cannot be written
        """
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BoltLocalIOError(f"Failed to create {target.parent}: {e}") from e
        try:
            return write_atomic(target, self.fetch_file(project, relative_path))
        except OSError as e:
            raise BoltLocalIOError(f"Failed to write {target}: {e}") from e

    def put_file(self, project: str, relative_path: str, source: Path) -> None:
        """Upload a local file, streaming it from disk.

        Raises:
            BoltLocalIOError: If the local file cannot be read
            BoltNotFoundError: If the project does not exist on the host
            BoltForbiddenError: If the path is ignored on the host
        """
        if not source.is_file():
            raise BoltLocalIOError(f"Not a regular file: {source}")

        headers = {"Content-Type": "application/octet-stream"}
        try:
            self._request(
                "PUT",
                self._file_url(project, relative_path),
                content=iter_file_chunks(source),
                headers=headers,
            )
        except OSError as e:
            raise BoltLocalIOError(f"Cannot read {source}: {e}") from e

    def delete_file(self, project: str, relative_path: str) -> None:
        """Delete a remote file.

        Raises:
            BoltNotFoundError: If the file does not exist
            BoltForbiddenError: If the path is ignored on the host
        """
        self._request("DELETE", self._file_url(project, relative_path))
