"""Configuration management for boltsync.

Values are resolved from environment variables. A ``.env`` file in the
current working directory is loaded first, without overriding variables
that are already set.
"""

import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .exceptions import BoltConfigError

DEFAULT_HOST = "http://boltops.localhost:8017"
DEFAULT_PORT = 8017

ENV_PROJECT = "BOLTOPS_PROJECT"
ENV_HOST = "BOLTOPS_HOST"
ENV_SECRET = "BOLTOPS_SECRET"
ENV_PORT = "BOLTOPS_PORT"


def is_valid_host_url(value: Optional[str]) -> bool:
    """Check that a host URL uses the http or https scheme.

    Examples:
        >>> is_valid_host_url("http://localhost:8017")
        True
        >>> is_valid_host_url("ftp://example.com")
        False
    """
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Config:
    """Environment-backed configuration."""

    def __init__(self, load_env_file: bool = True):
        """Initialize configuration.

        Args:
            load_env_file: Load a ``.env`` file from the working directory
        """
        if load_env_file:
            load_dotenv()

    @property
    def project(self) -> Optional[str]:
        return os.environ.get(ENV_PROJECT) or None

    @property
    def host(self) -> str:
        return os.environ.get(ENV_HOST) or DEFAULT_HOST

    @property
    def secret(self) -> Optional[str]:
        return os.environ.get(ENV_SECRET) or None

    @property
    def port(self) -> int:
        raw = os.environ.get(ENV_PORT)
        if not raw:
            return DEFAULT_PORT
        try:
            return int(raw)
        except ValueError as e:
            raise BoltConfigError(f"{ENV_PORT} must be an integer, got {raw!r}") from e

    def require_secret(self, secret: Optional[str] = None) -> str:
        """Return the shared secret or raise if it is not configured.

        Args:
            secret: Explicit secret that takes precedence over the environment

        Raises:
            BoltConfigError: If no secret is available
        """
        value = secret or self.secret
        if not value:
            raise BoltConfigError(f"{ENV_SECRET} environment variable is required")
        return value


config = Config()
