"""Shared fixtures for boltsync tests."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from boltsync.api import BoltClient
from boltsync.host import IgnoreRegistry, ProjectStore, create_app
from boltsync.output import OutputFormatter

SECRET = "test-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def workspace(tmp_path):
    """Host workspace directory with a ``demo`` project."""
    ws = tmp_path / "workspace"
    (ws / "projects" / "demo").mkdir(parents=True)
    (ws / "configs").mkdir(parents=True)
    return ws


@pytest.fixture
def project_root(workspace) -> Path:
    return workspace / "projects" / "demo"


@pytest.fixture
def registry():
    return IgnoreRegistry()


@pytest.fixture
def store(workspace, registry):
    return ProjectStore(workspace, registry)


@pytest.fixture
def app(workspace, registry):
    return create_app(workspace, SECRET, registry=registry, watch_configs=False)


@pytest.fixture
def http(app):
    """Starlette test client talking to the host app in-process."""
    return TestClient(app)


@pytest.fixture
def client(http):
    """BoltClient wired to the in-process host."""
    return BoltClient("http://testserver", SECRET, http_client=http)


@pytest.fixture
def quiet_output():
    return OutputFormatter(quiet=True)


@pytest.fixture
def local_dir(tmp_path):
    path = tmp_path / "local"
    path.mkdir()
    return path
