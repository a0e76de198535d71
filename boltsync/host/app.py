"""HTTP host exposing project stores to sync clients."""

from __future__ import annotations

import hmac
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from .. import __version__
from ..exceptions import BoltTransportError
from .ignore_registry import IgnoreConfigWatcher, IgnoreRegistry
from .store import ProjectStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from starlette.responses import Response

logger = logging.getLogger(__name__)

# Paths reachable without a bearer token
PUBLIC_PATHS = frozenset({"/status", "/api/status"})


def get_store(request: Request) -> ProjectStore:
    return request.app.state.store


StoreDep = Annotated[ProjectStore, Depends(get_store)]

router = APIRouter()


@router.get("/status")
def status() -> dict[str, str]:
    """Liveness check."""
    return {"status": "healthy", "version": __version__}


@router.get("/sync/list/{project}")
def list_project_files(project: str, store: StoreDep) -> dict[str, list[str]]:
    """List all non-ignored files of a project."""
    return {"files": store.list_files(project)}


@router.get("/sync/file/{project}/{path:path}")
def read_project_file(project: str, path: str, store: StoreDep) -> StreamingResponse:
    """Stream the raw bytes of a project file."""
    chunks = store.read_file(project, path)
    return StreamingResponse(chunks, media_type="application/octet-stream")


@router.put("/sync/file/{project}/{path:path}")
async def write_project_file(
    project: str, path: str, request: Request, store: StoreDep
) -> dict[str, str]:
    """Replace a project file with the request body."""
    data = await request.body()
    await run_in_threadpool(store.write_file, project, path, data)
    return {"status": "success"}


@router.delete("/sync/file/{project}/{path:path}")
def delete_project_file(project: str, path: str, store: StoreDep) -> dict[str, str]:
    """Delete a project file."""
    store.delete_file(project, path)
    return {"status": "success"}


def is_authorized(header: str | None, secret: str) -> bool:
    """Compare an Authorization header against the expected bearer secret."""
    if not header:
        return False
    expected = f"Bearer {secret}"
    return hmac.compare_digest(header.encode("utf-8"), expected.encode("utf-8"))


def create_app(
    workspace: Path,
    secret: str,
    *,
    registry: IgnoreRegistry | None = None,
    watch_configs: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        workspace: Host workspace holding ``projects/`` and ``configs/``
        secret: Shared bearer secret required on every protected request
        registry: Ignore registry to use (a new one if omitted)
        watch_configs: Watch ``configs/*/.syncignore`` while the app runs

    Returns:
        Configured FastAPI application.
    """
    store = ProjectStore(Path(workspace), registry)
    store.ensure_layout()
    watcher = (
        IgnoreConfigWatcher(store.registry, store.configs_dir) if watch_configs else None
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if watcher is not None:
            watcher.start()
        try:
            yield
        finally:
            if watcher is not None:
                watcher.stop()

    app = FastAPI(title="boltsync host", version=__version__, lifespan=lifespan)
    app.state.store = store

    @app.middleware("http")
    async def require_bearer_token(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path not in PUBLIC_PATHS and not is_authorized(
            request.headers.get("Authorization"), secret
        ):
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return await call_next(request)

    @app.exception_handler(BoltTransportError)
    async def handle_store_error(request: Request, exc: BoltTransportError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(OSError)
    async def handle_os_error(request: Request, exc: OSError) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    app.include_router(router)
    app.include_router(router, prefix="/api")
    return app


def run_host(
    workspace: Path,
    secret: str,
    port: int,
    host: str = "0.0.0.0",
    log_level: str = "info",
    **kwargs: Any,
) -> None:
    """Serve the host application with uvicorn until interrupted."""
    import uvicorn

    app = create_app(workspace, secret, **kwargs)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
