"""CLI interface for boltsync."""

import logging
import time
import uuid
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import BoltClient
from .config import ENV_HOST, ENV_PROJECT, ENV_SECRET, config, is_valid_host_url
from .exceptions import BoltAPIError, BoltConfigError
from .host import run_host
from .output import OutputFormatter
from .sync import CopyEngine, WatchSync
from .utils import SETTLE_DELAY

logger = logging.getLogger(__name__)


def resolve_client_options(
    project: Optional[str], host: Optional[str]
) -> tuple[str, str, str]:
    """Resolve project, host and secret from options and the environment.

    Raises:
        BoltConfigError: If a required value is missing or invalid
    """
    project = project or config.project
    if not project:
        raise BoltConfigError(
            f"Project ID is required (use --project option or {ENV_PROJECT} env var)"
        )

    host = host or config.host
    if not is_valid_host_url(host):
        raise BoltConfigError(
            f"Host URL is required (use --host option or {ENV_HOST} env var). "
            "URL must start with http:// or https://"
        )

    secret = config.require_secret()
    return project, host, secret


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="boltsync")
@click.pass_context
def main(ctx: Any, quiet: bool, verbose: bool) -> None:
    """boltsync - Keep a local project directory in sync with a remote host."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("boltsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command("copy")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--project", help=f"Project ID (or use {ENV_PROJECT} env var)")
@click.option("--host", help=f"Host URL (or use {ENV_HOST} env var)")
@click.option(
    "--subset",
    help="Limit operations to files within specified subdirectory",
)
@click.option("--clean", is_flag=True, help="Clean up files not present in remote")
@click.option(
    "--sync",
    "sync_after",
    is_flag=True,
    help="Sync files back when changed after copy",
)
@click.pass_context
def copy_command(
    ctx: Any,
    path: Path,
    project: Optional[str],
    host: Optional[str],
    subset: Optional[str],
    clean: bool,
    sync_after: bool,
) -> None:
    """Copy files from a remote host to a local project directory.

    \b
    Environment Variables:
      BOLTOPS_PROJECT  Project identifier (alternative to --project)
      BOLTOPS_HOST     Host URL (alternative to --host)
      BOLTOPS_SECRET   Required authentication secret

    \b
    Examples:
      BOLTOPS_SECRET=secret boltsync copy --project=sb1-abcd5678 ./project
      BOLTOPS_SECRET=secret boltsync copy --clean --sync --project=sb1-abcd5678 ./project
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        project, host, secret = resolve_client_options(project, host)
        with BoltClient(host, secret) as client:
            engine = CopyEngine(client, project, output=out)
            result = engine.copy_project(path, clean=clean, subset=subset)
            out.success("Copy completed successfully")

            if not sync_after:
                return

            # Let the watcher start after the copy's own writes have settled
            time.sleep(SETTLE_DELAY)
            session = WatchSync(
                client,
                project,
                path,
                subset=subset,
                output=out,
                baseline=result.baseline,
            )
            session.run_forever()
    except KeyboardInterrupt:
        out.warning("\nStopped by user")
        ctx.exit(130)
    except BoltAPIError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command("sync")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--project", help=f"Project ID (or use {ENV_PROJECT} env var)")
@click.option("--host", help=f"Host URL (or use {ENV_HOST} env var)")
@click.option(
    "--subset",
    help="Limit operations to files within specified subdirectory",
)
@click.option("--all", "push_all", is_flag=True, help="Sync all files initially")
@click.pass_context
def sync_command(
    ctx: Any,
    path: Path,
    project: Optional[str],
    host: Optional[str],
    subset: Optional[str],
    push_all: bool,
) -> None:
    """Watch a local project and upload changes to the remote host.

    \b
    Environment Variables:
      BOLTOPS_PROJECT  Project identifier (alternative to --project)
      BOLTOPS_HOST     Host URL (alternative to --host)
      BOLTOPS_SECRET   Required authentication secret

    \b
    Examples:
      BOLTOPS_SECRET=secret boltsync sync --project=sb1-abcd5678 ./project
      BOLTOPS_SECRET=secret boltsync sync --all --project=sb1-abcd5678 ./project
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        project, host, secret = resolve_client_options(project, host)
        with BoltClient(host, secret) as client:
            session = WatchSync(client, project, path, subset=subset, output=out)
            if push_all:
                pushed = session.push_all()
                out.info(f"Pushed {pushed} file(s)")
            session.run_forever()
    except KeyboardInterrupt:
        out.warning("\nStopped by user")
        ctx.exit(130)
    except BoltAPIError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command("host")
@click.argument("workspace", type=click.Path(file_okay=False, path_type=Path))
@click.option("--port", type=int, default=None, help="Port number (default: 8017)")
@click.option("--bind", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.pass_context
def host_command(ctx: Any, workspace: Path, port: Optional[int], bind: str) -> None:
    """Start a host server for file synchronization requests.

    Files are kept under WORKSPACE/projects/<project>. A file at
    WORKSPACE/configs/<project>/.syncignore lists glob patterns (one per
    line) excluded from synchronization; changes apply immediately.

    \b
    Environment Variables:
      BOLTOPS_SECRET   Required authentication secret
      BOLTOPS_PORT     Port number (alternative to --port)
    """
    out: OutputFormatter = ctx.obj["out"]

    secret = config.secret
    if not secret:
        out.error(f"{ENV_SECRET} environment variable is required")
        out.print(f"Try re-running with {ENV_SECRET}={uuid.uuid4()}")
        ctx.exit(1)

    try:
        port = port or config.port
        out.success(f"Starting server on port {port}")
        run_host(
            workspace,
            secret,
            port,
            host=bind,
            log_level="debug" if ctx.obj.get("verbose") else "info",
        )
    except KeyboardInterrupt:
        ctx.exit(130)
    except (BoltAPIError, OSError) as e:
        out.error(str(e))
        ctx.exit(1)


if __name__ == "__main__":
    main()
