"""CLI entry point for spotme-server."""

import asyncio
from pathlib import Path

import typer
import uvicorn

from spotme_server import __version__
from spotme_server.core.config import settings

app = typer.Typer(
    name="spotme-server",
    help="Real-time location sharing server and tracking client tools",
    no_args_is_help=True,
)


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (overrides config)"),
    port: int = typer.Option(None, help="Port to bind to (overrides config)"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server.

    Example:
        spotme-server serve
        spotme-server serve --host 0.0.0.0 --port 8080 --reload
    """
    uvicorn.run(
        "spotme_server.app:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"spotme-server v{__version__}")


@app.command("create-admin")
def create_admin(
    username: str = typer.Argument(..., help="Login name"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True, help="Admin password"
    ),
    display_name: str = typer.Option(None, help="Name shown in tracking audit fields"),
) -> None:
    """Create an admin account for the tracking console."""
    from spotme_server.core.auth import create_admin_user
    from spotme_server.core.database import async_session_maker, close_database

    async def _create() -> None:
        try:
            async with async_session_maker() as session:
                await create_admin_user(username, password, session, display_name=display_name)
        finally:
            await close_database()

    try:
        asyncio.run(_create())
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Admin user '{username}' created")


@app.command("queue-status")
def queue_status(
    state_file: Path = typer.Option(None, help="Client state file (defaults to CLIENT_STATE_DIR)"),
) -> None:
    """Show samples waiting in the tracking client's offline queue."""
    from spotme_server.client import JsonFileStore, OfflineSampleQueue

    queue = OfflineSampleQueue(JsonFileStore(state_file or settings.client_queue_path))
    pending = queue.pending

    typer.echo(f"Pending samples: {len(pending)}")
    for sample in pending:
        typer.echo(
            f"  {sample.timestamp}  {sample.user_name}  "
            f"({sample.latitude:.5f}, {sample.longitude:.5f})  cached {sample.cached_at}"
        )

    rejected = queue.rejected
    if rejected:
        typer.echo(f"Rejected samples: {len(rejected)}")


@app.command("drain-queue")
def drain_queue(
    server_url: str = typer.Option(None, help="Server URL (overrides CLIENT_SERVER_URL)"),
    state_file: Path = typer.Option(None, help="Client state file (defaults to CLIENT_STATE_DIR)"),
) -> None:
    """Deliver the offline queue now. Exits 1 if any sample failed."""
    from spotme_server.client import JsonFileStore, OfflineSampleQueue, SpotMeClient

    queue = OfflineSampleQueue(JsonFileStore(state_file or settings.client_queue_path))
    if not len(queue):
        typer.echo("Offline queue is empty")
        return

    async def _drain():
        async with SpotMeClient(base_url=server_url) as client:
            return await queue.drain(client.submit_location)

    result = asyncio.run(_drain())
    typer.echo(
        f"Synced {result.succeeded}, failed {result.failed}, rejected {result.rejected}"
    )
    if result.failed or result.rejected:
        raise typer.Exit(code=1)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
