"""`listings serve`: run the API under uvicorn.

Usage:
    listings serve
    listings serve --port 8080 --reload
    listings serve --no-cache --log-level debug
"""

from __future__ import annotations

import os

import typer

from listings.config import settings

app = typer.Typer(help="Run the listings API server")


def _banner(host: str, port: int, workers: int) -> None:
    cache = settings.redis_dsn if settings.cache_enabled else "disabled"
    typer.echo(f"listings API on http://{host}:{port} ({workers} worker(s))")
    typer.echo(f"  cache: {cache}")
    typer.echo(f"  docs:  http://{host}:{port}/docs")


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(settings.host, "--host", "-h", help="Interface to bind"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Restart on code changes"),
    workers: int = typer.Option(1, "--workers", "-w", min=1, help="Worker processes"),
    log_level: str = typer.Option(settings.log_level, "--log-level", "-l"),
    cache: bool = typer.Option(
        settings.cache_enabled,
        "--cache/--no-cache",
        help="Serve through the Redis cache or straight from the data source",
    ),
) -> None:
    """Run the listings API server.

    Each worker process keeps its own Redis connection.
    """
    import uvicorn

    if not cache:
        # Reload and worker subprocesses rebuild settings from the environment
        os.environ["CACHE_ENABLED"] = "false"
        settings.cache_enabled = False

    if reload:
        workers = 1

    _banner(host, port, workers)
    uvicorn.run(
        "listings.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=log_level.lower(),
    )
