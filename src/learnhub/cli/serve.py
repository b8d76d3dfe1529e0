"""CLI command for running the API server.

Usage:
    learnhub serve
    learnhub serve --port 8080 --workers 4
    learnhub serve --reload
"""

from __future__ import annotations

import typer

from learnhub.config import SerializerMode, settings

app = typer.Typer(help="Run the LearnHub API server")


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(settings.host, "--host", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    workers: int = typer.Option(1, "--workers", "-w", min=1, help="Worker processes"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes (one worker)"),
) -> None:
    """Run the API with the cache configured from LEARNHUB_* settings."""
    import uvicorn

    if reload and workers > 1:
        typer.echo("--reload runs a single worker; ignoring --workers", err=True)
        workers = 1

    serializer = SerializerMode(settings.cache_serializer_mode).value
    typer.echo(f"LearnHub on {host}:{port} (instance {settings.instance_id})")
    typer.echo(f"  Serializer: {serializer}")
    typer.echo(f"  L1 sync:    {'on' if settings.cache_l1_sync else 'off'}")

    if workers > 1:
        if settings.cache_l1_sync:
            typer.echo(f"  Workers:    {workers}, each with its own L1 kept in sync over Pub/Sub")
        else:
            typer.echo(
                f"Warning: {workers} workers each keep a private L1 and L1 sync is off; "
                "peers serve stale entries until their L1 TTL expires",
                err=True,
            )

    uvicorn.run(
        "learnhub.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=settings.log_level.lower(),
    )
