"""CLI commands for LearnHub.

Provides command-line interface using Typer:
- learnhub serve: Run the API server
- learnhub cache ttl: Show the TTL a cache key resolves to
- learnhub cache invalidate: Invalidate a key pattern across all instances

Usage:
    learnhub --help
    learnhub serve --port 8080
    learnhub cache ttl "courses:list:p1:s20:sort:_:q:_"
    learnhub cache invalidate "courses:list:*"
"""

import typer

from learnhub.cli.cache_cmd import app as cache_app
from learnhub.cli.serve import app as serve_app

# Main CLI application
app = typer.Typer(
    name="learnhub",
    help="LearnHub: online learning platform cache service",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(serve_app, name="serve")
app.add_typer(cache_app, name="cache")


@app.callback()
def callback() -> None:
    """LearnHub: online learning platform cache service."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
