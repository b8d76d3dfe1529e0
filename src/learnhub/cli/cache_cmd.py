"""CLI commands for inspecting and invalidating the cache.

Usage:
    learnhub cache ttl "categories:tree"
    learnhub cache invalidate "courses:list:*"
    learnhub cache invalidate "courses:id:42" --no-broadcast
"""

from __future__ import annotations

import asyncio

import typer

from learnhub.cache.invalidation import CacheInvalidationBroadcaster
from learnhub.cache.keys import validate_pattern
from learnhub.cache.redis import RedisCache, close_redis, get_redis
from learnhub.cache.ttl import CacheTtlPolicy, derive_l1_ttl
from learnhub.config import settings

app = typer.Typer(help="Inspect and invalidate the LearnHub cache", no_args_is_help=True)


@app.command("ttl")
def ttl(key: str = typer.Argument(..., help="Cache key to resolve")) -> None:
    """Show which TTL rule applies to a cache key."""
    policy = CacheTtlPolicy.from_settings(settings)
    rule = policy.match(key)
    l2 = policy.resolve(key)
    l1 = derive_l1_ttl(l2, settings)

    typer.echo(f"Key:  {key}")
    typer.echo(f"Rule: {rule.prefix if rule else '(default)'}")
    typer.echo(f"L2:   {l2.total_seconds():g}s")
    typer.echo(f"L1:   {l1.total_seconds():g}s")


@app.command("invalidate")
def invalidate(
    pattern: str = typer.Argument(..., help="Exact key or prefix ending in '*'"),
    broadcast: bool = typer.Option(
        True,
        "--broadcast/--no-broadcast",
        help="Tell running instances to purge their in-process cache",
    ),
) -> None:
    """Remove matching keys from Redis and notify running instances."""
    try:
        cleaned = validate_pattern(pattern)
    except ValueError as e:
        typer.echo(f"Invalid pattern: {e}", err=True)
        raise typer.Exit(code=2) from e

    try:
        deleted = asyncio.run(_invalidate(cleaned, broadcast))
    except Exception as e:
        typer.echo(f"Invalidation failed: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Invalidated {cleaned}: {deleted} key(s) removed")


async def _invalidate(pattern: str, broadcast: bool) -> int:
    # This process holds no L1; Redis errors propagate so the command fails
    client = await get_redis()
    try:
        redis = RedisCache(client, scan_batch_size=settings.cache_scan_batch_size)
        deleted = await redis.delete_pattern(pattern)
        if broadcast:
            await CacheInvalidationBroadcaster(client=client).publish(pattern)
        return deleted
    finally:
        await close_redis()
