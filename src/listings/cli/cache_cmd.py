"""CLI commands for inspecting and purging the property cache.

Usage:
    listings cache keys
    listings cache keys "property:detail:*" --limit 20
    listings cache invalidate "properties:search:*"
    listings cache flush --yes
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from listings.cache.errors import BackendUnavailable
from listings.cache.facade import CacheFacade
from listings.cache.keys import CacheKeys
from listings.cache.redis import RedisCache, close_redis

T = TypeVar("T")

app = typer.Typer(help="Inspect and purge the property cache")
console = Console()


def _run(action: Callable[[RedisCache], Awaitable[T]]) -> T:
    """Run one cache action on a fresh connection, then close it."""

    async def runner() -> T:
        try:
            return await action(RedisCache())
        finally:
            await close_redis()

    try:
        return asyncio.run(runner())
    except BackendUnavailable as e:
        console.print(f"[red]Redis unavailable:[/red] {e}")
        raise typer.Exit(code=2)


def _check_pattern(pattern: str) -> str:
    if not CacheKeys.is_managed(pattern):
        console.print(
            f"[red]Pattern must start with one of:[/red] {', '.join(CacheKeys.ALL_PATTERNS)}"
        )
        raise typer.Exit(code=1)
    return pattern


@app.command("keys")
def list_keys(
    pattern: str = typer.Argument("properties:*", help="Key pattern to match"),
    limit: int = typer.Option(100, "--limit", "-n", min=1, help="Maximum keys to show"),
) -> None:
    """List cached keys with their remaining TTL."""
    pattern = _check_pattern(pattern)

    async def collect(store: RedisCache) -> list[tuple[str, int]]:
        return [(key, await store.ttl(key)) for key in await store.keys(pattern, limit=limit)]

    entries = _run(collect)
    if not entries:
        console.print(f"[yellow]No keys match[/yellow] {pattern}")
        return

    table = Table(title=f"Cache keys matching {pattern}")
    table.add_column("Key")
    table.add_column("TTL (s)", justify="right")
    for key, ttl in entries:
        table.add_row(key, str(ttl))
    console.print(table)


@app.command("invalidate")
def invalidate(
    pattern: str = typer.Argument(..., help="Key pattern to purge"),
) -> None:
    """Delete every key matching a pattern."""
    pattern = _check_pattern(pattern)
    outcome = _run(lambda store: store.delete_pattern(pattern))
    if outcome.warnings:
        for warning in outcome.warnings:
            console.print(f"[red]✗[/red] {warning.detail}")
        raise typer.Exit(code=2)
    console.print(f"[green]✓[/green] Deleted {outcome.count} key(s) matching {pattern}")


@app.command("flush")
def flush(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Purge every property cache entry."""
    if not yes:
        typer.confirm("Delete all cached property data?", abort=True)

    report = _run(lambda store: CacheFacade(store=store, enabled=True).invalidate_property_caches())
    if report.warnings:
        for warning in report.warnings:
            console.print(f"[red]✗[/red] {warning.key}: {warning.detail}")
        raise typer.Exit(code=2)
    console.print(f"[green]✓[/green] Deleted {report.count} property cache key(s)")
