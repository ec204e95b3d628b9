"""Cache commands -- inspect and maintain the response cache.

Provides the ``cachegate cache`` sub-command group. All commands operate
on the store selected by ``cache.backend`` (see
:func:`~cachegate.cache.backends.create_store`) and work even when the
cache is disabled for lookups.
"""

from __future__ import annotations

from typing import Optional

import typer

from cachegate.output import format_response, info, print_table, success


cache_app = typer.Typer(no_args_is_help=True)


def _open_entries(ctx: typer.Context):
    from cachegate.cache import EntryStore, create_store
    from cachegate.commands.common import context_config

    config = context_config(ctx)
    return EntryStore(create_store(config), config.cache)


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the number of cached entries and their total size.

    Example::

        cachegate cache stats
        cachegate --json cache stats
    """
    from cachegate.output import OutputFormat, get_output

    entries = _open_entries(ctx)
    try:
        stats = entries.stats()
    finally:
        entries.close()

    if get_output().format == OutputFormat.JSON:
        format_response(stats.model_dump(mode="json"))
        return
    print_table(
        ["Setting", "Value"],
        [
            ["enabled", str(stats.enabled)],
            ["backend", stats.backend],
            ["location", stats.location or "-"],
            ["entries", str(stats.entry_count)],
            ["size", _format_size(stats.total_bytes)],
        ],
        title="Response cache",
    )


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete every cached entry.

    Asks for confirmation unless ``--force`` is active.
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Delete all cached responses?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    entries = _open_entries(ctx)
    try:
        removed = entries.clear()
    finally:
        entries.close()
    success(f"Removed {removed} cached entr{'y' if removed == 1 else 'ies'}.")


@cache_app.command("sweep")
def cache_sweep(ctx: typer.Context) -> None:
    """Drop expired and corrupt entries, then enforce ``cache.max_entries``."""
    entries = _open_entries(ctx)
    try:
        result = entries.cleanup()
    finally:
        entries.close()
    success(
        f"Swept {result.total} entr{'y' if result.total == 1 else 'ies'} "
        f"({result.expired} expired, {result.evicted} evicted)."
    )


@cache_app.command("forget")
def cache_forget(
    ctx: typer.Context,
    url: str = typer.Argument(help="Path relative to the base URL, or an absolute URL."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
) -> None:
    """Drop the cached result of one GET request.

    Example::

        cachegate cache forget user.info -P handles=tourist
    """
    from cachegate.client import Gateway
    from cachegate.commands.common import context_config, parse_params

    params = parse_params(param)
    gateway = Gateway(context_config(ctx))
    try:
        gateway.invalidate(url, params or None)
    finally:
        gateway.entries.close()
    success(f"Forgot GET {url}")
