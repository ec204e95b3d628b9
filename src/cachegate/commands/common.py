"""Helpers shared by the CLI commands."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from cachegate.client.gateway import Gateway
from cachegate.config import resolve_config
from cachegate.exceptions import CacheGateError, InvalidUsageError
from cachegate.models import GatewayConfig
from cachegate.output import error

T = TypeVar("T")


def fail(exc: CacheGateError) -> typer.Exit:
    """Report *exc* on stderr and return the matching :class:`typer.Exit`."""
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


def context_config(ctx: typer.Context) -> GatewayConfig:
    """Resolve the effective config using the global flags stored in ``ctx.obj``."""
    obj = ctx.obj or {}
    try:
        return resolve_config(
            cli_base_url=obj.get("base_url"),
            cli_no_cache=obj.get("no_cache", False),
        )
    except CacheGateError as exc:
        raise fail(exc) from None


def run_gateway(config: GatewayConfig, action: Callable[[Gateway], Awaitable[T]]) -> T:
    """Open a :class:`Gateway`, run *action* on it, and map errors to exit codes."""

    async def _main() -> T:
        async with Gateway(config) as gateway:
            return await action(gateway)

    try:
        return asyncio.run(_main())
    except CacheGateError as exc:
        raise fail(exc) from None


def parse_params(values: Optional[list[str]]) -> dict[str, Any]:
    """Turn repeated ``key=value`` options into a dict.

    Raises:
        typer.Exit: With code 2 when an item has no ``=``.
    """
    params: dict[str, Any] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise fail(InvalidUsageError(f"Expected key=value, got: {item}"))
        params[key] = value
    return params
