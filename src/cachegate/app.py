"""Typer application and CLI entry point for cachegate.

This module wires together the top-level Typer application: the global
output/logging flags in :func:`main_callback`, the ``get`` and ``post``
request commands, and the ``cache``, ``cookies`` and ``config``
sub-command groups.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`cachegate.config`: Configuration resolution.
    :mod:`cachegate.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import json
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from cachegate import __version__
from cachegate.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="cachegate",
    help="Cached, rate-limited access to a JSON HTTP API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Sub-command groups
# ------------------------------------------------------------------ #

from cachegate.commands.cache import cache_app  # noqa: E402
from cachegate.commands.config import config_app  # noqa: E402
from cachegate.commands.cookies import cookies_app  # noqa: E402

app.add_typer(cache_app, name="cache", help="Inspect and maintain the response cache.")
app.add_typer(cookies_app, name="cookies", help="Manage persisted session cookies.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cachegate {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the API base URL."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Disable the response cache for this run."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~cachegate.output.OutputManager` and
    the ``cachegate`` logger from CLI flags, and stores shared options in
    the Typer context so that sub-commands can read them via ``ctx.obj``.
    """
    from cachegate.output import (
        OutputFormat,
        OutputManager,
        configure_logging,
        set_output,
    )

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    configure_logging(output)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["no_cache"] = no_cache
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# Request commands
# ------------------------------------------------------------------ #


@app.command("get")
def get_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Path relative to the base URL, or an absolute URL."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
    ttl: Optional[float] = typer.Option(
        None, "--ttl", min=0.001, help="Cache lifetime in seconds for this result."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Skip the cache lookup and fetch fresh data."
    ),
) -> None:
    """Fetch a resource, serving it from the cache while it is fresh.

    Example::

        cachegate get user.info -P handles=tourist
        cachegate --json get contest.list -P gym=false --ttl 600
    """
    from cachegate.commands.common import context_config, parse_params, run_gateway
    from cachegate.output import format_response

    params = parse_params(param)
    config = context_config(ctx)
    payload = run_gateway(
        config,
        lambda gateway: gateway.get(
            url, params or None, ttl=ttl, bypass_cache=refresh
        ),
    )
    format_response(payload)


@app.command("post")
def post_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Path relative to the base URL, or an absolute URL."),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body (JSON, or key=value pairs with --form)."
    ),
    form: bool = typer.Option(
        False, "--form", help="Send the body form-encoded."
    ),
) -> None:
    """Send a POST request. Responses are never cached.

    Example::

        cachegate post submit --data '{"source": "..."}'
        cachegate post enter --form --data 'csrf_token=abc&action=enter'
    """
    from cachegate.commands.common import context_config, run_gateway
    from cachegate.output import format_response

    body = _parse_body(data, form)
    config = context_config(ctx)
    payload = run_gateway(config, lambda gateway: gateway.post(url, body, form=form))
    format_response(payload)


def _parse_body(body: str | None, form: bool = False) -> Any:  # noqa: ANN401
    """Parse *body* as JSON (or ``a=1&b=2`` when *form* is set).

    Falls back to the raw string when it is not valid JSON.
    """
    if body is None:
        return None
    if form:
        from urllib.parse import parse_qsl

        return dict(parse_qsl(body, keep_blank_values=True))
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body


# ------------------------------------------------------------------ #
# Process entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from cachegate.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``cachegate`` console script.

    Unhandled :class:`~cachegate.exceptions.CacheGateError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from cachegate.exceptions import CacheGateError
        from cachegate.output import error

        if isinstance(exc, CacheGateError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
