"""Cookie commands -- view and edit the persisted session cookies.

The jar normally fills itself from ``Set-Cookie`` response headers;
``cachegate cookies set`` seeds it by hand, e.g. with the ``Cookie``
header copied from a logged-in browser session.
"""

from __future__ import annotations

import typer

from cachegate.output import format_response, info, print_table, success, warning


cookies_app = typer.Typer(no_args_is_help=True)


def _open_jar(ctx: typer.Context):
    from cachegate.auth import CookieJar
    from cachegate.commands.common import context_config
    from cachegate.config import resolve_cookie_path

    return CookieJar(resolve_cookie_path(context_config(ctx)))


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


@cookies_app.command("show")
def cookies_show(
    ctx: typer.Context,
    reveal: bool = typer.Option(
        False, "--reveal", help="Print cookie values unmasked."
    ),
) -> None:
    """List the stored cookies. Values are masked unless ``--reveal`` is given."""
    jar = _open_jar(ctx)
    if not len(jar):
        info(f"No cookies stored in {jar.path}")
        return
    rows = [
        [record.name, record.value if reveal else _mask(record.value)]
        for record in jar.records()
    ]
    print_table(["Name", "Value"], rows, title="Session cookies")


@cookies_app.command("set")
def cookies_set(
    ctx: typer.Context,
    header: str = typer.Argument(help="Cookie header value, e.g. 'a=1; b=2'."),
) -> None:
    """Merge cookies from a ``Cookie`` header value into the jar.

    Example::

        cachegate cookies set "JSESSIONID=abc123; 39ce7=CFh5mV4a"
    """
    jar = _open_jar(ctx)
    stored = jar.merge_header(header)
    if not stored:
        warning("No name=value pairs found; jar unchanged.")
        raise typer.Exit(code=2)
    success(f"Stored {stored} cookie(s); jar now holds {len(jar)}.")


@cookies_app.command("clear")
def cookies_clear(ctx: typer.Context) -> None:
    """Remove every stored cookie (log out)."""
    jar = _open_jar(ctx)
    jar.clear()
    success("Cookies cleared.")


@cookies_app.command("path")
def cookies_path(ctx: typer.Context) -> None:
    """Print the location of the cookie file."""
    format_response({"cookies": str(_open_jar(ctx).path)})
