"""Built-in CLI sub-commands for cachegate.

* :mod:`~cachegate.commands.cache` -- inspect, sweep, and clear the response cache.
* :mod:`~cachegate.commands.cookies` -- view and edit the persisted session cookies.
* :mod:`~cachegate.commands.config` -- view, modify, and validate configuration.

Each module exports a :class:`typer.Typer` sub-application registered on
the root app in :mod:`cachegate.app`. Shared plumbing (config resolution
from the Typer context, running the gateway, ``key=value`` parsing) lives
in :mod:`~cachegate.commands.common`.
"""
