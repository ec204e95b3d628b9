"""cachegate -- local response cache and rate-limited gateway for HTTP APIs.

Callers ask the gateway for "the result of request X"; it either serves a
still-valid copy from a filesystem-backed cache or performs a throttled,
retried network call and stores the result for future reuse.

Typical use::

    from cachegate import Gateway, load_config

    async with Gateway(load_config()) as gateway:
        contests = await gateway.get("/contest.list", {"gym": "false"})

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for configuration and cache records.
    config: XDG-aware configuration loading and atomic writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    cache: Entry Store, store backends, and eviction sweeper.
    auth: Persistent cookie jar.
    client: Rate-limited dispatcher, retry policy, and gateway.
"""

__version__ = "0.3.0"

from cachegate.client.gateway import Gateway  # noqa: E402
from cachegate.config import load_config  # noqa: E402

__all__ = ["Gateway", "load_config", "__version__"]
