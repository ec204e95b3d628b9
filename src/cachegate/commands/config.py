"""Config commands -- view and modify the gateway configuration.

Provides the ``cachegate config`` sub-command group for reading,
updating, resetting and validating the user's configuration file
(:class:`~cachegate.models.GatewayConfig`). Settings are persisted in
the cachegate config directory and control the base URL, retry and
throttling behaviour, and the response cache.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from cachegate.output import error, format_response, info, success, warning


config_app = typer.Typer(no_args_is_help=True)


def _lookup(data: dict, key: str) -> tuple[dict, str]:
    """Return ``(parent, final_key)`` for a dot-separated *key*, or exit with code 2."""
    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)
    return target, final_key


def _coerce(key: str, current: Any, value: str) -> Any:  # noqa: ANN401
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, (int, float)):
        try:
            number = float(value)
        except ValueError:
            error(f"Expected a number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
        if isinstance(current, int) and number.is_integer():
            return int(number)
        return number
    if current is None and value.lower() in ("", "none", "null"):
        return None
    return value


@config_app.command("show")
def config_show(
    key: Optional[str] = typer.Option(
        None, "--key", "-k", help="Show a single setting (dot notation)."
    ),
) -> None:
    """Show the stored configuration.

    Example::

        cachegate config show
        cachegate config show --key cache.ttl_seconds
    """
    from cachegate.config import config_path, load_config
    from cachegate.exceptions import ConfigError

    try:
        config = load_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    data = config.model_dump(mode="json")
    if key is None:
        info(f"Config file: {config_path()}")
        format_response(data)
        return

    parent, final_key = _lookup(data, key)
    format_response({key: parent[final_key]})


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to match the existing field's type (bool or
    number). The updated config is validated against
    :class:`~cachegate.models.GatewayConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        cachegate config set request.base_url https://example.org/api
        cachegate config set rate_limit.burst_size 3
        cachegate config set retry.retry_on_429 true
    """
    from cachegate.config import load_config, parse_config, save_config
    from cachegate.exceptions import ConfigError

    try:
        data = load_config().model_dump(mode="json")
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    parent, final_key = _lookup(data, key)
    coerced = _coerce(key, parent[final_key], value)
    parent[final_key] = coerced

    try:
        new_config = parse_config(data)
    except ConfigError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
    key: Optional[str] = typer.Option(
        None, "--key", "-k", help="Reset only this setting (dot notation)."
    ),
) -> None:
    """Reset configuration to defaults.

    Replaces the whole file, or a single ``--key``, with default values.
    Asks for confirmation unless ``--force`` is active.

    Example::

        cachegate config reset --key rate_limit.batch_delay
        cachegate --force config reset
    """
    from cachegate.config import load_config, parse_config, save_config
    from cachegate.exceptions import ConfigError
    from cachegate.models import GatewayConfig

    force = ctx.obj.get("force", False) if ctx.obj else False

    if key is not None:
        defaults = GatewayConfig().model_dump(mode="json")
        default_parent, final_key = _lookup(defaults, key)
        try:
            data = load_config().model_dump(mode="json")
        except ConfigError:
            # A broken file is replaced wholesale by a default one.
            data = GatewayConfig().model_dump(mode="json")
        parent, _ = _lookup(data, key)
        parent[final_key] = default_parent[final_key]
        save_config(parse_config(data))
        success(f"Reset {key} to {default_parent[final_key]}")
        return

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_config(GatewayConfig())
    success("Configuration reset to defaults.")


@config_app.command("path")
def config_path_command() -> None:
    """Print the paths cachegate reads and writes."""
    from cachegate.config import config_path, resolve_cache_dir, resolve_cookie_path, resolve_config
    from cachegate.exceptions import ConfigError

    try:
        config = resolve_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_response(
        {
            "config": str(config_path()),
            "cache": str(resolve_cache_dir(config)),
            "cookies": str(resolve_cookie_path(config)),
        }
    )


@config_app.command("validate")
def config_validate() -> None:
    """Check the stored configuration for settings that will not work.

    Exits with code 1 when the file cannot be loaded or a problem is found.
    """
    from cachegate.config import load_config, validate_config
    from cachegate.exceptions import ConfigError

    try:
        config = load_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    issues = validate_config(config)
    if issues:
        for issue in issues:
            warning(issue)
        error(f"Configuration has {len(issues)} problem(s).")
        raise typer.Exit(code=1)
    success("Configuration is valid.")
