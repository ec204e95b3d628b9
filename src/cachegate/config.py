"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for cachegate:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cachegate/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Gateway config** -- A single :class:`~cachegate.models.GatewayConfig`
  JSON file storing timeouts, retry, rate-limit, cache and cookie settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective config.
* **Validation** -- :func:`validate_config` reports semantic problems in
  human-readable form for ``cachegate config validate``.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`), shared with the cache file store and the cookie jar
so that readers never observe a partially written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from cachegate.exceptions import ConfigError
from cachegate.models import GatewayConfig

_APP_NAME = "cachegate"
_CONFIG_FILENAME = "config.json"
_COOKIES_FILENAME = "cookies.json"

ENV_BASE_URL = "CACHEGATE_BASE_URL"
ENV_CACHE_DIR = "CACHEGATE_CACHE_DIR"
ENV_NO_CACHE = "CACHEGATE_NO_CACHE"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/cachegate/`` (default ``~/.config/cachegate/``).
    On macOS/Windows: ``~/.cachegate/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the default response cache directory, creating it if necessary.

    Cached data can be safely deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/cachegate/`` (default ``~/.cache/cachegate/``).
    On macOS/Windows: ``~/.cachegate/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/cachegate/`` (default ``~/.local/share/cachegate/``).
    On macOS/Windows: ``~/.cachegate/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_cache_dir(config: GatewayConfig) -> Path:
    """Return the directory the Entry Store should use for *config*."""
    if config.cache.directory:
        return Path(config.cache.directory).expanduser()
    return get_cache_dir() / "responses"


def resolve_cookie_path(config: GatewayConfig) -> Path:
    """Return the cookie file location for *config*."""
    if config.cookies.path:
        return Path(config.cookies.path).expanduser()
    return get_config_dir() / _COOKIES_FILENAME


# --- Atomic file writes ---


def atomic_write(path: Path, data: str | bytes) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up and the original exception propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    binary = isinstance(data, bytes)
    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb" if binary else "w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding=None if binary else "utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Gateway config ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> GatewayConfig:
    """Load the gateway configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~cachegate.models.GatewayConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return GatewayConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GatewayConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: GatewayConfig) -> None:
    """Persist the gateway configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_no_cache: bool = False,
) -> GatewayConfig:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``, ``cli_no_cache``)
        2. Environment variables (``CACHEGATE_BASE_URL``,
           ``CACHEGATE_CACHE_DIR``, ``CACHEGATE_NO_CACHE``)
        3. User config (``~/.config/cachegate/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~cachegate.models.GatewayConfig`.
    """
    config = load_config()

    env_base_url = os.environ.get(ENV_BASE_URL)
    if cli_base_url is not None:
        config.request.base_url = cli_base_url
    elif env_base_url:
        config.request.base_url = env_base_url

    env_cache_dir = os.environ.get(ENV_CACHE_DIR)
    if env_cache_dir:
        config.cache.directory = env_cache_dir

    if cli_no_cache or _env_flag(ENV_NO_CACHE):
        config.cache.enabled = False

    return config


def parse_config(data: dict) -> GatewayConfig:
    """Validate a raw config mapping, converting failures to :class:`ConfigError`."""
    try:
        return GatewayConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def validate_config(config: GatewayConfig) -> list[str]:
    """Return human-readable problems with *config*; an empty list means valid.

    Field-level constraints are already enforced by the Pydantic models.
    This catches combinations that validate structurally but will not work.
    """
    issues: list[str] = []
    if not config.request.base_url.strip():
        issues.append("request.base_url must not be empty")
    elif not config.request.base_url.startswith(("http://", "https://")):
        issues.append("request.base_url must start with http:// or https://")
    if config.cache.max_entries < 1:
        issues.append("cache.max_entries must be at least 1 (0 empties the cache on every write)")
    if config.cache.directory is not None and not config.cache.directory.strip():
        issues.append("cache.directory must not be an empty string")
    if config.retry.max_retries > 0 and config.retry.base_delay == 0:
        issues.append("retry.base_delay of 0 retries without any backoff")
    if config.rate_limit.batch_delay == 0:
        issues.append("rate_limit.batch_delay of 0 disables throttling between batches")
    return issues
