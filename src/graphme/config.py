"""Settings loading, XDG data paths, and atomic writes.

This module handles all persistent state for graphme:

* **Settings file** -- ``appsettings.json`` holding the identity-provider
  instance, tenant, client id and API root, deserialised into an
  :class:`~graphme.models.AppConfiguration` by
  :func:`load_app_configuration`.
* **Precedence resolution** -- :func:`resolve_config` picks the settings
  file and the API root from CLI flags, environment variables, the file,
  and defaults.
* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.graphme/`` on macOS and Windows. See :func:`get_data_dir`.

File writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so that the token cache is never left half written.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from graphme.exceptions import ConfigurationError
from graphme.models import AppConfiguration

_APP_NAME = "graphme"
_SETTINGS_FILENAME = "appsettings.json"
_TOKEN_CACHE_FILENAME = "token_cache.json"

SETTINGS_ENV_VAR = "GRAPHME_SETTINGS"
API_URL_ENV_VAR = "GRAPHME_API_URL"
TOKEN_CACHE_ENV_VAR = "GRAPHME_TOKEN_CACHE"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def get_data_dir() -> Path:
    """Return the data directory (token cache, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/graphme/`` (default ``~/.local/share/graphme/``).
    On macOS/Windows: ``~/.graphme/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_token_cache_path() -> Path:
    """Return the token cache file path.

    ``$GRAPHME_TOKEN_CACHE`` wins when set; otherwise the file lives in
    :func:`get_data_dir`.
    """
    override = os.environ.get(TOKEN_CACHE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return get_data_dir() / _TOKEN_CACHE_FILENAME


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given, permissions are applied to the temp file before any content is
    written, so the data is never readable with looser permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in the except branch
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


# --- Settings ---


def resolve_settings_path(cli_settings: Optional[str] = None) -> Path:
    """Pick the settings file.

    Precedence (high to low):
        1. ``--settings`` CLI option
        2. ``GRAPHME_SETTINGS`` environment variable
        3. ``./appsettings.json``
    """
    if cli_settings:
        return Path(cli_settings).expanduser()
    env_settings = os.environ.get(SETTINGS_ENV_VAR)
    if env_settings:
        return Path(env_settings).expanduser()
    return Path.cwd() / _SETTINGS_FILENAME


def load_app_configuration(path: Path) -> AppConfiguration:
    """Load and validate the settings file.

    Args:
        path: Location of the JSON settings file.

    Returns:
        The frozen :class:`~graphme.models.AppConfiguration`.

    Raises:
        ConfigurationError: If the file does not exist, cannot be read,
            is not a JSON object, or lacks ``Instance``, ``TenantId`` or
            ``ClientId`` (or has them with the wrong type).
    """
    if not path.is_file():
        raise ConfigurationError(f"Settings file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read settings file {path}: {exc}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in settings file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid settings file {path}: expected a JSON object at the top level"
        )

    try:
        return AppConfiguration.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid settings file {path}: {_describe_validation_error(exc)}"
        ) from exc


def _describe_validation_error(exc: ValidationError) -> str:
    """Summarise a Pydantic validation error as ``Field: problem; ...``."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(item) for item in err["loc"]) or "(root)"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


def resolve_config(
    cli_settings: Optional[str] = None,
    cli_api_url: Optional[str] = None,
) -> AppConfiguration:
    """Resolve the effective configuration with the full precedence chain.

    The settings file is located with :func:`resolve_settings_path`. The
    API root is taken from, in order: ``--api-url``, ``GRAPHME_API_URL``,
    the file's ``GraphApiUrl``, then the default Graph v1.0 root.

    Raises:
        ConfigurationError: If the settings file is unusable.
    """
    config = load_app_configuration(resolve_settings_path(cli_settings))

    api_url = cli_api_url or os.environ.get(API_URL_ENV_VAR)
    if api_url:
        config = config.model_copy(update={"api_base_url": api_url})
    return config
