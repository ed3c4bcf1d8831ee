"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for myplaylist:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.myplaylist/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **App config** -- A single :class:`~myplaylist.models.AppConfig` JSON file
  holding the Spotify client id, redirect URI, scopes and request settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the config file, and defaults into the final
  effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from myplaylist.exceptions import ConfigError
from myplaylist.models import AppConfig

_APP_NAME = "myplaylist"
_CONFIG_FILENAME = "config.json"

ENV_CLIENT_ID = "MYPLAYLIST_CLIENT_ID"
ENV_REDIRECT_URI = "MYPLAYLIST_REDIRECT_URI"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/myplaylist/`` (default ``~/.config/myplaylist/``).
    On macOS/Windows: ``~/.myplaylist/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (credentials, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/myplaylist/`` (default ``~/.local/share/myplaylist/``).
    On macOS/Windows: ``~/.myplaylist/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_credentials_dir() -> Path:
    """Return ``<data_dir>/credentials``, creating it with owner-only permissions."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given it is applied to the temp file before any content is written, so
    secrets are never readable by other users, even momentarily.
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
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- App config ---


def config_path() -> Path:
    """Path to the app config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> AppConfig:
    """Load the app configuration from the config directory.

    Returns:
        The deserialised :class:`~myplaylist.models.AppConfig`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return AppConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AppConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: AppConfig) -> None:
    """Persist the app configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(
    cli_client_id: Optional[str] = None,
    cli_redirect_uri: Optional[str] = None,
) -> AppConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``MYPLAYLIST_CLIENT_ID``, ``MYPLAYLIST_REDIRECT_URI``)
        3. User config (``~/.config/myplaylist/config.json``)
        4. Defaults
    """
    config = load_config()

    env_client_id = os.environ.get(ENV_CLIENT_ID)
    if cli_client_id is not None:
        config.auth.client_id = cli_client_id
    elif env_client_id:
        config.auth.client_id = env_client_id

    env_redirect_uri = os.environ.get(ENV_REDIRECT_URI)
    if cli_redirect_uri is not None:
        config.auth.redirect_uri = cli_redirect_uri
    elif env_redirect_uri:
        config.auth.redirect_uri = env_redirect_uri

    return config
