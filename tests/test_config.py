"""Tests for myplaylist.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from myplaylist.config import (
    atomic_write,
    config_path,
    get_config_dir,
    get_credentials_dir,
    get_data_dir,
    load_config,
    resolve_config,
    save_config,
)
from myplaylist.exceptions import ConfigError
from myplaylist.models import DEFAULT_CLIENT_ID, DEFAULT_REDIRECT_URI, AppConfig, SpotifyAuthConfig


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_from_env(self, isolated_config: Path) -> None:
        assert get_config_dir() == isolated_config / "config" / "myplaylist"
        assert get_config_dir().is_dir()

    def test_data_dir_from_env(self, isolated_config: Path) -> None:
        assert get_data_dir() == isolated_config / "data" / "myplaylist"

    def test_config_dir_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("myplaylist.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".config" / "myplaylist"

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("myplaylist.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".myplaylist"
        assert get_data_dir() == tmp_path / ".myplaylist" / "data"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_credentials_dir_is_owner_only(self, isolated_config: Path) -> None:
        path = get_credentials_dir()
        assert path == isolated_config / "data" / "myplaylist" / "credentials"
        assert stat.S_IMODE(path.stat().st_mode) & 0o077 == 0


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_content(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "file.json"
        atomic_write(target, '{"a": 1}')
        assert target.read_text() == '{"a": 1}'

    def test_replaces_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        target.write_text("old")
        atomic_write(target, "new")
        assert target.read_text() == "new"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_mode(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        atomic_write(target, "{}", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_failure_leaves_no_temp_file(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        target.write_text("keep")
        with patch("myplaylist.config.os.replace", side_effect=OSError("rename failed")):
            with pytest.raises(OSError):
                atomic_write(target, "new")
        assert target.read_text() == "keep"
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


class TestLoadSave:
    def test_missing_file_gives_defaults(self, isolated_config: Path) -> None:
        config = load_config()
        assert config.auth.client_id == DEFAULT_CLIENT_ID
        assert config.auth.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.auth.authorize_url == "https://accounts.spotify.com/authorize"
        assert config.auth.token_url == "https://accounts.spotify.com/api/token"
        assert config.api_base_url == "https://api.spotify.com/v1"

    def test_roundtrip(self, isolated_config: Path) -> None:
        config = AppConfig(auth=SpotifyAuthConfig(client_id="abc", storage="memory"))
        save_config(config)
        assert load_config() == config

    def test_unknown_keys_ignored(self, isolated_config: Path) -> None:
        _write_json(config_path(), {"auth": {"client_id": "abc", "future": 1}, "other": True})
        assert load_config().auth.client_id == "abc"

    def test_invalid_json(self, isolated_config: Path) -> None:
        config_path().write_text("{broken")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config()

    def test_invalid_types(self, isolated_config: Path) -> None:
        _write_json(config_path(), {"request": {"timeout": "soon"}})
        with pytest.raises(ConfigError):
            load_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config().auth.client_id == DEFAULT_CLIENT_ID

    def test_file_over_defaults(self, isolated_config: Path) -> None:
        _write_json(config_path(), {"auth": {"client_id": "from-file"}})
        assert resolve_config().auth.client_id == "from-file"

    def test_env_over_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(config_path(), {"auth": {"client_id": "from-file"}})
        monkeypatch.setenv("MYPLAYLIST_CLIENT_ID", "from-env")
        monkeypatch.setenv("MYPLAYLIST_REDIRECT_URI", "http://127.0.0.1:8765/callback")
        config = resolve_config()
        assert config.auth.client_id == "from-env"
        assert config.auth.redirect_uri == "http://127.0.0.1:8765/callback"

    def test_cli_over_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MYPLAYLIST_CLIENT_ID", "from-env")
        config = resolve_config(cli_client_id="from-cli")
        assert config.auth.client_id == "from-cli"

    def test_empty_env_is_ignored(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MYPLAYLIST_CLIENT_ID", "")
        assert resolve_config().auth.client_id == DEFAULT_CLIENT_ID
