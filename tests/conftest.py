"""Shared test fixtures for myplaylist.

Provides isolated config environments, an in-memory token store, a
controllable clock, a recording fake of the Spotify accounts service, and
CLI helpers. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from myplaylist.auth import AuthEvents, AuthService, MemorySecretBackend, TokenKey, TokenStore
from myplaylist.models import SpotifyAuthConfig
from myplaylist.output import reset_output

START = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager to be created on next use.
    """
    yield
    reset_output()
    # The root callback installs a RichHandler and stops propagation.
    logger = logging.getLogger("myplaylist")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and credentials to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config or stored tokens, and clears
    the MYPLAYLIST_* environment overrides.
    """
    monkeypatch.setattr("myplaylist.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["MYPLAYLIST_CLIENT_ID", "MYPLAYLIST_REDIRECT_URI"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Auth fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Settable replacement for ``datetime.now(timezone.utc)``."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class TokenEndpoint:
    """Recording stand-in for the Spotify token endpoint.

    Each queued reply is either an :class:`httpx.Response`, an exception
    instance to raise, or a callable taking the request. Requests are kept
    in :attr:`requests` with their decoded form bodies in :attr:`forms`.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.forms: list[dict[str, str]] = []
        self._replies: list[Any] = []

    def reply(self, reply: Any) -> None:
        self._replies.append(reply)

    def reply_token(
        self,
        access_token: str = "AT1",
        expires_in: int = 3600,
        refresh_token: Optional[str] = "RT1",
        status_code: int = 200,
    ) -> None:
        body: dict[str, Any] = {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": expires_in,
            "scope": "user-top-read",
        }
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        self.reply(httpx.Response(status_code, json=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.forms.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        if not self._replies:
            raise AssertionError(f"Unexpected request to {request.url}")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
def store() -> TokenStore:
    return TokenStore(MemorySecretBackend())


@pytest.fixture
def events() -> AuthEvents:
    return AuthEvents()


@pytest.fixture
def auth_config() -> SpotifyAuthConfig:
    return SpotifyAuthConfig(client_id="client-123", redirect_uri="myplaylist://callback")


@pytest.fixture
def make_service(
    auth_config: SpotifyAuthConfig,
    store: TokenStore,
    clock: FakeClock,
    events: AuthEvents,
    token_endpoint: TokenEndpoint,
) -> Callable[..., AuthService]:
    """Factory for services wired to the shared store, clock and fake endpoint."""
    created: list[httpx.Client] = []

    def factory(**overrides: Any) -> AuthService:
        http_client = httpx.Client(transport=httpx.MockTransport(token_endpoint.handler))
        created.append(http_client)
        config = overrides.pop("config", auth_config)
        kwargs: dict[str, Any] = {
            "http_client": http_client,
            "clock": clock,
            "events": events,
        }
        kwargs.update(overrides)
        return AuthService(config, store, **kwargs)

    yield factory
    for client in created:
        client.close()


@pytest.fixture
def service(make_service: Callable[..., AuthService]) -> AuthService:
    return make_service()


@pytest.fixture
def seed(store: TokenStore) -> Callable[..., None]:
    """Put a session in the shared store as a previous login would have."""

    def _seed(
        expires_at: datetime,
        access_token: str = "AT1",
        refresh_token: Optional[str] = "RT1",
    ) -> None:
        store.save(access_token, TokenKey.ACCESS_TOKEN)
        if refresh_token is not None:
            store.save(refresh_token, TokenKey.REFRESH_TOKEN)
        store.save_expiration(expires_at)

    return _seed


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def cli_auth(
    monkeypatch: pytest.MonkeyPatch,
    isolated_config: Path,
    store: TokenStore,
    clock: FakeClock,
    token_endpoint: TokenEndpoint,
) -> TokenStore:
    """Route CLI commands to the shared store, clock and fake token endpoint.

    Returns the store the commands read and write.
    """
    clients: list[httpx.Client] = []

    def factory(config, *, events: Optional[AuthEvents] = None, http_client=None) -> AuthService:
        client = httpx.Client(transport=httpx.MockTransport(token_endpoint.handler))
        clients.append(client)
        return AuthService(config.auth, store, http_client=client, clock=clock, events=events)

    monkeypatch.setattr("myplaylist.commands.auth.create_auth_service", factory)
    monkeypatch.setattr("myplaylist.commands.library.create_auth_service", factory)
    yield store
    for client in clients:
        client.close()
