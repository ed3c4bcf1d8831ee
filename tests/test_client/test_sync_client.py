"""Tests for the Spotify Web API client."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx
import pytest

from myplaylist.auth import AuthEvent, TokenKey
from myplaylist.client.sync_client import SpotifyClient, TimeRange, TopItemKind
from myplaylist.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from myplaylist.models import AppConfig

API_BASE = "https://api.spotify.com/v1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build a mock httpx.Response with JSON content."""
    return httpx.Response(status_code=status_code, json=data)


class _Api:
    """Recording stand-in for the Web API."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def logged_in(seed, clock) -> None:
    seed(clock.now + timedelta(hours=1))


def _client(service, api: _Api) -> SpotifyClient:
    http_client = httpx.Client(base_url=API_BASE, transport=httpx.MockTransport(api.handler))
    return SpotifyClient(service, AppConfig(), http_client=http_client)


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


class TestContextManager:
    def test_enter_creates_client(self, service) -> None:
        client = SpotifyClient(service, AppConfig())
        assert client._client is None
        with client:
            assert client._client is not None
            assert str(client._client.base_url).rstrip("/") == API_BASE
        assert client._client is None

    def test_injected_client_left_open(self, service) -> None:
        http_client = httpx.Client(base_url=API_BASE)
        with SpotifyClient(service, AppConfig(), http_client=http_client):
            pass
        assert not http_client.is_closed
        http_client.close()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestAuthenticatedRequests:
    def test_sends_bearer_token(self, service, logged_in) -> None:
        api = _Api(_json_response({"id": "user-1"}))
        with _client(service, api) as client:
            assert client.current_user() == {"id": "user-1"}

        request = api.requests[0]
        assert request.url.path == "/v1/me"
        assert request.headers["authorization"] == "Bearer AT1"

    def test_refreshes_expired_token_first(self, service, seed, clock, token_endpoint) -> None:
        seed(clock.now - timedelta(seconds=1))
        token_endpoint.reply_token("AT2", 3600, None)
        api = _Api(_json_response({"id": "user-1"}))

        with _client(service, api) as client:
            client.current_user()

        assert len(token_endpoint.requests) == 1
        assert api.requests[0].headers["authorization"] == "Bearer AT2"

    def test_not_logged_in_raises_without_request(self, service) -> None:
        api = _Api()
        with _client(service, api) as client:
            with pytest.raises(AuthError, match="refresh token missing"):
                client.current_user()
        assert api.requests == []

    def test_top_items_parameters(self, service, logged_in) -> None:
        api = _Api(_json_response({"items": []}))
        with _client(service, api) as client:
            client.top_items(TopItemKind.ARTISTS, TimeRange.SHORT_TERM, limit=5)

        request = api.requests[0]
        assert request.url.path == "/v1/me/top/artists"
        assert request.url.params["time_range"] == "short_term"
        assert request.url.params["limit"] == "5"

    def test_top_items_accepts_plain_strings(self, service, logged_in) -> None:
        api = _Api(_json_response({"items": []}))
        with _client(service, api) as client:
            client.top_items("tracks", "long_term")
        assert api.requests[0].url.path == "/v1/me/top/tracks"
        assert api.requests[0].url.params["time_range"] == "long_term"

    def test_limit_is_clamped(self, service, logged_in) -> None:
        api = _Api(_json_response({"items": []}))
        with _client(service, api) as client:
            client.recently_played(limit=500)
        assert api.requests[0].url.path == "/v1/me/player/recently-played"
        assert api.requests[0].url.params["limit"] == "50"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize("status", [401, 403])
    def test_rejected_token_invalidates_session(self, service, store, events, logged_in, status) -> None:
        received = []
        events.subscribe(AuthEvent.REAUTH_REQUIRED, lambda e, p: received.append(p))
        api = _Api(
            _json_response({"error": {"status": status, "message": "The access token expired"}}, status)
        )

        with _client(service, api) as client:
            with pytest.raises(AuthError, match="The access token expired"):
                client.current_user()

        assert store.load(TokenKey.ACCESS_TOKEN) is None
        assert store.load(TokenKey.REFRESH_TOKEN) is None
        assert received == [{"reason": f"api_http_{status}"}]

    def test_404(self, service, logged_in) -> None:
        api = _Api(_json_response({"error": {"status": 404, "message": "Not found."}}, 404))
        with _client(service, api) as client:
            with pytest.raises(NotFoundError, match="HTTP 404"):
                client.current_user()

    def test_5xx(self, service, store, logged_in) -> None:
        api = _Api(httpx.Response(502, text="Bad Gateway"))
        with _client(service, api) as client:
            with pytest.raises(ServerError, match="Bad Gateway"):
                client.current_user()
        assert store.load(TokenKey.ACCESS_TOKEN) == "AT1"

    def test_other_4xx(self, service, logged_in) -> None:
        api = _Api(_json_response({"error": {"status": 429, "message": "API rate limit exceeded"}}, 429))
        with _client(service, api) as client:
            with pytest.raises(ServerError, match="rate limit"):
                client.current_user()

    def test_transport_error(self, service, logged_in) -> None:
        api = _Api(httpx.ConnectError("dns failure"))
        with _client(service, api) as client:
            with pytest.raises(ConnectionError_, match="dns failure"):
                client.current_user()

    def test_invalid_json_body(self, service, logged_in) -> None:
        api = _Api(httpx.Response(200, content=b"not json"))
        with _client(service, api) as client:
            with pytest.raises(ServerError, match="Invalid JSON"):
                client.current_user()
