"""Synchronous Spotify Web API client backed by :class:`AuthService`.

:class:`SpotifyClient` is the consumer side of the token lifecycle: before
every request it asks :meth:`AuthService.ensure_valid_access_token
<myplaylist.auth.service.AuthService.ensure_valid_access_token>` for a
token, sends it as a ``Bearer`` header, and maps error statuses onto the
:mod:`myplaylist.exceptions` hierarchy. A 401 or 403 answer means the
stored token is no longer accepted, so the session is invalidated and the
user is asked to log in again.

Requests are never retried. A failed refresh or a rejected token is
surfaced immediately as :class:`~myplaylist.exceptions.AuthError`.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

import httpx

from myplaylist.auth.service import AuthService
from myplaylist.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from myplaylist.models import AppConfig

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 50


class TimeRange(str, enum.Enum):
    """Window over which Spotify computes a user's top items."""

    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"


class TopItemKind(str, enum.Enum):
    TRACKS = "tracks"
    ARTISTS = "artists"


class SpotifyClient:
    """Blocking client for the Spotify Web API.

    Args:
        auth: Supplies and invalidates the access token.
        config: Base URL and request settings.
        http_client: Client to send requests with. When omitted one is
            created on ``__enter__`` and closed on ``__exit__``.

    Example::

        with SpotifyClient(auth, config) as client:
            profile = client.current_user()
    """

    def __init__(
        self,
        auth: AuthService,
        config: AppConfig,
        *,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._auth = auth
        self._config = config
        self._client = http_client
        self._owns_client = http_client is None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SpotifyClient:
        if self._client is None:
            request = self._config.request
            self._client = httpx.Client(
                base_url=self._config.api_base_url,
                timeout=request.timeout,
                verify=request.verify_ssl,
                follow_redirects=True,
            )
        return self

    def __exit__(self, *args: object) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #

    def current_user(self) -> dict[str, Any]:
        """``GET /me`` -- the logged-in user's profile."""
        return self.get("/me")

    def top_items(
        self,
        kind: TopItemKind,
        time_range: TimeRange = TimeRange.MEDIUM_TERM,
        limit: int = 20,
    ) -> dict[str, Any]:
        """``GET /me/top/{tracks|artists}`` -- the user's most played items."""
        return self.get(
            f"/me/top/{TopItemKind(kind).value}",
            params={"time_range": TimeRange(time_range).value, "limit": _clamp(limit)},
        )

    def recently_played(self, limit: int = 20) -> dict[str, Any]:
        """``GET /me/player/recently-played`` -- the latest listening history."""
        return self.get("/me/player/recently-played", params={"limit": _clamp(limit)})

    # ------------------------------------------------------------------ #
    # Request plumbing
    # ------------------------------------------------------------------ #

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Send an authenticated GET and return the decoded JSON body.

        Raises:
            AuthError: No valid token could be obtained, or the API
                answered 401 / 403.
            NotFoundError: On 404.
            ServerError: On any other error status, or a non-JSON body.
            ConnectionError_: On transport failures.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        outcome = self._auth.ensure_valid_access_token()
        if not outcome.ok:
            raise AuthError(f"Not logged in: {outcome.describe()}")

        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {outcome.token}",
        }
        logger.debug("GET %s params=%s", path, params)
        try:
            response = self._client.get(path, params=params, headers=headers)
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Request to {path} failed: {exc}") from exc

        self._map_response_error(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {path}") from exc

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        msg = _api_error_message(response)
        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            self._auth.invalidate_session(reason=f"api_http_{status}")
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)


def _clamp(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_LIMIT))


def _api_error_message(response: httpx.Response) -> str:
    # Web API errors look like {"error": {"status": 401, "message": "..."}}
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
        if error:
            return str(error)
        return str(body.get("message") or "")
    return str(body)
