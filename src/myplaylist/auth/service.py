"""OAuth2 Authorization Code + PKCE session manager for the Spotify accounts service.

:class:`AuthService` is the only component allowed to decide whether the
stored access token is usable and whether the token endpoint needs to be
called. It builds the authorization URL, exchanges the authorization code,
refreshes expired tokens, and wipes the session on logout or when the
server rejects a refresh.

The service never caches tokens itself: every decision re-reads the
:class:`~myplaylist.auth.token_store.TokenStore`. Each public operation
performs at most one HTTP request, never retries, and returns exactly one
:class:`~myplaylist.auth.base.AuthOutcome` instead of raising.

Typical usage::

    from myplaylist.auth import create_auth_service, launcher_for

    with create_auth_service(config) as auth:
        outcome = auth.login(launcher_for(config.auth.redirect_uri))
        ...
        outcome = auth.ensure_valid_access_token()
        if outcome.ok:
            headers = {"Authorization": f"Bearer {outcome.token}"}

See Also:
    :mod:`myplaylist.auth.launcher` for the consent-screen front ends.
    :class:`~myplaylist.client.sync_client.SpotifyClient` for the consumer
    that turns 401/403 responses into :meth:`AuthService.invalidate_session`.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union
from urllib.parse import urlencode, urlparse

import httpx

from myplaylist.auth.base import AuthErrorKind, AuthOutcome
from myplaylist.auth.events import AuthEvent, AuthEvents
from myplaylist.auth.launcher import AuthorizationLauncher, parse_callback_url
from myplaylist.auth.pkce import generate_pkce_pair
from myplaylist.auth.token_store import (
    FileSecretBackend,
    MemorySecretBackend,
    SecretBackend,
    TokenKey,
    TokenStore,
)
from myplaylist.exceptions import ConfigError
from myplaylist.models import AppConfig, RequestConfig, SpotifyAuthConfig, TokenResponse

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Token lifecycle manager: login URL, code exchange, refresh, expiry, logout.

    Args:
        config: Client id, redirect URI, scopes and endpoint URLs.
        store: Where tokens and the PKCE verifier are persisted.
        http_client: Client used for token requests. When omitted the
            service creates one from *request* and closes it in
            :meth:`close`; an injected client is left open.
        request: Timeout / TLS settings for the self-created client.
        clock: Returns the current time as an aware UTC datetime.
        events: Bus that receives :class:`~myplaylist.auth.events.AuthEvent`
            notifications.
    """

    def __init__(
        self,
        config: SpotifyAuthConfig,
        store: TokenStore,
        *,
        http_client: Optional[httpx.Client] = None,
        request: Optional[RequestConfig] = None,
        clock: Optional[Clock] = None,
        events: Optional[AuthEvents] = None,
    ) -> None:
        self._config = config
        self._store = store
        self._clock = clock or _utcnow
        self._events = events or AuthEvents()
        self._refresh_lock = threading.Lock()
        self._owns_client = http_client is None
        if http_client is None:
            request = request or RequestConfig()
            http_client = httpx.Client(timeout=request.timeout, verify=request.verify_ssl)
        self._http = http_client

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def __enter__(self) -> AuthService:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            self._http.close()

    @property
    def config(self) -> SpotifyAuthConfig:
        return self._config

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def events(self) -> AuthEvents:
        return self._events

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login_url(self) -> Optional[str]:
        """Start a login attempt and return the authorization URL.

        Generates a fresh PKCE verifier (replacing any left over from an
        abandoned attempt), persists it, and builds the authorization URL
        with the S256 challenge. Returns ``None`` without touching the store
        if the configured ``authorize_url`` is not an absolute URL.
        """
        parsed = urlparse(self._config.authorize_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.error("Invalid authorize_url: %r", self._config.authorize_url)
            return None

        verifier, challenge = generate_pkce_pair()
        if not challenge:
            return None
        self._store.save(verifier, TokenKey.CODE_VERIFIER)

        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self._config.client_id,
            "scope": " ".join(self._config.scopes),
            "redirect_uri": self._config.redirect_uri,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }
        if self._config.show_dialog:
            params["show_dialog"] = "true"

        separator = "&" if parsed.query else "?"
        logger.debug("Built authorization URL for client %s", self._config.client_id)
        return f"{self._config.authorize_url}{separator}{urlencode(params)}"

    def login(self, launcher: AuthorizationLauncher) -> AuthOutcome:
        """Run the whole interactive flow through *launcher*.

        A cancelled or failing launcher abandons the attempt: the verifier
        is deleted and nothing else in the store changes.
        """
        url = self.login_url()
        if url is None:
            return AuthOutcome.failure(
                AuthErrorKind.CONFIGURATION_ERROR,
                f"cannot build authorization URL from {self._config.authorize_url!r}",
            )

        try:
            callback_url = launcher.present(url)
        except OSError as exc:
            self._store.delete(TokenKey.CODE_VERIFIER)
            logger.warning("Authorization launcher failed: %s", exc)
            return AuthOutcome.failure(AuthErrorKind.AUTHORIZATION_CANCELLED, str(exc))

        if callback_url is None:
            self._store.delete(TokenKey.CODE_VERIFIER)
            return AuthOutcome.failure(
                AuthErrorKind.AUTHORIZATION_CANCELLED, "no authorization callback received"
            )
        return self.handle_callback(callback_url)

    def handle_callback(self, callback_url: str) -> AuthOutcome:
        """Finish a login from the redirect URL the authorization server sent.

        A denial (``error=...``) or a redirect without ``code`` abandons the
        attempt and deletes the verifier; otherwise the code is exchanged
        via :meth:`fetch_access_token`.
        """
        params = parse_callback_url(callback_url)
        if params.error:
            self._store.delete(TokenKey.CODE_VERIFIER)
            detail = params.error
            if params.error_description:
                detail += f" - {params.error_description}"
            logger.info("Authorization denied: %s", detail)
            return AuthOutcome.failure(AuthErrorKind.AUTHORIZATION_DENIED, detail)
        if not params.code:
            self._store.delete(TokenKey.CODE_VERIFIER)
            return AuthOutcome.failure(
                AuthErrorKind.INVALID_CALLBACK, "redirect carried no authorization code"
            )
        return self.fetch_access_token(params.code)

    def fetch_access_token(self, code: str) -> AuthOutcome:
        """Exchange an authorization *code* for tokens.

        The stored verifier is read before the request and deleted exactly
        once after it completes, whatever the result. Without a verifier no
        request is made.
        """
        verifier = self._store.load(TokenKey.CODE_VERIFIER)
        if verifier is None:
            logger.warning("Token exchange attempted without a PKCE verifier")
            return AuthOutcome.failure(
                AuthErrorKind.PKCE_VERIFIER_MISSING, "restart the login to get a new verifier"
            )

        try:
            result = self._post_token(
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self._config.redirect_uri,
                    "client_id": self._config.client_id,
                    "code_verifier": verifier,
                }
            )
            if isinstance(result, AuthOutcome):
                logger.warning("Token exchange failed: %s", result.describe())
                return result
            outcome = self._persist(result)
            if not outcome.ok:
                logger.warning("Token exchange failed: %s", outcome.describe())
                return outcome
        finally:
            self._store.delete(TokenKey.CODE_VERIFIER)

        logger.info("Token exchange succeeded; access token valid until %s", outcome.expires_at)
        self._events.publish(AuthEvent.LOGGED_IN, expires_at=outcome.expires_at)
        return outcome

    # ------------------------------------------------------------------ #
    # Refresh / validity
    # ------------------------------------------------------------------ #

    def refresh_access_token(self) -> AuthOutcome:
        """Trade the stored refresh token for a new access token.

        A non-200 answer means the refresh token is no longer trusted: the
        whole store is cleared and :attr:`AuthEvent.REAUTH_REQUIRED` is
        published. Network and decoding failures leave the store as it was.
        If the response carries no new refresh token the old one is kept.
        """
        refresh_token = self._store.load(TokenKey.REFRESH_TOKEN)
        if refresh_token is None:
            return AuthOutcome.failure(
                AuthErrorKind.REFRESH_TOKEN_MISSING, "no refresh token stored"
            )

        result = self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._config.client_id,
            }
        )
        if isinstance(result, AuthOutcome):
            logger.warning("Token refresh failed: %s", result.describe())
            if result.error is AuthErrorKind.INVALID_HTTP_STATUS:
                self._store.clear_all()
                self._events.publish(
                    AuthEvent.REAUTH_REQUIRED,
                    reason="refresh_rejected",
                    status_code=result.status_code,
                )
            return result

        outcome = self._persist(result, fallback_refresh_token=refresh_token)
        if not outcome.ok:
            logger.warning("Token refresh failed: %s", outcome.describe())
            return outcome
        logger.info("Access token refreshed; valid until %s", outcome.expires_at)
        return outcome

    def ensure_valid_access_token(self) -> AuthOutcome:
        """Return a usable access token, refreshing it if needed.

        The single call to make before any API request. A stored token whose
        expiry is still in the future is returned without a network call.
        Otherwise one refresh is attempted. Concurrent callers are
        serialised on the refresh: whoever waited re-reads the store and
        reuses the token the first caller obtained.
        """
        current = self._stored_valid_token()
        if current is not None:
            return current

        with self._refresh_lock:
            current = self._stored_valid_token()
            if current is not None:
                return current
            return self.refresh_access_token()

    def is_token_expired(self) -> bool:
        """True if no expiry is stored or the current time has reached it."""
        expires_at = self._store.load_expiration()
        if expires_at is None:
            return True
        return self._clock() >= expires_at

    def is_logged_in(self) -> bool:
        """A session exists if the access token is usable or a refresh token is stored."""
        if self._stored_valid_token() is not None:
            return True
        return self._store.load(TokenKey.REFRESH_TOKEN) is not None

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self) -> None:
        """Clear every stored secret. Safe to call repeatedly."""
        self._store.clear_all()
        self._events.publish(AuthEvent.LOGGED_OUT)

    def invalidate_session(self, reason: str = "unauthorized") -> None:
        """Log out and broadcast that the user must authenticate again.

        Called by API consumers when a request made with the stored token
        comes back 401 or 403.
        """
        logger.info("Session invalidated: %s", reason)
        self.logout()
        self._events.publish(AuthEvent.REAUTH_REQUIRED, reason=reason)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _stored_valid_token(self) -> Optional[AuthOutcome]:
        expires_at = self._store.load_expiration()
        if expires_at is None or expires_at <= self._clock():
            return None
        token = self._store.load(TokenKey.ACCESS_TOKEN)
        if token is None:
            return None
        return AuthOutcome.success(token, expires_at)

    def _post_token(self, data: dict[str, str]) -> Union[TokenResponse, AuthOutcome]:
        """POST a form-encoded grant to the token endpoint.

        Returns the decoded :class:`~myplaylist.models.TokenResponse`, or an
        :class:`AuthOutcome` failure describing what went wrong.
        """
        try:
            response = self._http.post(
                self._config.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            return AuthOutcome.failure(AuthErrorKind.NETWORK_ERROR, str(exc))

        if response.status_code != 200:
            return AuthOutcome.failure(
                AuthErrorKind.INVALID_HTTP_STATUS,
                _error_detail(response),
                status_code=response.status_code,
            )

        try:
            return TokenResponse.model_validate(response.json())
        except ValueError as exc:
            return AuthOutcome.failure(
                AuthErrorKind.DECODING_ERROR, f"unexpected token response: {type(exc).__name__}"
            )

    def _persist(
        self,
        response: TokenResponse,
        fallback_refresh_token: Optional[str] = None,
    ) -> AuthOutcome:
        try:
            expires_at = self._clock() + timedelta(seconds=response.expires_in)
        except OverflowError:
            return AuthOutcome.failure(
                AuthErrorKind.DECODING_ERROR, f"expires_in out of range: {response.expires_in}"
            )
        self._store.save(response.access_token, TokenKey.ACCESS_TOKEN)
        refresh_token = response.refresh_token or fallback_refresh_token
        if refresh_token:
            self._store.save(refresh_token, TokenKey.REFRESH_TOKEN)
        self._store.save_expiration(expires_at)
        return AuthOutcome.success(response.access_token, expires_at)


def _error_detail(response: httpx.Response) -> str:
    """Pull the OAuth ``error`` / ``error_description`` out of an error body."""
    try:
        body: Any = response.json()
    except ValueError:
        return response.reason_phrase
    if not isinstance(body, dict):
        return response.reason_phrase
    error = body.get("error")
    if isinstance(error, dict):
        # Web API style: {"error": {"status": 400, "message": "..."}}
        return str(error.get("message") or response.reason_phrase)
    if error:
        description = body.get("error_description")
        return f"{error} - {description}" if description else str(error)
    return response.reason_phrase


def create_secret_backend(storage: str) -> SecretBackend:
    """Return the backend named by ``SpotifyAuthConfig.storage``.

    Raises:
        ConfigError: For an unknown storage name.
    """
    if storage == "file":
        return FileSecretBackend()
    if storage == "memory":
        return MemorySecretBackend()
    raise ConfigError(f"Unknown secret storage backend: {storage!r} (expected 'file' or 'memory')")


def create_auth_service(
    config: AppConfig,
    *,
    events: Optional[AuthEvents] = None,
    http_client: Optional[httpx.Client] = None,
) -> AuthService:
    """Build an :class:`AuthService` wired to the configured secret storage.

    The caller owns the returned service and should close it (or use it as
    a context manager) when done.
    """
    store = TokenStore(create_secret_backend(config.auth.storage), config.auth.namespace)
    return AuthService(
        config.auth,
        store,
        http_client=http_client,
        request=config.request,
        events=events,
    )
