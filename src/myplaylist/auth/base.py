"""Result types returned by the auth service.

Every network-facing operation of
:class:`~myplaylist.auth.service.AuthService` returns exactly one
:class:`AuthOutcome`: either a success carrying the access token and its
expiry, or a failure tagged with an :class:`AuthErrorKind`. Errors are
never raised across the service boundary, so callers branch on
:attr:`AuthOutcome.ok` instead of wrapping calls in ``try``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class AuthErrorKind(str, enum.Enum):
    """Why an auth operation failed."""

    PKCE_VERIFIER_MISSING = "pkce_verifier_missing"
    """No verifier on record; the login must be restarted."""

    REFRESH_TOKEN_MISSING = "refresh_token_missing"
    """Nothing to refresh with; the user has to log in."""

    NETWORK_ERROR = "network_error"
    """Transport failure: DNS, TLS, connection refused, timeout."""

    INVALID_HTTP_STATUS = "invalid_http_status"
    """The token endpoint answered with something other than 200."""

    DECODING_ERROR = "decoding_error"
    """The response body was not a valid token response."""

    AUTHORIZATION_DENIED = "authorization_denied"
    """The redirect carried an ``error`` parameter (e.g. ``access_denied``)."""

    AUTHORIZATION_CANCELLED = "authorization_cancelled"
    """The launcher returned no callback (closed window, timeout, empty paste)."""

    INVALID_CALLBACK = "invalid_callback"
    """The redirect had neither ``code`` nor ``error``."""

    CONFIGURATION_ERROR = "configuration_error"
    """The authorization URL could not be assembled from the configured endpoint."""


@dataclass(frozen=True)
class AuthOutcome:
    """Tagged result of a single auth operation.

    Attributes:
        token: The access token on success, ``None`` on failure.
        expires_at: When *token* stops being valid (aware UTC).
        error: The failure tag, or ``None`` on success.
        status_code: HTTP status for ``INVALID_HTTP_STATUS`` failures.
        detail: Human-readable context for diagnostics. Never contains secrets.
    """

    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[AuthErrorKind] = None
    status_code: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, token: str, expires_at: Optional[datetime]) -> AuthOutcome:
        return cls(token=token, expires_at=expires_at)

    @classmethod
    def failure(
        cls,
        error: AuthErrorKind,
        detail: str = "",
        status_code: Optional[int] = None,
    ) -> AuthOutcome:
        return cls(error=error, detail=detail, status_code=status_code)

    def describe(self) -> str:
        """One-line summary suitable for CLI error output."""
        if self.ok:
            return "ok"
        text = self.error.value.replace("_", " ")
        if self.status_code is not None:
            text += f" (HTTP {self.status_code})"
        if self.detail:
            text += f": {self.detail}"
        return text
