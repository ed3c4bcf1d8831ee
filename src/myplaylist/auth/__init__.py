"""Spotify OAuth2 PKCE authentication for myplaylist.

The package is split along the three collaborating pieces of the login
flow plus the seams around them:

- :mod:`~myplaylist.auth.pkce` -- code verifier / S256 challenge generation.
- :mod:`~myplaylist.auth.token_store` -- :class:`TokenStore`, the owner of
  every persisted secret, over a file or in-memory backend.
- :mod:`~myplaylist.auth.service` -- :class:`AuthService`, the token
  lifecycle manager, and the :func:`create_auth_service` factory.
- :mod:`~myplaylist.auth.launcher` -- front ends that show the consent
  screen and collect the redirect.
- :mod:`~myplaylist.auth.events` -- the broadcast used to tell the UI that
  the user has to log in again.

Typical usage::

    from myplaylist.auth import create_auth_service

    with create_auth_service(config) as auth:
        outcome = auth.ensure_valid_access_token()
"""

from myplaylist.auth.base import AuthErrorKind, AuthOutcome
from myplaylist.auth.events import AuthEvent, AuthEvents
from myplaylist.auth.launcher import (
    AuthorizationLauncher,
    LoopbackLauncher,
    PasteCallbackLauncher,
    launcher_for,
    parse_callback_url,
)
from myplaylist.auth.pkce import code_challenge, generate_pkce_pair, generate_verifier
from myplaylist.auth.service import AuthService, create_auth_service
from myplaylist.auth.token_store import (
    FileSecretBackend,
    MemorySecretBackend,
    SecretBackend,
    TokenKey,
    TokenStore,
)

__all__ = [
    "AuthErrorKind",
    "AuthEvent",
    "AuthEvents",
    "AuthOutcome",
    "AuthService",
    "AuthorizationLauncher",
    "FileSecretBackend",
    "LoopbackLauncher",
    "MemorySecretBackend",
    "PasteCallbackLauncher",
    "SecretBackend",
    "TokenKey",
    "TokenStore",
    "code_challenge",
    "create_auth_service",
    "generate_pkce_pair",
    "generate_verifier",
    "launcher_for",
    "parse_callback_url",
]
