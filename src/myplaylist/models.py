"""Canonical Pydantic models shared across all myplaylist modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`SpotifyAuthConfig`, :class:`RequestConfig`, :class:`OutputConfig`
    and :class:`AppConfig`.

**Wire models** -- decoded from the Spotify accounts service:
    :class:`TokenResponse`.

All models use Pydantic v2. Configuration models accept unknown keys with
``extra="ignore"`` so that a config file written by a newer release still
loads.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CLIENT_ID = "ad27c119b1734fd4b8b10795a180aeaa"
DEFAULT_REDIRECT_URI = "myplaylist://callback"
DEFAULT_SCOPES = [
    "user-top-read",
    "user-read-recently-played",
    "user-read-currently-playing",
    "user-read-playback-state",
    "user-library-read",
    "playlist-read-private",
    "playlist-read-collaborative",
    "user-follow-read",
]


# --- Configuration ---


class SpotifyAuthConfig(BaseModel):
    """OAuth2 PKCE settings for the Spotify accounts service.

    Only public values live here. PKCE needs no client secret, so nothing in
    this model is sensitive; tokens are kept by
    :class:`~myplaylist.auth.token_store.TokenStore`.

    Example::

        SpotifyAuthConfig(
            client_id="abc123",
            redirect_uri="http://127.0.0.1:8765/callback",
        )
    """

    model_config = ConfigDict(extra="ignore")

    client_id: str = Field(default=DEFAULT_CLIENT_ID, description="Spotify app client id")
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI,
        description="Registered redirect URI (custom scheme or loopback http URL)",
    )
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    authorize_url: str = "https://accounts.spotify.com/authorize"
    token_url: str = "https://accounts.spotify.com/api/token"
    show_dialog: bool = Field(
        default=True,
        description="Force the consent dialog instead of reusing the provider session",
    )
    storage: str = Field(
        default="file", description="Secret storage backend: file or memory"
    )
    namespace: str = Field(
        default="com.myplaylist.spotify.auth",
        description="Logical namespace all stored secrets live under",
    )


class RequestConfig(BaseModel):
    """HTTP request settings shared by the auth service and the API client."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class AppConfig(BaseModel):
    """Top-level configuration stored in ``config.json``.

    Loaded by :func:`~myplaylist.config.load_config` and persisted via
    :func:`~myplaylist.config.save_config`. Every field has a default, so a
    missing file yields a working configuration.
    """

    model_config = ConfigDict(extra="ignore")

    auth: SpotifyAuthConfig = Field(default_factory=SpotifyAuthConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    api_base_url: str = "https://api.spotify.com/v1"


# --- Wire models ---

MAX_EXPIRES_IN = 10 * 365 * 24 * 60 * 60
"""Upper bound on a token lifetime accepted from the token endpoint (ten years)."""


class TokenResponse(BaseModel):
    """JSON body returned by the token endpoint for both grant types.

    ``refresh_token`` is optional: the refresh grant may omit it, meaning the
    previous refresh token stays in use. ``token_type`` is not always sent
    on refresh either, so it defaults to ``"Bearer"``.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int = Field(gt=0, le=MAX_EXPIRES_IN)
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
