"""myplaylist -- Spotify login and listening-history CLI.

The heart of the package is the OAuth2 Authorization Code + PKCE session
manager in :mod:`myplaylist.auth`: it builds the consent URL, exchanges
the authorization code, keeps the access token fresh and forgets
everything on logout. The CLI and the Web API client are thin consumers
of it.

Typical workflow::

    myplaylist auth login      # browser consent, tokens stored locally
    myplaylist top tracks      # any API call refreshes the token if needed

Modules:
    app: Typer application and CLI entry point.
    auth: PKCE, token storage and the auth service.
    client: Spotify Web API client.
    models: Pydantic models for configuration and token responses.
    config: XDG-aware configuration management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
