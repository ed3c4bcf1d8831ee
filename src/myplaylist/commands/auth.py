"""Auth commands -- manage the Spotify login session.

Provides the ``myplaylist auth`` sub-command group. Every command builds an
:class:`~myplaylist.auth.service.AuthService` from the resolved config and
reports the :class:`~myplaylist.auth.base.AuthOutcome` it gets back:
failures go to stderr and exit with :data:`EXIT_AUTH_FAILURE`.

Typical workflow::

    myplaylist auth login          # browser consent + token exchange
    myplaylist auth status         # is there a usable session?
    myplaylist auth token          # print a valid access token

For redirect URIs the terminal cannot receive, the login can be split in
two steps::

    myplaylist auth url                        # prints the consent URL
    myplaylist auth callback 'myplaylist://callback?code=...'
"""

from __future__ import annotations

import typer

from myplaylist.auth import (
    AuthOutcome,
    PasteCallbackLauncher,
    TokenKey,
    create_auth_service,
    launcher_for,
)
from myplaylist.commands import context_config
from myplaylist.exit_codes import EXIT_AUTH_FAILURE, EXIT_GENERIC_FAILURE
from myplaylist.output import error, info, print_data, print_table, success, suggest

auth_app = typer.Typer(no_args_is_help=True)

LOGIN_HINT = "Log in: myplaylist auth login"


def _fail(outcome: AuthOutcome, hint: str = LOGIN_HINT) -> None:
    error(outcome.describe())
    suggest(hint)
    raise typer.Exit(code=EXIT_AUTH_FAILURE)


def _report_expiry(outcome: AuthOutcome) -> None:
    if outcome.expires_at is not None:
        info(f"Access token valid until {outcome.expires_at.isoformat(timespec='seconds')}")


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    paste: bool = typer.Option(
        False, "--paste", help="Paste the redirect URL instead of listening for it."
    ),
    timeout: float = typer.Option(
        120.0, "--timeout", help="Seconds to wait for the browser callback."
    ),
) -> None:
    """Log in to Spotify through the browser.

    Loopback redirect URIs (``http://127.0.0.1:<port>/...``) are received
    on a temporary local server. Any other redirect URI, or ``--paste``,
    asks for the URL the browser ended up on.

    Example::

        myplaylist auth login
        myplaylist auth login --paste
    """
    config = context_config(ctx)
    if paste:
        launcher = PasteCallbackLauncher()
    else:
        launcher = launcher_for(config.auth.redirect_uri, timeout=timeout)

    with create_auth_service(config) as auth:
        outcome = auth.login(launcher)

    if not outcome.ok:
        _fail(outcome, hint="Try again: myplaylist auth login")
    success("Logged in to Spotify.")
    _report_expiry(outcome)


@auth_app.command("url")
def auth_url(ctx: typer.Context) -> None:
    """Start a login and print the consent URL to stdout.

    The PKCE verifier is stored, so the login can be finished later with
    ``myplaylist auth callback``. Running this again replaces the verifier.
    """
    config = context_config(ctx)
    with create_auth_service(config) as auth:
        url = auth.login_url()

    if url is None:
        error(f"Cannot build a login URL from authorize_url {config.auth.authorize_url!r}.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    print_data(url)
    suggest("After approving, run: myplaylist auth callback '<redirected URL>'")


@auth_app.command("callback")
def auth_callback(
    ctx: typer.Context,
    url: str = typer.Argument(help="The URL the browser was redirected to."),
) -> None:
    """Finish a login started with ``myplaylist auth url``."""
    config = context_config(ctx)
    with create_auth_service(config) as auth:
        outcome = auth.handle_callback(url)

    if not outcome.ok:
        _fail(outcome, hint="Start over: myplaylist auth url")
    success("Logged in to Spotify.")
    _report_expiry(outcome)


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show whether a session exists and when the access token expires.

    Never contacts Spotify; the answer comes from the token store alone.
    """
    config = context_config(ctx)
    with create_auth_service(config) as auth:
        logged_in = auth.is_logged_in()
        expired = auth.is_token_expired()
        expires_at = auth.store.load_expiration()
        has_access = auth.store.load(TokenKey.ACCESS_TOKEN) is not None
        has_refresh = auth.store.load(TokenKey.REFRESH_TOKEN) is not None

    if not has_access:
        access_state = "none"
    else:
        access_state = "expired" if expired else "valid"

    rows = [
        ["Logged in", "yes" if logged_in else "no"],
        ["Access token", access_state],
        ["Expires at", expires_at.isoformat(timespec="seconds") if expires_at else "-"],
        ["Refresh token", "stored" if has_refresh else "none"],
        ["Client id", config.auth.client_id],
        ["Redirect URI", config.auth.redirect_uri],
        ["Storage", config.auth.storage],
    ]
    print_table(["Field", "Value"], rows, title="Spotify Session")

    if not logged_in:
        suggest(LOGIN_HINT)


@auth_app.command("token")
def auth_token(ctx: typer.Context) -> None:
    """Print a valid access token, refreshing it first if it expired.

    Example::

        curl -H "Authorization: Bearer $(myplaylist auth token)" \\
            https://api.spotify.com/v1/me
    """
    config = context_config(ctx)
    with create_auth_service(config) as auth:
        outcome = auth.ensure_valid_access_token()

    if not outcome.ok:
        _fail(outcome)
    print_data(outcome.token)


@auth_app.command("refresh")
def auth_refresh(ctx: typer.Context) -> None:
    """Refresh the access token now, even if it has not expired."""
    config = context_config(ctx)
    with create_auth_service(config) as auth:
        outcome = auth.refresh_access_token()

    if not outcome.ok:
        _fail(outcome)
    success("Access token refreshed.")
    _report_expiry(outcome)


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Forget every stored token and any pending login."""
    config = context_config(ctx)
    with create_auth_service(config) as auth:
        auth.logout()
    success("Logged out.")
