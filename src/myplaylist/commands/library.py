"""Data commands -- read the logged-in user's Spotify library.

``me``, ``top`` and ``recent`` are registered directly on the root app.
They go through :class:`~myplaylist.client.sync_client.SpotifyClient`, so
an expired access token is refreshed transparently and a rejected one
ends the session.
"""

from __future__ import annotations

from typing import Any

import typer

from myplaylist.auth import AuthEvent, AuthEvents, create_auth_service
from myplaylist.client import SpotifyClient, TimeRange, TopItemKind
from myplaylist.commands import context_config
from myplaylist.exceptions import AuthError, MyPlaylistError
from myplaylist.output import (
    OutputFormat,
    error,
    format_response,
    get_output,
    print_table,
    suggest,
    warning,
)


def _on_reauth_required(event: AuthEvent, payload: dict) -> None:
    warning("Spotify no longer accepts the stored session.")


def _fetch(ctx: typer.Context, call: Any) -> Any:
    """Run *call* with an open client and turn failures into exit codes."""
    config = context_config(ctx)
    events = AuthEvents()
    events.subscribe(AuthEvent.REAUTH_REQUIRED, _on_reauth_required)
    try:
        with create_auth_service(config, events=events) as auth:
            with SpotifyClient(auth, config) as client:
                return call(client)
    except MyPlaylistError as exc:
        error(str(exc))
        if isinstance(exc, AuthError):
            suggest("Log in: myplaylist auth login")
        raise typer.Exit(code=exc.exit_code) from None


def _artist_names(item: dict) -> str:
    return ", ".join(artist.get("name", "") for artist in item.get("artists", []))


def me_command(ctx: typer.Context) -> None:
    """Show the logged-in user's profile."""
    profile = _fetch(ctx, lambda client: client.current_user())
    output = get_output()
    if output.format == OutputFormat.JSON:
        format_response(profile)
        return
    rows = [
        ["Display name", str(profile.get("display_name") or "-")],
        ["User id", str(profile.get("id", "-"))],
        ["Country", str(profile.get("country") or "-")],
        ["Product", str(profile.get("product") or "-")],
        ["Followers", str((profile.get("followers") or {}).get("total", "-"))],
    ]
    print_table(["Field", "Value"], rows, title="Spotify Profile")


def top_command(
    ctx: typer.Context,
    kind: TopItemKind = typer.Argument(help="What to rank: tracks or artists."),
    time_range: TimeRange = typer.Option(
        TimeRange.MEDIUM_TERM, "--range", "-r", help="Time window for the ranking."
    ),
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=50, help="Number of items."),
) -> None:
    """List the user's top tracks or artists."""
    page = _fetch(ctx, lambda client: client.top_items(kind, time_range, limit))
    output = get_output()
    if output.format == OutputFormat.JSON:
        format_response(page)
        return

    items = page.get("items", [])
    if kind == TopItemKind.TRACKS:
        headers = ["#", "Track", "Artists"]
        rows = [[str(i), item.get("name", ""), _artist_names(item)] for i, item in enumerate(items, 1)]
    else:
        headers = ["#", "Artist", "Genres"]
        rows = [
            [str(i), item.get("name", ""), ", ".join(item.get("genres", []))]
            for i, item in enumerate(items, 1)
        ]
    print_table(headers, rows, title=f"Top {kind.value} ({time_range.value})")


def recent_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=50, help="Number of plays."),
) -> None:
    """List recently played tracks, newest first."""
    page = _fetch(ctx, lambda client: client.recently_played(limit))
    output = get_output()
    if output.format == OutputFormat.JSON:
        format_response(page)
        return

    rows = []
    for play in page.get("items", []):
        track = play.get("track") or {}
        rows.append([play.get("played_at", ""), track.get("name", ""), _artist_names(track)])
    print_table(["Played at", "Track", "Artists"], rows, title="Recently Played")
