"""HTTP client for the Spotify Web API."""

from myplaylist.client.sync_client import SpotifyClient, TimeRange, TopItemKind

__all__ = ["SpotifyClient", "TimeRange", "TopItemKind"]
