"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~myplaylist.exceptions.MyPlaylistError` subclass.
Shell wrappers can inspect the exit code to tell a rejected login from a
network outage without parsing stderr.

Example::

    $ myplaylist me
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- session expired, run `myplaylist auth login`
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Typer rejected the command line (unknown option, bad argument value)."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or the stored session is no longer usable."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The Spotify Web API returned an HTTP 5xx (or unexpected 4xx) response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
