"""Exception hierarchy for myplaylist.

All exceptions inherit from :class:`MyPlaylistError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`myplaylist.exit_codes`.
The top-level error handler in :func:`myplaylist.app.main` catches
``MyPlaylistError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The auth service itself never raises these across its public methods; it
returns :class:`~myplaylist.auth.base.AuthOutcome` values instead. The
exceptions are raised by the API client and the CLI layer.

Subclass hierarchy::

    MyPlaylistError (exit 1)
    +-- AuthError           (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
"""

from myplaylist.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class MyPlaylistError(Exception):
    """Base exception for all myplaylist errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class AuthError(MyPlaylistError):
    """Raised when no valid access token can be obtained or the API rejects it (401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(MyPlaylistError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(MyPlaylistError):
    """Raised for any other HTTP error status from the API (5xx, 429, 400, ...)."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(MyPlaylistError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(MyPlaylistError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
