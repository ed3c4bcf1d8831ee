"""In-process broadcast of session changes.

A refresh may be triggered implicitly from many call sites, so a failure
that forces the user to log in again cannot be reported through a single
return value. Instead :class:`~myplaylist.auth.service.AuthService`
publishes an :class:`AuthEvent` on an :class:`AuthEvents` bus, and
whatever presents the session (the CLI, a UI) subscribes to it.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AuthEvent(str, enum.Enum):
    LOGGED_IN = "logged_in"
    LOGGED_OUT = "logged_out"
    REAUTH_REQUIRED = "reauth_required"


Subscriber = Callable[[AuthEvent, dict[str, Any]], None]


class AuthEvents:
    """Publish/subscribe bus for :class:`AuthEvent` notifications.

    Subscribers are called synchronously, in subscription order, on the
    publishing thread. Marshalling to a UI thread is the subscriber's job.
    A subscriber that raises is logged and skipped so it cannot mask the
    auth operation that published the event.

    Example::

        events = AuthEvents()
        events.subscribe(AuthEvent.REAUTH_REQUIRED, lambda event, payload: show_login())
    """

    def __init__(self) -> None:
        self._subscribers: dict[AuthEvent, list[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: AuthEvent, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.setdefault(event, []).append(callback)

    def unsubscribe(self, event: AuthEvent, callback: Subscriber) -> None:
        """Remove *callback*; unknown callbacks are ignored."""
        with self._lock:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def publish(self, event: AuthEvent, **payload: Any) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))
        for callback in callbacks:
            try:
                callback(event, dict(payload))
            except Exception:
                logger.exception("Subscriber for %s failed", event.value)
