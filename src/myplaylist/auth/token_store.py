"""Secret storage for OAuth tokens and the in-flight PKCE verifier.

:class:`TokenStore` is the only owner of persisted secrets. It exposes a
small keyed API (:meth:`~TokenStore.save`, :meth:`~TokenStore.load`,
:meth:`~TokenStore.delete`, :meth:`~TokenStore.clear_all`) over a
pluggable :class:`SecretBackend`:

* :class:`FileSecretBackend` -- one JSON object per namespace in
  ``~/.local/share/myplaylist/credentials/<namespace>.json`` (XDG) or the
  platform-equivalent directory, written atomically with ``0o600``
  permissions.
* :class:`MemorySecretBackend` -- a plain dict, for tests and sessions
  that must not touch disk.

Writes to different keys are independent; two writes to the same key are
last-write-wins. No lock is taken.

See Also:
    :class:`~myplaylist.auth.service.AuthService` -- the only caller that
    decides when tokens are written or cleared.
"""

from __future__ import annotations

import enum
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from myplaylist.config import atomic_write, get_credentials_dir

logger = logging.getLogger(__name__)


class TokenKey(str, enum.Enum):
    """Fixed logical account names, one per secret type."""

    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"
    EXPIRATION_DATE = "expiration_date"
    CODE_VERIFIER = "code_verifier"


class SecretBackend(ABC):
    """Keyed string storage scoped by a namespace.

    Implementations must treat a missing key as ``None`` and must make
    :meth:`delete` idempotent.
    """

    @abstractmethod
    def get(self, namespace: str, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, namespace: str, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None: ...


class MemorySecretBackend(SecretBackend):
    def __init__(self) -> None:
        self._items: dict[tuple[str, str], str] = {}

    def get(self, namespace: str, key: str) -> Optional[str]:
        return self._items.get((namespace, key))

    def set(self, namespace: str, key: str, value: str) -> None:
        self._items[(namespace, key)] = value

    def delete(self, namespace: str, key: str) -> None:
        self._items.pop((namespace, key), None)


class FileSecretBackend(SecretBackend):
    """Store each namespace as a single ``0o600`` JSON object on disk.

    A missing, unreadable or corrupt file reads as empty, so a damaged
    store forces re-authentication instead of crashing the app.

    Args:
        directory: Where namespace files live. Defaults to
            :func:`~myplaylist.config.get_credentials_dir`.
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        if self._directory is None:
            self._directory = get_credentials_dir()
        return self._directory

    def path_for(self, namespace: str) -> Path:
        """The filesystem path holding *namespace*'s secrets."""
        return self.directory / f"{namespace}.json"

    def get(self, namespace: str, key: str) -> Optional[str]:
        value = self._read(namespace).get(key)
        return value if isinstance(value, str) else None

    def set(self, namespace: str, key: str, value: str) -> None:
        items = self._read(namespace)
        items[key] = value
        self._write(namespace, items)

    def delete(self, namespace: str, key: str) -> None:
        items = self._read(namespace)
        if key not in items:
            return
        del items[key]
        self._write(namespace, items)

    def _read(self, namespace: str) -> dict[str, object]:
        path = self.path_for(namespace)
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError):
            logger.warning("Ignoring unreadable secret file %s", path)
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def _write(self, namespace: str, items: dict[str, object]) -> None:
        text = json.dumps(items, indent=2, sort_keys=True) + "\n"
        atomic_write(self.path_for(namespace), text, mode=0o600)


class TokenStore:
    """Read/write the access token, refresh token, expiry and PKCE verifier.

    Every secret lives under one logical *namespace* and a fixed
    :class:`TokenKey`. Storage errors never propagate: a failed save is
    logged and the next :meth:`load` simply reports the key as absent.

    Args:
        backend: Where secrets are kept.
        namespace: Logical namespace shared by all four keys.

    Example::

        store = TokenStore(MemorySecretBackend())
        store.save("AT1", TokenKey.ACCESS_TOKEN)
        assert store.load(TokenKey.ACCESS_TOKEN) == "AT1"
        store.clear_all()
    """

    def __init__(
        self,
        backend: SecretBackend,
        namespace: str = "com.myplaylist.spotify.auth",
    ) -> None:
        self._backend = backend
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def backend(self) -> SecretBackend:
        return self._backend

    def save(self, value: str, key: TokenKey) -> None:
        """Insert or update the secret stored under *key*."""
        try:
            self._backend.set(self._namespace, key.value, value)
        except OSError as exc:
            logger.warning("Could not persist %s: %s", key.value, exc)

    def load(self, key: TokenKey) -> Optional[str]:
        """Return the stored secret for *key*, or ``None`` if absent."""
        try:
            return self._backend.get(self._namespace, key.value)
        except OSError as exc:
            logger.warning("Could not read %s: %s", key.value, exc)
            return None

    def delete(self, key: TokenKey) -> None:
        """Remove *key*. Deleting an absent key is a no-op."""
        try:
            self._backend.delete(self._namespace, key.value)
        except OSError as exc:
            logger.warning("Could not delete %s: %s", key.value, exc)

    def clear_all(self) -> None:
        """Delete every key in :class:`TokenKey`. The single logout/reset primitive."""
        for key in TokenKey:
            self.delete(key)

    # ------------------------------------------------------------------ #
    # Expiration helpers
    # ------------------------------------------------------------------ #

    def save_expiration(self, expires_at: datetime) -> None:
        """Store *expires_at* as seconds since the epoch."""
        self.save(str(expires_at.timestamp()), TokenKey.EXPIRATION_DATE)

    def load_expiration(self) -> Optional[datetime]:
        """Return the stored expiry as an aware UTC datetime.

        An unparsable value is treated as absent.
        """
        raw = self.load(TokenKey.EXPIRATION_DATE)
        if raw is None:
            return None
        try:
            return datetime.fromtimestamp(float(raw), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.warning("Ignoring unparsable expiration value")
            return None
