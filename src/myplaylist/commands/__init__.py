"""Built-in CLI sub-commands for myplaylist.

* :mod:`~myplaylist.commands.auth` -- log in, inspect and clear the Spotify
  session (the ``myplaylist auth`` group).
* :mod:`~myplaylist.commands.library` -- ``me``, ``top`` and ``recent``,
  registered directly on the root app.

Both read the effective :class:`~myplaylist.models.AppConfig` that
:func:`~myplaylist.app.main_callback` resolved and stored in ``ctx.obj``.
"""

from __future__ import annotations

import typer

from myplaylist.config import resolve_config
from myplaylist.models import AppConfig


def context_config(ctx: typer.Context) -> AppConfig:
    """Return the config resolved by the root callback, resolving it if absent."""
    obj = ctx.obj or {}
    config = obj.get("config")
    if config is None:
        config = resolve_config()
    return config
