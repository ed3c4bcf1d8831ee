"""Typer application and CLI entry point for myplaylist.

This module wires the top-level Typer application together: the ``auth``
sub-group from :mod:`myplaylist.commands.auth` and the ``me`` / ``top`` /
``recent`` data commands from :mod:`myplaylist.commands.library`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands and
invokes the Typer app. Unhandled exceptions are written to a crash log
under the data directory.

See Also:
    :mod:`myplaylist.config`: Configuration resolution.
    :mod:`myplaylist.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from myplaylist import __version__
from myplaylist.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="myplaylist",
    help="Log in to Spotify and read your listening history.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"myplaylist {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Spotify app client id (overrides config and env)."
    ),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Registered redirect URI (overrides config and env)."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and log records."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Resolves the effective :class:`~myplaylist.models.AppConfig`, installs
    the global :class:`~myplaylist.output.OutputManager` and routes the
    package's log records through it. The config is stored in ``ctx.obj``
    for sub-commands.

    Without ``--json`` or ``--plain`` the output format comes from the
    ``output.format`` config key.
    """
    from myplaylist.config import resolve_config
    from myplaylist.exceptions import ConfigError
    from myplaylist.output import (
        OutputFormat,
        OutputManager,
        configure_logging,
        error,
        set_output,
    )

    config = None
    config_error: Optional[ConfigError] = None
    try:
        config = resolve_config(cli_client_id=client_id, cli_redirect_uri=redirect_uri)
    except ConfigError as exc:
        config_error = exc

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    elif config is not None:
        try:
            fmt = OutputFormat(config.output.format)
        except ValueError:
            fmt = OutputFormat.AUTO

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    configure_logging(output)

    if config_error is not None:
        error(str(config_error))
        raise typer.Exit(code=config_error.exit_code)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def _register_commands() -> None:
    from myplaylist.commands.auth import auth_app
    from myplaylist.commands.library import me_command, recent_command, top_command

    app.add_typer(auth_app, name="auth", help="Spotify login session management.")
    app.command("me")(me_command)
    app.command("top")(top_command)
    app.command("recent")(recent_command)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from myplaylist.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


_register_commands()


def main() -> None:
    """CLI entry point invoked by the ``myplaylist`` console script.

    Unhandled :class:`~myplaylist.exceptions.MyPlaylistError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from myplaylist.exceptions import MyPlaylistError
        from myplaylist.output import error

        if isinstance(exc, MyPlaylistError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
