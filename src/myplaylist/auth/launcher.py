"""Front ends that show the Spotify consent screen and return the redirect.

The token exchange is the same no matter how the user reaches the consent
screen, so :class:`~myplaylist.auth.service.AuthService` only depends on
the :class:`AuthorizationLauncher` interface: "present this URL and give
me back the callback URL, or ``None`` if the user walked away".

Two launchers are provided:

* :class:`LoopbackLauncher` -- opens the system browser and receives the
  redirect on a one-shot local HTTP server. Needs a redirect URI of the
  form ``http://127.0.0.1:<port>/<path>`` registered with Spotify.
* :class:`PasteCallbackLauncher` -- opens the system browser and asks the
  user to paste the URL the browser was redirected to. Works with custom
  scheme redirect URIs such as ``myplaylist://callback`` that a terminal
  cannot receive directly.

:func:`launcher_for` picks the right one for a redirect URI.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from abc import ABC, abstractmethod
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

import typer

logger = logging.getLogger(__name__)

_LOOPBACK_HOSTS = ("127.0.0.1", "localhost")


@dataclass(frozen=True)
class CallbackParams:
    """Query parameters the authorization server put on the redirect."""

    code: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    state: Optional[str] = None


def parse_callback_url(url: str) -> CallbackParams:
    """Extract ``code`` / ``error`` from a redirect URL.

    Works for custom schemes (``myplaylist://callback?code=...``) as well
    as loopback URLs. Empty values count as absent.
    """
    params = parse_qs(urlparse(url.strip()).query)

    def first(name: str) -> Optional[str]:
        values = params.get(name)
        return values[0] if values and values[0] else None

    return CallbackParams(
        code=first("code"),
        error=first("error"),
        error_description=first("error_description"),
        state=first("state"),
    )


class AuthorizationLauncher(ABC):
    """Present an authorization URL and collect the redirect."""

    @abstractmethod
    def present(self, url: str) -> Optional[str]:
        """Show *url* to the user.

        Returns:
            The full callback URL the authorization server redirected to,
            or ``None`` if the user cancelled or the launcher timed out.
        """
        ...


class LoopbackLauncher(AuthorizationLauncher):
    """Receive the redirect on a temporary ``127.0.0.1`` HTTP server.

    Args:
        redirect_uri: The registered loopback redirect URI. Its host, port
            and path decide where the server listens.
        timeout: Seconds to wait for the browser to come back.
        open_browser: Callable used to open the URL. Defaults to
            :func:`webbrowser.open`.
    """

    def __init__(
        self,
        redirect_uri: str,
        timeout: float = 120.0,
        open_browser: Optional[Callable[[str], Any]] = None,
    ) -> None:
        parsed = urlparse(redirect_uri)
        if parsed.scheme != "http" or parsed.hostname not in _LOOPBACK_HOSTS:
            raise ValueError(f"Not a loopback redirect URI: {redirect_uri}")
        if parsed.port is None:
            raise ValueError(f"Loopback redirect URI needs an explicit port: {redirect_uri}")
        self._redirect_uri = redirect_uri
        self._host = parsed.hostname
        self._port = parsed.port
        self._path = parsed.path or "/"
        self._timeout = timeout
        self._open_browser = open_browser or webbrowser.open

    def present(self, url: str) -> Optional[str]:
        """Open the browser and block until one request arrives or the timeout fires.

        A single-request HTTP server is started before the browser is
        opened, so a fast redirect cannot race the listener. Requests to a
        path other than the redirect path are answered with 404 and
        treated as a cancellation.
        """
        received: dict[str, Optional[str]] = {"path": None}
        expected_path = self._path

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                parsed = urlparse(self.path)
                if parsed.path != expected_path:
                    self.send_response(404)
                    self.end_headers()
                    return

                received["path"] = self.path
                params = parse_qs(parsed.query)
                if "error" in params:
                    body = f"Authorization failed: {params['error'][0]}"
                elif "code" in params:
                    body = (
                        "Login complete. You can close this window "
                        "and return to the terminal."
                    )
                else:
                    body = "No authorization code received."

                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{body}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                # Keep the terminal clean; the auth code is in the request line.
                pass

        server = HTTPServer((self._host, self._port), CallbackHandler)
        server.timeout = self._timeout
        try:
            browser_thread = threading.Thread(
                target=self._open_browser, args=(url,), daemon=True
            )
            browser_thread.start()
            server.handle_request()
        finally:
            server.server_close()

        if received["path"] is None:
            logger.info("No authorization callback received within %ss", self._timeout)
            return None
        return f"http://{self._host}:{self._port}{received['path']}"


class PasteCallbackLauncher(AuthorizationLauncher):
    """Open the browser and ask the user to paste the redirect URL.

    Args:
        prompt: Callable asking the user for input. Defaults to
            :func:`typer.prompt` with an empty default.
        open_browser: Callable used to open the URL. Defaults to
            :func:`webbrowser.open`.
        echo: Callable used to print instructions to stderr.
    """

    def __init__(
        self,
        prompt: Optional[Callable[[str], str]] = None,
        open_browser: Optional[Callable[[str], Any]] = None,
        echo: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._prompt = prompt or _typer_prompt
        self._open_browser = open_browser or webbrowser.open
        self._echo = echo or (lambda message: typer.echo(message, err=True))

    def present(self, url: str) -> Optional[str]:
        self._echo("Opening the Spotify login page in your browser.")
        self._echo(f"If it does not open, visit:\n\n  {url}\n")
        self._open_browser(url)
        answer = self._prompt("Paste the URL you were redirected to").strip()
        return answer or None


def _typer_prompt(message: str) -> str:
    return typer.prompt(message, default="", show_default=False, err=True)


def launcher_for(redirect_uri: str, timeout: float = 120.0) -> AuthorizationLauncher:
    """Return a :class:`LoopbackLauncher` for loopback URIs, else a :class:`PasteCallbackLauncher`."""
    parsed = urlparse(redirect_uri)
    if parsed.scheme == "http" and parsed.hostname in _LOOPBACK_HOSTS and parsed.port:
        return LoopbackLauncher(redirect_uri, timeout=timeout)
    return PasteCallbackLauncher()
