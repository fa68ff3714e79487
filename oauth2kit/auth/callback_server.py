"""Loopback HTTP server for OAuth2 redirect capture.

Listens on the configured local address for the provider's redirect,
serves a success/error HTML page and extracts the authorization code
and state from the query parameters. One server serves one flow.
"""

# pylint: disable=C0103,W0212

from __future__ import annotations

import html
import logging
import threading

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse

from ..exceptions import CallbackReceiverError
from ..types import CallbackResult


logger = logging.getLogger("oauth2kit.auth")

_PAGE_STYLE = """
  body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
         display: flex; align-items: center; justify-content: center;
         height: 100vh; margin: 0; background: #f4f5f7; color: #202124; }
  .card { text-align: center; padding: 2rem 3rem; background: white;
          border-radius: 10px; box-shadow: 0 1px 8px rgba(0,0,0,.1); }
  h1 { font-size: 1.4rem; margin-bottom: 0.5rem; }
  h1.error { color: #c5221f; }
  p { color: #5f6368; }
"""

_SUCCESS_HTML = f"""<!DOCTYPE html>
<html>
<head><title>Authorization Complete</title><style>{_PAGE_STYLE}</style></head>
<body><div class="card">
  <h1>&#x2713; Authorization code received</h1>
  <p>Return to your terminal. You can close this tab.</p>
</div></body></html>"""

# Formatted with the escaped error message; literal braces are doubled.
_ERROR_HTML = (
    """<!DOCTYPE html>
<html>
<head><title>Authorization Failed</title><style>"""
    + _PAGE_STYLE.replace("{", "{{").replace("}", "}}")
    + """</style></head>
<body><div class="card">
  <h1 class="error">&#x2717; Authorization failed</h1>
  <p>{error}</p>
</div></body></html>"""
)

_WAITING_HTML = f"""<!DOCTYPE html>
<html>
<head><title>Waiting for Authorization</title><style>{_PAGE_STYLE}</style></head>
<body><div class="card">
  <h1>Waiting for authorization&hellip;</h1>
  <p>Finish signing in with your provider in the browser.</p>
</div></body></html>"""


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


class OAuthCallbackServer:
    """Loopback HTTP server capturing a single OAuth2 redirect.

    Parameters
    ----------
    host : str
        Bind address (default ``"127.0.0.1"``).
    port : int
        Port number (``0`` for auto-assign).
    path : str
        Callback path the provider redirects to (default ``"/callback"``).
    redirect_host : str, optional
        Host name used in the redirect URI. Defaults to ``"localhost"``.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        path: str = "/callback",
        redirect_host: str | None = None,
    ) -> None:
        """Initialize the callback server."""
        self._host = host
        self._port = port
        self._path = path
        self._redirect_host = redirect_host or "localhost"
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._result: CallbackResult | None = None
        self._result_lock = threading.Lock()
        self._result_event = threading.Event()
        self._actual_port: int = 0

    @property
    def port(self) -> int:
        """Bound port (0 until started)."""
        return self._actual_port

    @property
    def redirect_uri(self) -> str:
        """Get the redirect URI for this callback server.

        Returns
        -------
        str
            The full redirect URI (e.g. ``http://localhost:15440/callback``).
        """
        host = self._redirect_host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self._actual_port}{self._path}"

    @property
    def running(self) -> bool:
        """Whether the server is accepting requests."""
        return self._server is not None

    def _record(self, result: CallbackResult) -> bool:
        """Store the first result; return True if this one was stored."""
        with self._result_lock:
            if self._result is not None:
                return False
            self._result = result
        self._result_event.set()
        return True

    def start(self) -> str:
        """Start the callback server on a daemon thread.

        Returns
        -------
        str
            The redirect URI to use with the OAuth2 provider.

        Raises
        ------
        CallbackReceiverError
            If the address cannot be bound.
        """
        server_ref = self

        class _CallbackHandler(BaseHTTPRequestHandler):
            """HTTP request handler for OAuth2 callbacks."""

            timeout = 30

            def do_GET(self) -> None:
                """Handle GET requests."""
                parsed = urlparse(self.path)

                if parsed.path == server_ref._path:
                    params = parse_qs(parsed.query)
                    code = _first(params, "code")
                    error = _first(params, "error")
                    if not code and not error:
                        error = "missing_code"
                    result = CallbackResult(
                        code=code,
                        state=_first(params, "state"),
                        error=error,
                        error_description=_first(params, "error_description"),
                    )

                    if server_ref._record(result) and result.error:
                        error_msg = result.error_description or result.error
                        safe_msg = html.escape(str(error_msg), quote=True)
                        self._send_html(_ERROR_HTML.format(error=safe_msg))
                    else:
                        self._send_html(_SUCCESS_HTML)

                elif parsed.path == "/":
                    self._send_html(_WAITING_HTML)
                else:
                    self.send_error(404)

            def _send_html(self, html_content: str) -> None:
                """Send an HTML response with security headers."""
                encoded = html_content.encode("utf-8")
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(encoded)))
                self.send_header("Cache-Control", "no-store")
                self.send_header(
                    "Content-Security-Policy",
                    "default-src 'none'; style-src 'unsafe-inline'",
                )
                self.send_header("X-Content-Type-Options", "nosniff")
                self.end_headers()
                self.wfile.write(encoded)

            def log_message(self, *args: Any) -> None:
                """Route access logs to the oauth2kit logger without the query string."""
                if args:
                    line = args[0] % args[1:]
                    logger.debug("OAuth callback server: %s", line.split("?", 1)[0])

        try:
            server = ThreadingHTTPServer((self._host, self._port), _CallbackHandler)
        except OSError as exc:
            msg = f"Cannot listen on {self._host}:{self._port}: {exc}"
            raise CallbackReceiverError(msg) from exc
        server.daemon_threads = True
        self._server = server
        self._actual_port = server.server_address[1]

        self._thread = threading.Thread(
            target=server.serve_forever,
            name="oauth2kit-callback",
            daemon=True,
        )
        self._thread.start()

        logger.debug("OAuth callback server started on %s", self.redirect_uri)
        return self.redirect_uri

    def wait_for_callback(self, timeout: float = 300.0) -> CallbackResult | None:
        """Block until the callback is received or timeout expires.

        Parameters
        ----------
        timeout : float
            Maximum seconds to wait (default 300).

        Returns
        -------
        CallbackResult or None
            The first redirect received, or ``None`` if timeout expired.
        """
        if self._result_event.wait(timeout=timeout):
            return self._result
        return None

    def stop(self, grace_period: float = 5.0) -> bool:
        """Shut the server down, waiting at most ``grace_period`` seconds.

        The listening socket is closed in every case. Calling ``stop``
        on a stopped server is a no-op.

        Returns
        -------
        bool
            False if the serve loop did not finish within the grace period.
        """
        server, thread = self._server, self._thread
        self._server = None
        self._thread = None
        if server is None:
            return True

        stopper = threading.Thread(target=server.shutdown, daemon=True)
        stopper.start()
        stopper.join(timeout=grace_period)
        stopped = not stopper.is_alive()
        if stopped and thread is not None:
            thread.join(timeout=grace_period)
            stopped = not thread.is_alive()

        server.server_close()
        if not stopped:
            logger.error(
                "OAuth callback server did not stop within %.1fs",
                grace_period,
            )
        else:
            logger.debug("OAuth callback server stopped")
        return stopped
