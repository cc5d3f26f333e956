"""Local OAuth callback server."""

from __future__ import annotations

import html
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable

from usage_google.auth.google.constants import CALLBACK_PATH, FAILURE_HTML, SUCCESS_HTML


class _OAuthHandler(BaseHTTPRequestHandler):
    """Local callback HTTP handler."""

    server_version = "UsageGoogleOAuth/1.0"
    protocol_version = "HTTP/1.1"

    def do_GET(self) -> None:  # noqa: N802
        url = urllib.parse.urlparse(self.path)
        if url.path != CALLBACK_PATH:
            self._reply(404, b"Not found", "text/plain")
            return

        qs = urllib.parse.parse_qs(url.query)
        error = qs.get("error", [None])[0]
        if error:
            description = qs.get("error_description", [None])[0]
            reason = f"{error}: {description}" if description else error
            self._reply(400, FAILURE_HTML.format(reason=html.escape(reason)).encode("utf-8"))
            return

        code = qs.get("code", [None])[0]
        state = qs.get("state", [None])[0]
        if state != self.server.expected_state:
            self._reply(400, b"State mismatch", "text/plain")
            return
        if not code:
            self._reply(400, b"Missing code", "text/plain")
            return

        self.server.code = code
        if self.server.on_code:
            self.server.on_code(code)
        self._reply(200, SUCCESS_HTML.encode("utf-8"))

    def _reply(self, status: int, body: bytes, content_type: str = "text/html; charset=utf-8") -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)
        self.close_connection = True

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        # Suppress default logs to avoid noisy output.
        return


class OAuthCallbackServer(HTTPServer):
    """OAuth callback server with state."""

    def __init__(
        self,
        server_address: tuple[str, int],
        expected_state: str,
        on_code: Callable[[str], None] | None = None,
    ):
        super().__init__(server_address, _OAuthHandler)
        self.expected_state = expected_state
        self.code: str | None = None
        self.on_code = on_code

    @property
    def port(self) -> int:
        return self.server_address[1]

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{CALLBACK_PATH}"


def start_local_server(
    state: str,
    on_code: Callable[[str], None] | None = None,
    host: str = "127.0.0.1",
    port: int = 0,
) -> tuple[OAuthCallbackServer | None, str | None]:
    """Start the callback server on a free localhost port; returns (server, error)."""
    try:
        server = OAuthCallbackServer((host, port), state, on_code=on_code)
    except OSError as exc:
        return None, f"Local callback server failed to start: {exc}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, None
