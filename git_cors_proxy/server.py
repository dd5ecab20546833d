"""Threaded WSGI server for the proxy.

Each connection is served on its own thread, so one slow upstream fetch
never blocks other in-flight requests.

Note:
    For production, a WSGI server such as gunicorn can serve
    ``git_cors_proxy.app:create_app()`` instead.
"""

from __future__ import annotations

from typing import Optional

from flask import Flask
from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server

from git_cors_proxy.config import validate_port
from git_cors_proxy.constants import DEFAULT_HOST, SOCKET_TIMEOUT
from git_cors_proxy.errors import ConfigError
from git_cors_proxy.logging_config import get_logger

logger = get_logger(__name__)


class ProxyRequestHandler(WSGIRequestHandler):
    """Request handler with a fixed per-socket timeout.

    ``Server`` and ``Date`` are written only when the application's
    response does not carry them already, so relayed upstream values are
    not doubled.
    """

    timeout = SOCKET_TIMEOUT

    # Lower-cased names sent since the last status line, None outside a header block
    _sent_headers: Optional[set[str]] = None

    def send_response(self, code: int, message: Optional[str] = None) -> None:
        self.log_request(code)
        self.send_response_only(code, message)
        self._sent_headers = set()

    def send_header(self, keyword: str, value: str) -> None:
        if self._sent_headers is not None:
            self._sent_headers.add(keyword.lower())
        super().send_header(keyword, value)

    def end_headers(self) -> None:
        sent, self._sent_headers = self._sent_headers, None
        if sent is not None:
            if "server" not in sent:
                super().send_header("Server", self.version_string())
            if "date" not in sent:
                super().send_header("Date", self.date_time_string())
        super().end_headers()


def create_server(
    app: Flask,
    port: int,
    host: str = DEFAULT_HOST,
    request_handler: Optional[type[WSGIRequestHandler]] = None,
) -> BaseWSGIServer:
    """Bind a threaded server for ``app``.

    Raises:
        ConfigError: If the port is invalid or cannot be bound.
    """
    validate_port(port)
    try:
        return make_server(
            host=host,
            port=port,
            app=app,
            threaded=True,
            request_handler=request_handler or ProxyRequestHandler,
        )
    except (OSError, SystemExit) as e:
        # werkzeug exits instead of raising when the address is in use
        raise ConfigError(f"Cannot listen on {host}:{port}: {e}") from e


def serve(server: BaseWSGIServer) -> None:
    """Serve until interrupted, then release the listening socket."""
    logger.info(f"CORS proxy server listening on port {server.port}")
    try:
        server.serve_forever()
    finally:
        server.server_close()
