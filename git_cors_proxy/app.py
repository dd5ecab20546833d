"""Flask application exposing the proxy's HTTP surface.

Endpoints:
- GET /health - Health check
- GET / - Landing page naming the allowed origin
- GET|POST|OPTIONS /<host>/<path> - Git Smart HTTP requests, admitted by
  the classifier and forwarded to ``host``

Every response, errors included, carries the CORS headers.
"""

from __future__ import annotations

from typing import Optional

from flask import Flask, Response, jsonify, render_template_string, request
from werkzeug.exceptions import HTTPException

from git_cors_proxy.classifier import ParsedRequest, classify
from git_cors_proxy.config import ProxyConfiguration, load_config
from git_cors_proxy.constants import GIT_CONTENT_TYPES
from git_cors_proxy.cors import apply_cors_headers, preflight_response
from git_cors_proxy.errors import CorsProxyError, RejectedRequest
from git_cors_proxy.forwarder import Forwarder, stream_request_body
from git_cors_proxy.logging_config import get_logger, init_request_logging
from git_cors_proxy.routing import parse_route_target, raw_request_path

logger = get_logger(__name__)

LANDING_PAGE = """<!DOCTYPE html>
<html>
  <head><title>git-cors-proxy</title></head>
  <body>
    <h1>git-cors-proxy</h1>
    <p>This server lets browser-based Git clients clone, fetch and push
       repositories on Git hosts that do not send CORS headers.
       Requests are forwarded as <code>/&lt;host&gt;/&lt;repository path&gt;</code>,
       for example <code>/github.com/octocat/Hello-World.git</code>.</p>

    <h2>Terms of Use</h2>
    <p><b>This service is provided AS IS with no guarantees.
       Please run your own instance if you need to make heavy use of it.</b></p>

    <h2>Allowed Origins</h2>
    <p>This proxy allows git clone / fetch / push / getRemoteInfo requests
       from these domains: <code>{{ origin }}</code></p>
  </body>
</html>
"""


def _error_response(status_code: int, error: str, message: str):
    return jsonify({
        "statusCode": status_code,
        "error": error,
        "message": message,
    }), status_code


def create_app(config: Optional[ProxyConfiguration] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Proxy configuration. If not provided, it is loaded from
                the environment.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    # Paths are forwarded verbatim, so "//" must not be redirected away
    app.url_map.merge_slashes = False

    if config is None:
        config = load_config()
    forwarder = Forwarder(config)
    app.extensions["git_cors_proxy"] = {"config": config, "forwarder": forwarder}

    init_request_logging(app)

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        return apply_cors_headers(response, config)

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok"}), 200

    @app.route("/", methods=["GET"])
    def index():
        """Landing page."""
        return render_template_string(LANDING_PAGE, origin=config.allowed_origin)

    @app.route("/<path:path>", methods=["GET", "POST", "OPTIONS"])
    def git_proxy(path: str):
        """Admit a Git Smart HTTP request and relay it upstream."""
        raw_path = raw_request_path(request)
        target = parse_route_target(raw_path)

        parsed = ParsedRequest.from_request(request)
        shape = classify(parsed)
        if shape is None:
            logger.info(f"Rejected {request.method} {request.path}: not a Git request")
            raise RejectedRequest()

        if request.method == "OPTIONS":
            return preflight_response(config)

        logger.debug(f"Admitted {shape} request for {target.host_label}")
        body = None
        if request.method == "POST" and request.mimetype in GIT_CONTENT_TYPES:
            body = stream_request_body(request.stream, request.content_length)
        relayed = forwarder.forward(parsed, raw_path, body)

        response = Response(relayed.body, status=relayed.status_code)
        if "Content-Type" in response.headers:
            del response.headers["Content-Type"]
        for name, value in relayed.headers.items():
            response.headers[name] = value
        response.call_on_close(relayed.close)
        return response

    @app.errorhandler(CorsProxyError)
    def handle_proxy_error(error: CorsProxyError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return _error_response(error.code or 500, error.name, error.description or error.name)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error(f"Internal server error: {error}", exc_info=error)
        return _error_response(500, "Internal Server Error", "Internal server error")

    return app
