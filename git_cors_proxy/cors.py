"""CORS policy applied to every proxy response.

Allowed methods are GET, POST and OPTIONS; allowed and exposed headers are
the two header allow-lists; credentials are never allowed.
"""

from __future__ import annotations

from flask import Response

from git_cors_proxy.config import ProxyConfiguration
from git_cors_proxy.constants import ALLOW_HEADERS, ALLOWED_METHODS, EXPOSE_HEADERS

_ALLOW_METHODS_VALUE = ", ".join(ALLOWED_METHODS)
_ALLOW_HEADERS_VALUE = ", ".join(ALLOW_HEADERS)
_EXPOSE_HEADERS_VALUE = ", ".join(EXPOSE_HEADERS)


def apply_cors_headers(response: Response, config: ProxyConfiguration) -> Response:
    """Add the origin and exposed-header CORS headers to ``response``."""
    response.headers["Access-Control-Allow-Origin"] = config.allowed_origin
    response.headers["Access-Control-Expose-Headers"] = _EXPOSE_HEADERS_VALUE
    if config.allowed_origin != "*":
        response.vary.add("Origin")
    return response


def preflight_response(config: ProxyConfiguration) -> Response:
    """Answer an admitted preflight request."""
    response = Response(status=204)
    response.headers["Access-Control-Allow-Methods"] = _ALLOW_METHODS_VALUE
    response.headers["Access-Control-Allow-Headers"] = _ALLOW_HEADERS_VALUE
    del response.headers["Content-Type"]
    return apply_cors_headers(response, config)
