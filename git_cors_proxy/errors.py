"""Exception hierarchy for git-cors-proxy.

Request-scoped errors carry the HTTP status and title they are rendered
with, so the Flask error handlers never need to know the concrete type.

This module is a base-layer module: it must NOT import from any
other ``git_cors_proxy`` submodule.
"""

from __future__ import annotations


class CorsProxyError(Exception):
    """Base exception for all git-cors-proxy errors."""

    status_code: int = 500
    error: str = "Internal Server Error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict[str, object]:
        """Body used for JSON error responses."""
        return {
            "statusCode": self.status_code,
            "error": self.error,
            "message": self.message,
        }


class RejectedRequest(CorsProxyError):
    """Request is not one of the recognized Git Smart HTTP shapes."""

    status_code = 403
    error = "Forbidden"
    default_message = "Not a valid Git request"


class MalformedPath(CorsProxyError):
    """Request path cannot be split into host label and remainder."""

    status_code = 400
    error = "Bad Request"
    default_message = "Invalid request path"


class UpstreamFailure(CorsProxyError):
    """Network-level failure while contacting the upstream Git host."""

    status_code = 502
    error = "Bad Gateway"
    default_message = "Proxy error"


class ConfigError(CorsProxyError):
    """Invalid startup configuration (bad port, timeouts, etc.)."""
