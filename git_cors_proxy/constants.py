"""Fixed allow-lists and defaults for git-cors-proxy.

The header lists are closed sets: anything not named here is dropped,
never passed through.
"""

from __future__ import annotations

# ============================================================================
# Header Allow-Lists
# ============================================================================

# Headers allowed in requests to the proxy (forwarded upstream if present)
ALLOW_HEADERS: tuple[str, ...] = (
    "accept-encoding",
    "accept-language",
    "accept",
    "access-control-allow-origin",
    "authorization",
    "cache-control",
    "connection",
    "content-length",
    "content-type",
    "dnt",
    "git-protocol",
    "pragma",
    "range",
    "referer",
    "user-agent",
    "x-authorization",
    "x-http-method-override",
    "x-requested-with",
)

# Headers exposed from the proxy to clients (relayed from upstream if present)
EXPOSE_HEADERS: tuple[str, ...] = (
    "accept-ranges",
    "age",
    "cache-control",
    "content-length",
    "content-language",
    "content-type",
    "date",
    "etag",
    "expires",
    "last-modified",
    "location",
    "pragma",
    "server",
    "transfer-encoding",
    "vary",
    "x-github-request-id",
    "x-redirected-url",
)

# Framing headers owned by the WSGI server, never copied onto a relayed response
FRAMING_HEADERS: frozenset[str] = frozenset({"content-length", "transfer-encoding"})

# ============================================================================
# Git Smart HTTP
# ============================================================================

GIT_SERVICES: frozenset[str] = frozenset({"git-upload-pack", "git-receive-pack"})

UPLOAD_PACK_REQUEST = "application/x-git-upload-pack-request"
RECEIVE_PACK_REQUEST = "application/x-git-receive-pack-request"

# Request bodies of these types are streamed upstream unparsed
GIT_CONTENT_TYPES: tuple[str, ...] = (
    UPLOAD_PACK_REQUEST,
    "application/x-git-upload-pack-result",
    RECEIVE_PACK_REQUEST,
    "application/x-git-receive-pack-result",
)

ALLOWED_METHODS: tuple[str, ...] = ("GET", "POST", "OPTIONS")

# GitHub uses user-agent sniffing for git/* and changes its behavior
PROXY_USER_AGENT = "git/@isomorphic-git/cors-proxy"
GIT_USER_AGENT_PREFIX = "git/"

# ============================================================================
# Process Defaults
# ============================================================================

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9999
PID_FILE_NAME = "cors-proxy.pid"

# Upstream request timeouts (in seconds)
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 600.0

# Per-socket timeout on inbound connections (in seconds)
SOCKET_TIMEOUT = 600

# Size of chunks relayed from the upstream response body
STREAM_CHUNK_SIZE = 8192
