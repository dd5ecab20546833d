"""Derive the upstream target from an inbound request path.

The first path segment names the upstream host; everything after it,
query string included, is forwarded unchanged::

    /github.com/octocat/Hello-World/info/refs?service=git-upload-pack
     ^^^^^^^^^^ ^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^
     host_label remaining_path
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

from git_cors_proxy.errors import MalformedPath

_ROUTE_PATTERN = re.compile(r"^/([^/?#]+)/(.*)$", re.DOTALL)

# Characters left unescaped when rebuilding a path from its decoded form
_PATH_SAFE = "/:@!$&'()*+,;=-._~%"


@dataclass(frozen=True)
class RouteTarget:
    """Upstream host label and the path forwarded to it."""

    host_label: str
    remaining_path: str

    def url(self, protocol: str) -> str:
        return f"{protocol}://{self.host_label}/{self.remaining_path}"


def parse_route_target(raw_path: str) -> RouteTarget:
    """Split ``raw_path`` on the first ``/`` after the leading slash.

    Raises:
        MalformedPath: If the path has no host label or no second segment.
    """
    match = _ROUTE_PATTERN.match(raw_path or "")
    if match is None:
        raise MalformedPath()
    return RouteTarget(host_label=match.group(1), remaining_path=match.group(2))


def raw_request_path(request) -> str:
    """Return the request target exactly as the client sent it.

    Prefers the undecoded URI recorded by the WSGI server and falls back
    to re-quoting the decoded path for servers that do not record it.
    """
    environ = request.environ
    raw = environ.get("RAW_URI") or environ.get("REQUEST_URI")
    if raw:
        return raw

    path = quote(request.path, safe=_PATH_SAFE)
    query = request.query_string.decode("latin-1")
    return f"{path}?{query}" if query else path
