"""Forward admitted Git requests to their upstream host.

Given a request the classifier admitted, the forwarder:
- resolves ``{protocol}://{host_label}/{remaining_path}`` from the raw path
- copies only allow-listed request headers and presents a git/* user-agent
- issues exactly one upstream request with redirects disabled, streaming
  the request body through unparsed
- relays status, allow-listed response headers and a streamed body

Network failures become ``UpstreamFailure`` (502). Upstream 3xx/4xx/5xx
statuses are not failures; they are relayed as-is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Mapping, Optional, Union

import requests

from git_cors_proxy.classifier import ParsedRequest
from git_cors_proxy.config import ProxyConfiguration
from git_cors_proxy.constants import (
    ALLOW_HEADERS,
    EXPOSE_HEADERS,
    FRAMING_HEADERS,
    GIT_USER_AGENT_PREFIX,
    PROXY_USER_AGENT,
    STREAM_CHUNK_SIZE,
)
from git_cors_proxy.errors import UpstreamFailure
from git_cors_proxy.logging_config import get_logger
from git_cors_proxy.routing import RouteTarget, parse_route_target

logger = get_logger(__name__)

_SCHEME_PREFIX = re.compile(r"^https?:")

# Methods that never carry a request body upstream
_BODYLESS_METHODS = frozenset({"GET", "HEAD"})


def resolve_protocol(host_label: str, insecure_host_labels: frozenset[str]) -> str:
    """Plain http only for explicitly listed hosts, https otherwise."""
    return "http" if host_label in insecure_host_labels else "https"


def build_outbound_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy allow-listed request headers and pin a git/* user-agent.

    Args:
        headers: Inbound headers keyed by lower-cased name.

    Returns:
        Headers to send upstream.
    """
    outbound = {}
    for name in ALLOW_HEADERS:
        value = headers.get(name)
        if value:
            outbound[name] = value

    user_agent = outbound.get("user-agent")
    if not user_agent or not user_agent.startswith(GIT_USER_AGENT_PREFIX):
        outbound["user-agent"] = PROXY_USER_AGENT
    return outbound


def rewrite_location(location: str) -> str:
    """Strip a leading ``http:``/``https:`` so redirects stay protocol-relative."""
    return _SCHEME_PREFIX.sub("", location, count=1)


def build_relay_headers(upstream: requests.Response) -> dict[str, str]:
    """Pick the allow-listed headers of an upstream response.

    Framing headers are left to the serving layer, which re-frames the
    streamed body itself.
    """
    relayed = {}
    for name in EXPOSE_HEADERS:
        if name in FRAMING_HEADERS:
            continue
        value = upstream.headers.get(name)
        if value:
            relayed[name] = value

    location = upstream.headers.get("location")
    if location:
        relayed["location"] = rewrite_location(location)

    if upstream.history:
        relayed["x-redirected-url"] = upstream.url
    return relayed


class SizedBody:
    """Inbound request body of known length, read as requests sends it."""

    def __init__(self, stream: BinaryIO, length: int):
        self.stream = stream
        self.length = length

    def __len__(self) -> int:
        return self.length

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)


def stream_request_body(
    stream: BinaryIO,
    content_length: Optional[int],
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> Union[bytes, SizedBody, Iterator[bytes]]:
    """Wrap an inbound body for upload without buffering it.

    requests sends a sized body with the caller's Content-Length; a body
    of unknown length goes upstream with chunked transfer encoding.
    """
    if content_length is None:
        return iter(lambda: stream.read(chunk_size), b"")
    if content_length == 0:
        return b""
    return SizedBody(stream, content_length)


def stream_response_generator(
    response: requests.Response,
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield the upstream body chunk by chunk, never buffering all of it.

    A failure after the first byte cannot change the status anymore, so it
    is logged and the stream ends. The upstream connection is always
    released.
    """
    try:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:  # filter out keep-alive new chunks
                yield chunk
    except requests.RequestException as e:
        logger.error(f"Error streaming upstream response from {response.url}: {e}")
    finally:
        response.close()


@dataclass
class RelayedResponse:
    """Upstream response translated for the caller."""

    status_code: int
    headers: dict[str, str]
    body: Iterator[bytes]
    upstream: Optional[requests.Response] = field(default=None, repr=False)

    def close(self) -> None:
        """Release the upstream connection (e.g. on client disconnect)."""
        if self.upstream is not None:
            self.upstream.close()


class Forwarder:
    """Issue admitted requests upstream and translate the responses."""

    def __init__(self, config: ProxyConfiguration):
        self.config = config

    def resolve(self, raw_path: str) -> tuple[RouteTarget, str]:
        """Return the route target and upstream URL for ``raw_path``.

        Raises:
            MalformedPath: Before any network call, if the path has no host.
        """
        target = parse_route_target(raw_path)
        protocol = resolve_protocol(target.host_label, self.config.insecure_host_labels)
        return target, target.url(protocol)

    def forward(
        self,
        parsed: ParsedRequest,
        raw_path: str,
        body: Union[bytes, SizedBody, Iterator[bytes], None] = None,
    ) -> RelayedResponse:
        """Forward one request and relay the upstream response.

        Args:
            parsed: The admitted request.
            raw_path: Undecoded request target, query string included.
            body: Unparsed request body, as built by
                ``stream_request_body``. Ignored for GET and HEAD.

        Returns:
            RelayedResponse whose body streams from the upstream.

        Raises:
            MalformedPath: If ``raw_path`` has no host label.
            UpstreamFailure: On any network-level failure.
        """
        _, upstream_url = self.resolve(raw_path)
        headers = build_outbound_headers(parsed.headers)
        data = None if parsed.method in _BODYLESS_METHODS else body

        try:
            upstream = requests.request(
                method=parsed.method,
                url=upstream_url,
                headers=headers,
                data=data,
                allow_redirects=False,
                timeout=(self.config.connect_timeout, self.config.read_timeout),
                stream=True,
            )
        except requests.RequestException as e:
            logger.error(f"Proxy error: {parsed.method} {upstream_url} failed: {e}")
            raise UpstreamFailure() from e

        logger.info(
            f"{parsed.method} {upstream_url} -> {upstream.status_code}",
            extra={"event": "upstream_response", "upstream_status": upstream.status_code},
        )

        return RelayedResponse(
            status_code=upstream.status_code,
            headers=build_relay_headers(upstream),
            body=stream_response_generator(upstream),
            upstream=upstream,
        )
