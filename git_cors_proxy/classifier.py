"""Request classifier for Git Smart HTTP traffic.

Decides, without side effects, whether an inbound request is one of the
six request shapes a browser Git client produces:

- info/refs discovery (GET) and its CORS preflight (OPTIONS)
- upload-pack exchange (POST, fetch/clone) and its preflight
- receive-pack exchange (POST, push) and its preflight

The rule set is closed. Adding a shape is a code change, not configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, NamedTuple, Optional

from git_cors_proxy.constants import (
    GIT_SERVICES,
    RECEIVE_PACK_REQUEST,
    UPLOAD_PACK_REQUEST,
)


@dataclass(frozen=True)
class ParsedRequest:
    """Method, path, query and headers of one inbound request.

    Header names are lower-cased. Repeated query keys and headers keep
    their first value.
    """

    method: str
    pathname: str
    query: Mapping[str, Optional[str]] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        method: str,
        pathname: str,
        query: Mapping[str, Optional[str]] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> "ParsedRequest":
        normalized: dict[str, str] = {}
        for name, value in (headers or {}).items():
            normalized.setdefault(name.lower(), value)
        return cls(
            method=method.upper(),
            pathname=pathname,
            query=MappingProxyType(dict(query or {})),
            headers=MappingProxyType(normalized),
        )

    @classmethod
    def from_request(cls, request) -> "ParsedRequest":
        """Build from a Flask/werkzeug request."""
        headers: dict[str, str] = {}
        for name, value in request.headers.items():
            headers.setdefault(name.lower(), value)
        query = {key: request.args.get(key) for key in request.args.keys()}
        return cls.build(request.method, request.path, query, headers)


def _has_git_service(req: ParsedRequest) -> bool:
    return req.query.get("service") in GIT_SERVICES


def _requests_content_type(req: ParsedRequest) -> bool:
    return "content-type" in (req.headers.get("access-control-request-headers") or "")


def is_preflight_info_refs(req: ParsedRequest) -> bool:
    return (
        req.method == "OPTIONS"
        and req.pathname.endswith("/info/refs")
        and _has_git_service(req)
    )


def is_info_refs(req: ParsedRequest) -> bool:
    return (
        req.method == "GET"
        and req.pathname.endswith("/info/refs")
        and _has_git_service(req)
    )


def is_preflight_pull(req: ParsedRequest) -> bool:
    return (
        req.method == "OPTIONS"
        and _requests_content_type(req)
        and req.pathname.endswith("git-upload-pack")
    )


def is_pull(req: ParsedRequest) -> bool:
    return (
        req.method == "POST"
        and req.headers.get("content-type") == UPLOAD_PACK_REQUEST
        and req.pathname.endswith("git-upload-pack")
    )


def is_preflight_push(req: ParsedRequest) -> bool:
    return (
        req.method == "OPTIONS"
        and _requests_content_type(req)
        and req.pathname.endswith("git-receive-pack")
    )


def is_push(req: ParsedRequest) -> bool:
    return (
        req.method == "POST"
        and req.headers.get("content-type") == RECEIVE_PACK_REQUEST
        and req.pathname.endswith("git-receive-pack")
    )


class Rule(NamedTuple):
    name: str
    predicate: Callable[[ParsedRequest], bool]


RULES: tuple[Rule, ...] = (
    Rule("info-refs-preflight", is_preflight_info_refs),
    Rule("info-refs", is_info_refs),
    Rule("pull-preflight", is_preflight_pull),
    Rule("pull", is_pull),
    Rule("push-preflight", is_preflight_push),
    Rule("push", is_push),
)


def classify(req: ParsedRequest) -> Optional[str]:
    """Return the name of the rule ``req`` matches, or None if denied."""
    for rule in RULES:
        if rule.predicate(req):
            return rule.name
    return None


def allow_request(req: ParsedRequest) -> bool:
    """True if ``req`` is a recognized Git Smart HTTP request."""
    return classify(req) is not None
