"""Unit tests for the Git Smart HTTP request classifier.

Tests cover:
- The six admitted request shapes
- Exact content-type and service matching
- Methods outside GET/POST/OPTIONS
- Missing headers and query parameters
- ParsedRequest construction from a Flask request
"""

import pytest
from flask import Flask

from git_cors_proxy.classifier import (
    RULES,
    ParsedRequest,
    allow_request,
    classify,
)

REPO = "/github.com/octocat/Hello-World"


def req(method, path, query=None, headers=None):
    return ParsedRequest.build(method, path, query, headers)


# =============================================================================
# info/refs
# =============================================================================

class TestInfoRefs:
    """GET /info/refs and its preflight."""

    @pytest.mark.parametrize("service", ["git-upload-pack", "git-receive-pack"])
    def test_get_with_git_service_allowed(self, service):
        r = req("GET", f"{REPO}/info/refs", {"service": service})
        assert allow_request(r)
        assert classify(r) == "info-refs"

    @pytest.mark.parametrize("service", ["git-upload-archive", "", "GIT-UPLOAD-PACK", None])
    def test_get_with_other_service_denied(self, service):
        assert not allow_request(req("GET", f"{REPO}/info/refs", {"service": service}))

    def test_get_without_service_denied(self):
        assert not allow_request(req("GET", f"{REPO}/info/refs"))

    @pytest.mark.parametrize("service", ["git-upload-pack", "git-receive-pack"])
    def test_options_with_git_service_allowed(self, service):
        r = req("OPTIONS", f"{REPO}/info/refs", {"service": service})
        assert classify(r) == "info-refs-preflight"

    def test_options_without_service_denied(self):
        assert not allow_request(req("OPTIONS", f"{REPO}/info/refs"))

    def test_path_suffix_is_case_sensitive(self):
        r = req("GET", f"{REPO}/INFO/REFS", {"service": "git-upload-pack"})
        assert not allow_request(r)

    def test_post_to_info_refs_denied(self):
        r = req("POST", f"{REPO}/info/refs", {"service": "git-upload-pack"})
        assert not allow_request(r)


# =============================================================================
# upload-pack / receive-pack
# =============================================================================

class TestPull:
    """POST git-upload-pack and its preflight."""

    def test_post_with_exact_content_type_allowed(self):
        r = req("POST", f"{REPO}/git-upload-pack",
                headers={"content-type": "application/x-git-upload-pack-request"})
        assert classify(r) == "pull"

    @pytest.mark.parametrize("content_type", [
        "application/x-git-upload-pack-request;charset=utf-8",
        "application/x-git-receive-pack-request",
        "APPLICATION/X-GIT-UPLOAD-PACK-REQUEST",
        "application/octet-stream",
    ])
    def test_post_with_other_content_type_denied(self, content_type):
        r = req("POST", f"{REPO}/git-upload-pack", headers={"content-type": content_type})
        assert not allow_request(r)

    def test_post_without_content_type_denied(self):
        assert not allow_request(req("POST", f"{REPO}/git-upload-pack"))

    def test_preflight_requesting_content_type_allowed(self):
        r = req("OPTIONS", f"{REPO}/git-upload-pack",
                headers={"access-control-request-headers": "authorization, content-type"})
        assert classify(r) == "pull-preflight"

    def test_preflight_without_content_type_denied(self):
        r = req("OPTIONS", f"{REPO}/git-upload-pack",
                headers={"access-control-request-headers": "authorization"})
        assert not allow_request(r)

    def test_preflight_without_request_headers_denied(self):
        assert not allow_request(req("OPTIONS", f"{REPO}/git-upload-pack"))


class TestPush:
    """POST git-receive-pack and its preflight."""

    def test_post_with_exact_content_type_allowed(self):
        r = req("POST", f"{REPO}/git-receive-pack",
                headers={"content-type": "application/x-git-receive-pack-request"})
        assert classify(r) == "push"

    def test_upload_pack_content_type_on_receive_pack_denied(self):
        r = req("POST", f"{REPO}/git-receive-pack",
                headers={"content-type": "application/x-git-upload-pack-request"})
        assert not allow_request(r)

    def test_preflight_allowed(self):
        r = req("OPTIONS", f"{REPO}/git-receive-pack",
                headers={"access-control-request-headers": "content-type"})
        assert classify(r) == "push-preflight"


# =============================================================================
# Methods and rule set
# =============================================================================

class TestOtherMethods:
    """Methods outside GET/POST/OPTIONS never pass."""

    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH", "HEAD"])
    def test_denied_on_every_git_path(self, method):
        candidates = [
            req(method, f"{REPO}/info/refs", {"service": "git-upload-pack"}),
            req(method, f"{REPO}/git-upload-pack",
                headers={"content-type": "application/x-git-upload-pack-request",
                         "access-control-request-headers": "content-type"}),
            req(method, f"{REPO}/git-receive-pack",
                headers={"content-type": "application/x-git-receive-pack-request",
                         "access-control-request-headers": "content-type"}),
        ]
        assert not any(allow_request(r) for r in candidates)

    def test_non_git_path_denied(self):
        assert not allow_request(req("GET", "/github.com/octocat/Hello-World"))


class TestRules:
    """The rule set is closed and named."""

    def test_six_rules(self):
        assert [rule.name for rule in RULES] == [
            "info-refs-preflight",
            "info-refs",
            "pull-preflight",
            "pull",
            "push-preflight",
            "push",
        ]

    def test_rules_is_immutable(self):
        assert isinstance(RULES, tuple)


# =============================================================================
# ParsedRequest
# =============================================================================

class TestParsedRequest:
    """Construction and normalization."""

    def test_build_lowercases_header_names(self):
        r = req("post", "/a/b", headers={"Content-Type": "x", "User-Agent": "git/2"})
        assert r.method == "POST"
        assert r.headers == {"content-type": "x", "user-agent": "git/2"}

    def test_build_keeps_first_duplicate_header(self):
        r = req("GET", "/a/b", headers={"X-Thing": "first", "x-thing": "second"})
        assert r.headers["x-thing"] == "first"

    def test_mappings_are_read_only(self):
        r = req("GET", "/a/b", {"service": "git-upload-pack"}, {"accept": "*/*"})
        with pytest.raises(TypeError):
            r.headers["accept"] = "text/html"
        with pytest.raises(TypeError):
            r.query["service"] = "other"

    def test_from_request(self):
        app = Flask(__name__)
        with app.test_request_context(
            "/github.com/o/r/info/refs?service=git-upload-pack&service=ignored",
            headers={"User-Agent": "git/2.40.0", "Authorization": "Basic abc"},
        ) as ctx:
            r = ParsedRequest.from_request(ctx.request)
        assert r.method == "GET"
        assert r.pathname == "/github.com/o/r/info/refs"
        assert r.query["service"] == "git-upload-pack"
        assert r.headers["user-agent"] == "git/2.40.0"
        assert r.headers["authorization"] == "Basic abc"
        assert classify(r) == "info-refs"
