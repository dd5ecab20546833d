"""Unit tests for the exception hierarchy in git_cors_proxy.errors."""

import pytest

from git_cors_proxy.errors import (
    ConfigError,
    CorsProxyError,
    MalformedPath,
    RejectedRequest,
    UpstreamFailure,
)

ALL_ERRORS = [RejectedRequest, MalformedPath, UpstreamFailure, ConfigError]


class TestExceptionHierarchy:
    """All concrete exceptions must be subclasses of CorsProxyError."""

    @pytest.mark.parametrize("exc_cls", ALL_ERRORS)
    def test_subclass_of_base(self, exc_cls):
        assert issubclass(exc_cls, CorsProxyError)

    @pytest.mark.parametrize("exc_cls", ALL_ERRORS)
    def test_catchable_via_base(self, exc_cls):
        with pytest.raises(CorsProxyError):
            raise exc_cls("test")

    @pytest.mark.parametrize("exc_cls", ALL_ERRORS)
    def test_message_preserved(self, exc_cls):
        assert str(exc_cls("something went wrong")) == "something went wrong"


class TestHttpMapping:
    """Request errors carry the status they are rendered with."""

    @pytest.mark.parametrize("exc_cls, status, message", [
        (RejectedRequest, 403, "Not a valid Git request"),
        (MalformedPath, 400, "Invalid request path"),
        (UpstreamFailure, 502, "Proxy error"),
    ])
    def test_defaults(self, exc_cls, status, message):
        err = exc_cls()
        assert err.status_code == status
        assert err.message == message

    def test_to_dict(self):
        assert UpstreamFailure().to_dict() == {
            "statusCode": 502,
            "error": "Bad Gateway",
            "message": "Proxy error",
        }

    def test_raise_from_chaining(self):
        inner = ConnectionRefusedError("refused")
        with pytest.raises(UpstreamFailure) as exc_info:
            try:
                raise inner
            except OSError as e:
                raise UpstreamFailure() from e
        assert exc_info.value.__cause__ is inner
