"""
Top-level pytest conftest.py -- shared fixtures for the proxy tests.

Provides:
    config   - default ProxyConfiguration (origin "*", no insecure hosts)
    app      - Flask application built from ``config``
    client   - Flask test client for ``app``
    upstream - patch of ``requests.request`` used by the forwarder
"""

from unittest.mock import patch

import pytest

from git_cors_proxy.app import create_app
from git_cors_proxy.config import ProxyConfiguration
from tests.mocks import make_upstream_response


@pytest.fixture(autouse=True)
def clean_proxy_env(monkeypatch):
    """Keep proxy environment variables from leaking into tests."""
    for key in (
        "ALLOW_ORIGIN",
        "INSECURE_HTTP_ORIGINS",
        "UPSTREAM_CONNECT_TIMEOUT",
        "UPSTREAM_READ_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config():
    return ProxyConfiguration()


@pytest.fixture
def app(config):
    """Create Flask application."""
    app = create_app(config)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def upstream():
    """Patch the upstream call; returns the mock ``requests.request``.

    The default upstream answers 200 with body ``B``.
    """
    with patch("git_cors_proxy.forwarder.requests.request") as mock_request:
        mock_request.return_value = make_upstream_response(
            status_code=200,
            chunks=[b"B"],
            headers={"Content-Type": "application/x-git-upload-pack-advertisement"},
        )
        yield mock_request
