"""Configuration loader for git-cors-proxy.

Builds the process-wide ``ProxyConfiguration`` from environment variables,
with explicit arguments taking precedence. The configuration is fixed at
startup; there is no reload.

Environment Variables:
- ALLOW_ORIGIN: Value for Access-Control-Allow-Origin (default: ``*``)
- INSECURE_HTTP_ORIGINS: Comma-separated host labels forwarded over plain http
- UPSTREAM_CONNECT_TIMEOUT: Upstream connect timeout in seconds (default: 30)
- UPSTREAM_READ_TIMEOUT: Upstream read timeout in seconds (default: 600)
"""

from __future__ import annotations

import os
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from git_cors_proxy.constants import DEFAULT_CONNECT_TIMEOUT, DEFAULT_READ_TIMEOUT
from git_cors_proxy.errors import ConfigError


class ProxyConfiguration(BaseModel):
    """Immutable proxy settings shared read-only by every request handler."""

    model_config = ConfigDict(frozen=True)

    allowed_origin: str = "*"
    """Value sent as Access-Control-Allow-Origin."""

    insecure_host_labels: frozenset[str] = Field(default_factory=frozenset)
    """Host labels forwarded over http instead of https."""

    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    """Seconds to wait for the upstream connection."""

    read_timeout: float = DEFAULT_READ_TIMEOUT
    """Seconds to wait between upstream reads."""

    @field_validator("allowed_origin")
    @classmethod
    def _origin_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("allowed_origin cannot be empty")
        return value

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"timeout must be positive, got {value}")
        return value


def parse_host_labels(value: str | Iterable[str] | None) -> frozenset[str]:
    """Parse a comma-separated host label list into a set.

    Blank entries are dropped, so ``""`` and ``"a,,b"`` behave as expected.
    """
    if not value:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    return frozenset(item.strip() for item in items if item and item.strip())


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got '{raw}'")


def load_config(
    origin: Optional[str] = None,
    insecure_origins: str | Iterable[str] | None = None,
) -> ProxyConfiguration:
    """Load proxy configuration from arguments and environment.

    Args:
        origin: Allowed CORS origin. Defaults to ALLOW_ORIGIN or ``*``.
        insecure_origins: Host labels to reach over http. Defaults to
            INSECURE_HTTP_ORIGINS.

    Returns:
        Validated ProxyConfiguration.

    Raises:
        ConfigError: If any value is invalid.
    """
    if origin is None:
        origin = os.environ.get("ALLOW_ORIGIN") or "*"
    if insecure_origins is None:
        insecure_origins = os.environ.get("INSECURE_HTTP_ORIGINS", "")

    try:
        return ProxyConfiguration(
            allowed_origin=origin,
            insecure_host_labels=parse_host_labels(insecure_origins),
            connect_timeout=_env_float("UPSTREAM_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            read_timeout=_env_float("UPSTREAM_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid proxy configuration: {e}") from e


def validate_port(port: int) -> int:
    """Reject ports that cannot be listened on."""
    if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
        raise ConfigError(f"Port must be between 1 and 65535, got {port!r}")
    return port
