"""Logging setup for the proxy.

Lines are JSON by default, or a console layout with ``LOG_FORMAT=text``,
at the level named by ``LOG_LEVEL``. Every line written while a request
is being served carries that request's id and client address.
"""

import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

# Correlation fields of the request served by the current thread
_correlation: ContextVar[dict[str, Any]] = ContextVar("correlation", default={})

# LogRecord attributes that are not caller-supplied ``extra`` fields
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def bind_request(**fields: Any) -> None:
    """Add correlation fields to every following log line in this context.

    ``None`` values are ignored.
    """
    bound = {key: value for key, value in fields.items() if value is not None}
    _correlation.set({**_correlation.get(), **bound})


def unbind_request() -> None:
    _correlation.set({})


def correlation() -> dict[str, Any]:
    """Copy of the fields bound in this context."""
    return dict(_correlation.get())


def _utc_timestamp(created: float) -> str:
    millis = int(created * 1000) % 1000
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(created)) + f".{millis:03d}Z"


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Example::

        {"timestamp": "2024-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "git_cors_proxy.forwarder",
         "message": "GET https://github.com/o/r/info/refs -> 200",
         "request_id": "5f0c...", "client": "10.0.0.1", "upstream_status": 200}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_correlation.get(),
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``<timestamp> LEVEL [logger] [request_id/client] message``"""

    def format(self, record: logging.LogRecord) -> str:
        bound = _correlation.get()
        tag = "/".join(str(bound[key]) for key in ("request_id", "client") if key in bound)

        line = f"{_utc_timestamp(record.created)} {record.levelname} [{record.name}]"
        if tag:
            line += f" [{tag}]"
        line += f" {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class HealthCheckFilter(logging.Filter):
    """Drop werkzeug access-log lines for the health endpoint."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "/health" not in record.getMessage()


def setup_logging(level: Optional[str] = None, format_type: Optional[str] = None) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Log level name. Defaults to ``LOG_LEVEL`` or INFO.
        format_type: "json" or "text". Defaults to ``LOG_FORMAT`` or "json".
    """
    level = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    format_type = (format_type or os.environ.get("LOG_FORMAT") or "json").lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if format_type == "json" else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    werkzeug_logger = logging.getLogger("werkzeug")
    if not any(isinstance(f, HealthCheckFilter) for f in werkzeug_logger.filters):
        werkzeug_logger.addFilter(HealthCheckFilter())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def init_request_logging(app) -> None:
    """Register Flask hooks that bind correlation fields and log each request.

    The request id comes from ``X-Request-ID`` when the caller sends one.
    Completion is logged at INFO with the status and duration.
    """
    from flask import g, request

    logger = get_logger("git_cors_proxy.http")

    @app.before_request
    def _bind_request():
        g.request_started = time.monotonic()
        bind_request(
            request_id=request.headers.get("X-Request-ID") or uuid.uuid4().hex,
            client=request.remote_addr,
        )
        logger.debug(f"{request.method} {request.path}", extra={"event": "request_start"})

    @app.after_request
    def _log_completion(response):
        duration_ms = (time.monotonic() - g.request_started) * 1000
        logger.info(
            f"{request.method} {request.path} -> {response.status_code}",
            extra={
                "event": "request_complete",
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
            },
        )
        return response

    @app.teardown_request
    def _unbind_request(exception=None):
        if exception is not None:
            logger.error(f"Request failed: {exception}", exc_info=exception)
        unbind_request()
