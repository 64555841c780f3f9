"""Logging Redaction Middleware.

Session cookies, authorization headers and the trusted identity headers must
never appear in plain text in logs.

- Builds a redacted copy of the request headers on request.state
- Original headers remain intact for identity resolution
- get_safe_headers() is the only sanctioned way to log headers

Usage:
    app.add_middleware(LoggingRedactionMiddleware)
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from credman_api.config.env import get_trusted_email_header

logger = logging.getLogger(__name__)

REDACTED_PLACEHOLDER = "[REDACTED]"

_ALWAYS_SENSITIVE = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
    }
)


def sensitive_headers() -> frozenset[str]:
    return _ALWAYS_SENSITIVE | {get_trusted_email_header()}


def redact_headers(headers) -> dict[str, str]:
    hidden = sensitive_headers()
    return {
        name: REDACTED_PLACEHOLDER if name.lower() in hidden else value
        for name, value in headers.items()
    }


class LoggingRedactionMiddleware(BaseHTTPMiddleware):
    """Stores a redacted header copy in request.state.redacted_headers."""

    def __init__(self, app):
        super().__init__(app)
        logger.info(
            "LoggingRedactionMiddleware initialized",
            extra={
                "event": "middleware.logging_redaction.init",
                "redacted_headers": sorted(sensitive_headers()),
            },
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.redacted_headers = redact_headers(request.headers)
        request.state.logging_redaction_applied = True
        return await call_next(request)


def get_safe_headers(request: Request) -> dict:
    """Get headers safe for logging (with sensitive headers redacted).

    Example:
        logger.info("Request headers", extra={"request_headers": get_safe_headers(request)})
    """
    if hasattr(request.state, "redacted_headers"):
        return request.state.redacted_headers
    return redact_headers(request.headers)
