"""Request size guard, security headers, request logging and CORS setup."""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
import logging
import time

from fastapi import FastAPI
from fastapi import Request
from fastapi import Response
from fastapi import status
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.config import ApiSettings
from app.core.errors import ErrorKind
from app.core.errors import NormalizedError
from app.core.errors import RequestInfo
from app.core.errors import build_error_envelope
from app.core.errors import render_error

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

EXPOSED_HEADERS = [
    "X-Total-Count",
    "X-Total-Pages",
    "X-Current-Page",
    "X-Has-Next",
    "X-Has-Prev",
    "X-Limit",
    "X-Offset",
    "X-Next-Offset",
    "X-Prev-Offset",
    "Link",
]


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared ``Content-Length`` exceeds the ceiling."""

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_bytes:
            info = RequestInfo.from_request(request)
            logger.warning(
                "Request size exceeded",
                extra={
                    "extra_fields": {
                        "contentLength": int(declared),
                        "maxSize": self.max_bytes,
                        "ip": info.ip,
                        "path": info.path,
                    }
                },
            )
            normalized = NormalizedError(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                code=ErrorKind.VALIDATION_ERROR.value,
                message="Request size too large",
            )
            return render_error(normalized, build_error_envelope(normalized, info.path))
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request on arrival and on completion with its duration."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        info = RequestInfo.from_request(request)
        logger.info(
            "Incoming request",
            extra={"extra_fields": {"method": info.method, "url": info.url, "ip": info.ip, "userAgent": info.user_agent}},
        )
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Request completed",
            extra={
                "extra_fields": {
                    "method": info.method,
                    "url": info.url,
                    "statusCode": response.status_code,
                    "duration": f"{duration_ms:.0f}ms",
                    "ip": info.ip,
                }
            },
        )
        return response


async def security_headers(request: Request, call_next: CallNext) -> Response:
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    return response


def configure_cors(app: FastAPI, settings: ApiSettings) -> None:
    """Allow the configured origins; a ``*`` entry allows any origin without credentials."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.allow_all_origins else list(settings.cors_origins),
        allow_credentials=not settings.allow_all_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
        expose_headers=EXPOSED_HEADERS,
    )
