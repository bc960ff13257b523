"""FastAPI application entrypoint for the course creator API."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from app.api.auth import router as auth_router
from app.api.courses import router as courses_router
from app.core.config import ApiSettings
from app.core.config import get_settings
from app.core.errors import register_error_handlers
from app.core.logging_config import configure_logging
from app.db import models as _models  # noqa: F401
from app.pipeline.rate_limit import RateLimitMiddleware
from app.pipeline.rate_limit import credential_limiter
from app.pipeline.rate_limit import default_limiter
from app.pipeline.security import RequestLoggingMiddleware
from app.pipeline.security import RequestSizeLimitMiddleware
from app.pipeline.security import configure_cors
from app.pipeline.security import security_headers
from app.services.auth import Authenticator
from app.services.auth import RejectingAuthenticator

logger = logging.getLogger(__name__)


def create_app(settings: ApiSettings | None = None, *, authenticator: Authenticator | None = None) -> FastAPI:
    """Build the application with the request-processing pipeline installed.

    Middleware runs outermost first: security headers, CORS, the general
    rate limiter, the request size guard, then request logging.
    """
    settings = settings or get_settings()

    app = FastAPI(title="Course Creator API")
    app.state.settings = settings
    app.state.authenticator = authenticator or RejectingAuthenticator()
    app.state.credential_limiter = credential_limiter(settings) if settings.rate_limit_enabled else None

    register_error_handlers(app)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, limiter=default_limiter(settings))
    configure_cors(app, settings)
    app.middleware("http")(security_headers)

    app.include_router(courses_router)
    app.include_router(auth_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check stub endpoint for service readiness."""
        return {"status": "ok"}

    return app


settings = get_settings()
configure_logging(settings)
logger.info("Starting course creator API", extra={"extra_fields": settings.safe_for_logging()})
app = create_app(settings)
