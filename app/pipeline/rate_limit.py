"""Per-client request rate limiting with fixed windows."""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
import logging
import math
import threading
import time
from typing import Protocol

from fastapi import Request
from fastapi import Response
from fastapi import status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.config import ApiSettings
from app.core.errors import ErrorKind
from app.core.errors import NormalizedError
from app.core.errors import OperationalError
from app.core.errors import RequestInfo
from app.core.errors import build_error_envelope
from app.core.errors import render_error

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

KeyExtractor = Callable[[Request], str]
Clock = Callable[[], float]


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@dataclass(frozen=True)
class RateLimiterPolicy:
    """Window length, request ceiling and the key requests are counted under."""

    window_ms: int
    max_requests: int
    key_extractor: KeyExtractor = client_address

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against its window."""

    allowed: bool
    limit: int
    remaining: int
    reset_after_seconds: float

    def headers(self) -> dict[str, str]:
        reset = str(max(math.ceil(self.reset_after_seconds), 0))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": reset,
        }
        if not self.allowed:
            headers["Retry-After"] = reset
        return headers


class RateLimitStore(Protocol):
    """Counter storage shared by every request hitting one limiter."""

    def hit(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        """Count one request for ``key`` and return ``(count, window_reset_at)``."""


class MemoryRateLimitStore:
    """In-process fixed-window counters guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        with self._lock:
            reset_at, count = self._windows.get(key, (0.0, 0))
            if now >= reset_at:
                self._prune(now)
                reset_at, count = now + window_seconds, 0
            count += 1
            self._windows[key] = (reset_at, count)
            return count, reset_at

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [key for key, (reset_at, _) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]


class RateLimitExceeded(OperationalError):
    """Raised by the route dependency form of the limiter."""

    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__(
            RATE_LIMIT_MESSAGE,
            status.HTTP_429_TOO_MANY_REQUESTS,
            ErrorKind.RATE_LIMIT_ERROR,
            headers=decision.headers(),
        )
        self.decision = decision


class RateLimiter:
    """Count requests per client key and reject those above the window ceiling.

    ``as_dependency`` turns the limiter into a route dependency, in which case
    a rejected request raises ``RateLimitExceeded`` for the error normalizer.
    ``RateLimitMiddleware`` applies it to every request instead.
    """

    def __init__(
        self,
        policy: RateLimiterPolicy,
        *,
        store: RateLimitStore | None = None,
        clock: Clock = time.monotonic,
        name: str = "default",
    ) -> None:
        if policy.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if policy.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.policy = policy
        self.store = store or MemoryRateLimitStore()
        self.clock = clock
        self.name = name

    def check(self, key: str) -> RateLimitDecision:
        now = self.clock()
        count, reset_at = self.store.hit(f"{self.name}:{key}", self.policy.window_seconds, now)
        return RateLimitDecision(
            allowed=count <= self.policy.max_requests,
            limit=self.policy.max_requests,
            remaining=max(self.policy.max_requests - count, 0),
            reset_after_seconds=reset_at - now,
        )

    def check_request(self, request: Request) -> RateLimitDecision:
        decision = self.check(self.policy.key_extractor(request))
        if not decision.allowed:
            info = RequestInfo.from_request(request)
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "extra_fields": {
                        "limiter": self.name,
                        "ip": info.ip,
                        "userAgent": info.user_agent,
                        "path": info.path,
                        "method": info.method,
                    }
                },
            )
        return decision

    def rejection_response(self, request: Request, decision: RateLimitDecision) -> Response:
        normalized = NormalizedError(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            code=ErrorKind.RATE_LIMIT_ERROR.value,
            message=RATE_LIMIT_MESSAGE,
            headers=decision.headers(),
        )
        return render_error(normalized, build_error_envelope(normalized, request.url.path))

    async def __call__(self, request: Request) -> None:
        decision = self.check_request(request)
        if not decision.allowed:
            raise RateLimitExceeded(decision)

    def as_dependency(self) -> Callable[[Request], Awaitable[None]]:
        async def enforce(request: Request) -> None:
            await self(request)

        return enforce


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply one limiter to every request before routing."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        decision = self.limiter.check_request(request)
        if not decision.allowed:
            return self.limiter.rejection_response(request, decision)
        return await call_next(request)


def create_limiter(
    window_ms: int,
    max_requests: int,
    *,
    key_extractor: KeyExtractor = client_address,
    store: RateLimitStore | None = None,
    clock: Clock = time.monotonic,
    name: str = "default",
) -> RateLimiter:
    """Create a limiter admitting ``max_requests`` per key per ``window_ms``."""
    return RateLimiter(
        RateLimiterPolicy(window_ms=window_ms, max_requests=max_requests, key_extractor=key_extractor),
        store=store,
        clock=clock,
        name=name,
    )


def default_limiter(settings: ApiSettings, **kwargs) -> RateLimiter:
    """Wide-window limiter for general traffic."""
    return create_limiter(
        settings.default_rate_limit.window_ms,
        settings.default_rate_limit.max_requests,
        name="default",
        **kwargs,
    )


def credential_limiter(settings: ApiSettings, **kwargs) -> RateLimiter:
    """Short-ceiling limiter for credential submission endpoints."""
    return create_limiter(
        settings.auth_rate_limit.window_ms,
        settings.auth_rate_limit.max_requests,
        name="auth",
        **kwargs,
    )


async def credential_rate_limit(request: Request) -> None:
    """Route dependency applying the application's credential limiter, when one is set."""
    limiter: RateLimiter | None = getattr(request.app.state, "credential_limiter", None)
    if limiter is not None:
        await limiter(request)
