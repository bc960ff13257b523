"""Application configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os

DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)
DEFAULT_MAX_REQUEST_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_RATE_LIMIT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100
DEFAULT_AUTH_RATE_LIMIT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_AUTH_RATE_LIMIT_MAX_REQUESTS = 5
DEFAULT_PAGINATION_LIMIT = 20
DEFAULT_PAGINATION_MAX_LIMIT = 100
DEFAULT_SORT_FIELD = "created_at"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "json"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _get_origins_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


@dataclass(frozen=True)
class RateLimitSettings:
    """Window and ceiling pair for one rate-limit policy."""

    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class ApiSettings:
    """Runtime settings for the request-processing pipeline."""

    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    max_request_size_bytes: int = DEFAULT_MAX_REQUEST_SIZE_BYTES
    rate_limit_enabled: bool = True
    default_rate_limit: RateLimitSettings = RateLimitSettings(
        DEFAULT_RATE_LIMIT_WINDOW_MS,
        DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    )
    auth_rate_limit: RateLimitSettings = RateLimitSettings(
        DEFAULT_AUTH_RATE_LIMIT_WINDOW_MS,
        DEFAULT_AUTH_RATE_LIMIT_MAX_REQUESTS,
    )
    pagination_default_limit: int = DEFAULT_PAGINATION_LIMIT
    pagination_max_limit: int = DEFAULT_PAGINATION_MAX_LIMIT
    default_sort_field: str = DEFAULT_SORT_FIELD
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = DEFAULT_LOG_FORMAT

    @property
    def allow_all_origins(self) -> bool:
        return "*" in self.cors_origins

    def safe_for_logging(self) -> dict[str, object]:
        """Return settings in a shape suitable for a startup log line."""
        return {
            "cors_origins": list(self.cors_origins),
            "max_request_size_bytes": self.max_request_size_bytes,
            "rate_limit_enabled": self.rate_limit_enabled,
            "default_rate_limit": f"{self.default_rate_limit.max_requests}/{self.default_rate_limit.window_ms}ms",
            "auth_rate_limit": f"{self.auth_rate_limit.max_requests}/{self.auth_rate_limit.window_ms}ms",
            "pagination_max_limit": self.pagination_max_limit,
        }


def load_settings() -> ApiSettings:
    """Read settings from the environment, falling back to documented defaults."""
    return ApiSettings(
        cors_origins=_get_origins_env("CREATOR_CORS_ORIGIN", DEFAULT_CORS_ORIGINS),
        max_request_size_bytes=_get_int_env("CREATOR_MAX_REQUEST_SIZE", DEFAULT_MAX_REQUEST_SIZE_BYTES),
        rate_limit_enabled=_get_bool_env("CREATOR_RATE_LIMIT_ENABLED", True),
        default_rate_limit=RateLimitSettings(
            window_ms=_get_int_env("CREATOR_RATE_LIMIT_WINDOW_MS", DEFAULT_RATE_LIMIT_WINDOW_MS),
            max_requests=_get_int_env("CREATOR_RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS),
        ),
        auth_rate_limit=RateLimitSettings(
            window_ms=_get_int_env("CREATOR_AUTH_RATE_LIMIT_WINDOW_MS", DEFAULT_AUTH_RATE_LIMIT_WINDOW_MS),
            max_requests=_get_int_env("CREATOR_AUTH_RATE_LIMIT_MAX_REQUESTS", DEFAULT_AUTH_RATE_LIMIT_MAX_REQUESTS),
        ),
        pagination_default_limit=_get_int_env("CREATOR_PAGINATION_DEFAULT_LIMIT", DEFAULT_PAGINATION_LIMIT),
        pagination_max_limit=_get_int_env("CREATOR_PAGINATION_MAX_LIMIT", DEFAULT_PAGINATION_MAX_LIMIT),
        default_sort_field=os.getenv("CREATOR_DEFAULT_SORT_FIELD", DEFAULT_SORT_FIELD),
        log_level=os.getenv("CREATOR_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        log_format=os.getenv("CREATOR_LOG_FORMAT", DEFAULT_LOG_FORMAT),
    )


@lru_cache(maxsize=1)
def get_settings() -> ApiSettings:
    """Load pipeline settings once per process."""
    return load_settings()
