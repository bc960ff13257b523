"""API error taxonomy, failure normalization and exception handler registration."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
import logging
import re
import traceback
from typing import Any

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DataError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import NoResultFound
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import StatementError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.schemas.error import ErrorObject
from app.schemas.error import ErrorResponse
from app.schemas.error import FieldIssue

logger = logging.getLogger(__name__)

_LOCATION_PREFIXES = frozenset({"body", "query", "path", "header", "cookie"})
_PG_UNIQUE_VIOLATION = "23505"
_PG_KEY_DETAIL = re.compile(r"Key \((?P<columns>[^)]*)\)=")
_SQLITE_UNIQUE_FAILED = re.compile(r"UNIQUE constraint failed: (?P<columns>[^\n]+)")


class ErrorKind(str, Enum):
    """Closed set of error codes the pipeline itself emits."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DATABASE_ERROR = "DATABASE_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def _code_value(code: ErrorKind | str) -> str:
    return code.value if isinstance(code, ErrorKind) else str(code)


class OperationalError(Exception):
    """Expected failure carrying its own status, code and client-facing message."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: ErrorKind | str = ErrorKind.INTERNAL_ERROR,
        *,
        details: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = _code_value(code)
        self.details = details
        self.headers = dict(headers) if headers else {}


class NotFoundError(OperationalError):
    """Convenience exception for missing resources."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND, ErrorKind.NOT_FOUND)


class ValidationFailure(Exception):
    """Raised when one request part does not match its declared shape."""

    def __init__(self, part: str, issues: Sequence[FieldIssue]) -> None:
        super().__init__(f"Validation failed for request {part}")
        self.part = part
        self.issues = list(issues)


@dataclass(frozen=True)
class RequestInfo:
    """Request context captured for error logging and envelope paths."""

    path: str
    url: str
    method: str
    ip: str
    user_agent: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> RequestInfo:
        return cls(
            path=request.url.path,
            url=str(request.url),
            method=request.method,
            ip=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent"),
        )


@dataclass(frozen=True)
class NormalizedError:
    """Status, code, message and optional details resolved for one failure."""

    status_code: int
    code: str
    message: str
    details: Any | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


INTERNAL_SERVER_ERROR = NormalizedError(
    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    code=ErrorKind.INTERNAL_ERROR.value,
    message="Internal server error",
)


def format_field_path(location: Iterable[Any], *, default: str = "request") -> str:
    """Join a location tuple into ``parent.child[2]`` notation."""
    path = ""
    for part in location:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or default


def issues_from_errors(errors: Iterable[Mapping[str, Any]], *, default_field: str = "request") -> list[FieldIssue]:
    """Convert pydantic error dictionaries to field issues."""
    issues: list[FieldIssue] = []
    for error in errors:
        location = list(error.get("loc", ()))
        fallback = default_field
        if location and location[0] in _LOCATION_PREFIXES:
            fallback = str(location.pop(0))
        issues.append(
            FieldIssue(
                field=format_field_path(location, default=fallback),
                message=str(error.get("msg", "Invalid value")),
                code=str(error.get("type", "invalid")),
            )
        )
    return issues


def unique_violation_fields(exc: IntegrityError) -> list[str] | None:
    """Return the columns of a unique violation, or None for other integrity errors."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _PG_UNIQUE_VIOLATION:
        diag = getattr(orig, "diag", None)
        detail = getattr(diag, "message_detail", None) or str(orig)
        match = _PG_KEY_DETAIL.search(detail)
        if match:
            return [column.strip().strip('"') for column in match.group("columns").split(",")]
        constraint = getattr(diag, "constraint_name", None)
        return [constraint] if constraint else []

    match = _SQLITE_UNIQUE_FAILED.search(str(orig))
    if match:
        return [column.strip().rsplit(".", 1)[-1] for column in match.group("columns").split(",")]
    return None


def _http_error_code(status_code: int) -> str:
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorKind.NOT_FOUND.value
    if status_code in (status.HTTP_400_BAD_REQUEST, status.HTTP_422_UNPROCESSABLE_ENTITY):
        return ErrorKind.VALIDATION_ERROR.value
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "UNAUTHORIZED"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "FORBIDDEN"
    if status_code == status.HTTP_409_CONFLICT:
        return ErrorKind.CONFLICT.value
    if status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return ErrorKind.RATE_LIMIT_ERROR.value
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return ErrorKind.INTERNAL_ERROR.value
    return "BAD_REQUEST"


def _is_operational(exc: BaseException) -> bool:
    return isinstance(exc, OperationalError)


def _map_operational(exc: OperationalError) -> NormalizedError:
    return NormalizedError(exc.status_code, exc.code, exc.message, exc.details, exc.headers)


def _is_http_exception(exc: BaseException) -> bool:
    return isinstance(exc, StarletteHTTPException)


def _map_http_exception(exc: StarletteHTTPException) -> NormalizedError:
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "Request failed"
    return NormalizedError(
        exc.status_code,
        _http_error_code(exc.status_code),
        message,
        headers=dict(exc.headers or {}),
    )


def _is_validation_failure(exc: BaseException) -> bool:
    return isinstance(exc, (ValidationFailure, RequestValidationError, PydanticValidationError))


def _map_validation_failure(exc: BaseException) -> NormalizedError:
    if isinstance(exc, ValidationFailure):
        issues = exc.issues
    else:
        issues = issues_from_errors(exc.errors())
    return NormalizedError(
        status.HTTP_400_BAD_REQUEST,
        ErrorKind.VALIDATION_ERROR.value,
        "Validation failed",
        [issue.model_dump() for issue in issues],
    )


def _is_unique_violation(exc: BaseException) -> bool:
    return isinstance(exc, IntegrityError) and unique_violation_fields(exc) is not None


def _map_unique_violation(exc: IntegrityError) -> NormalizedError:
    return NormalizedError(
        status.HTTP_409_CONFLICT,
        ErrorKind.CONFLICT.value,
        "Unique constraint violation",
        {"field": unique_violation_fields(exc)},
    )


def _is_record_not_found(exc: BaseException) -> bool:
    return isinstance(exc, NoResultFound)


def _map_record_not_found(_: BaseException) -> NormalizedError:
    return NormalizedError(status.HTTP_404_NOT_FOUND, ErrorKind.NOT_FOUND.value, "Record not found")


def _is_data_shape_error(exc: BaseException) -> bool:
    if isinstance(exc, DataError):
        return True
    return isinstance(exc, StatementError) and isinstance(exc.orig, (TypeError, ValueError))


def _is_database_failure(exc: BaseException) -> bool:
    return isinstance(exc, SQLAlchemyError) and not _is_data_shape_error(exc)


def _map_database_failure(_: BaseException) -> NormalizedError:
    return NormalizedError(status.HTTP_400_BAD_REQUEST, ErrorKind.DATABASE_ERROR.value, "Database operation failed")


def _map_data_shape_error(_: BaseException) -> NormalizedError:
    return NormalizedError(status.HTTP_400_BAD_REQUEST, ErrorKind.VALIDATION_ERROR.value, "Invalid data provided")


ErrorPredicate = Callable[[BaseException], bool]
ErrorMapper = Callable[[Any], NormalizedError]

# Evaluated in order; the first matching predicate decides the response.
ERROR_DISPATCH: tuple[tuple[ErrorPredicate, ErrorMapper], ...] = (
    (_is_operational, _map_operational),
    (_is_http_exception, _map_http_exception),
    (_is_validation_failure, _map_validation_failure),
    (_is_unique_violation, _map_unique_violation),
    (_is_record_not_found, _map_record_not_found),
    (_is_database_failure, _map_database_failure),
    (_is_data_shape_error, _map_data_shape_error),
)


def classify_error(exc: BaseException) -> NormalizedError:
    """Resolve a failure to its status, code and client-safe message."""
    for predicate, mapper in ERROR_DISPATCH:
        if predicate(exc):
            return mapper(exc)
    return INTERNAL_SERVER_ERROR


def build_error_envelope(normalized: NormalizedError, path: str) -> ErrorResponse:
    """Wrap a normalized failure in the wire envelope."""
    return ErrorResponse(
        error=ErrorObject(
            code=normalized.code,
            message=normalized.message,
            details=normalized.details,
            path=path,
        )
    )


def render_error(normalized: NormalizedError, envelope: ErrorResponse) -> JSONResponse:
    """Serialize an envelope into a JSON response with the failure's headers."""
    content = jsonable_encoder(envelope)
    if content["error"].get("details") is None:
        content["error"].pop("details", None)
    return JSONResponse(
        status_code=normalized.status_code,
        content=content,
        headers=dict(normalized.headers) or None,
    )


def _describe(exc: BaseException) -> str:
    try:
        return str(exc)
    except Exception:
        return f"<unprintable {type(exc).__name__}>"


def _log_failure(exc: BaseException, info: RequestInfo) -> None:
    message = _describe(exc)
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        "Error occurred: %s",
        message,
        extra={
            "extra_fields": {
                "message": message,
                "stack": stack,
                "url": info.url,
                "method": info.method,
                "ip": info.ip,
                "userAgent": info.user_agent,
            }
        },
    )


def normalize_error(exc: BaseException, info: RequestInfo) -> tuple[NormalizedError, ErrorResponse]:
    """Log a failure and map it to exactly one status and envelope."""
    try:
        _log_failure(exc, info)
    except Exception:
        logger.error("Error occurred: %s", type(exc).__name__)
    try:
        normalized = classify_error(exc)
        envelope = build_error_envelope(normalized, info.path)
    except Exception:
        logger.exception("Failed to classify error for %s %s", info.method, info.path)
        normalized = INTERNAL_SERVER_ERROR
        envelope = build_error_envelope(normalized, info.path)
    return normalized, envelope


def error_response(request: Request, exc: BaseException) -> JSONResponse:
    """Produce the single failure response for a request."""
    normalized, envelope = normalize_error(exc, RequestInfo.from_request(request))
    try:
        return render_error(normalized, envelope)
    except Exception:
        logger.exception("Failed to render error details for %s", request.url.path)
        return render_error(INTERNAL_SERVER_ERROR, build_error_envelope(INTERNAL_SERVER_ERROR, request.url.path))


async def normalized_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Route any exception surfaced by FastAPI through the normalizer."""

    return error_response(request, exc)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the normalizer to every failure class FastAPI may surface."""

    for exc_class in (
        RequestValidationError,
        StarletteHTTPException,
        OperationalError,
        ValidationFailure,
        PydanticValidationError,
        SQLAlchemyError,
        Exception,
    ):
        app.add_exception_handler(exc_class, normalized_exception_handler)
