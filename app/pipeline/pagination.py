"""Pagination resolution and response shaping.

Clients address a result window either by page (``?page=3&limit=20``) or by
absolute offset (``?offset=40&limit=20``). Both resolve to one
``PaginationDescriptor`` whose ``offset`` always equals
``(page - 1) * limit``. When a request carries both ``page`` and ``offset``
the offset wins.

Lenient and strict inputs are deliberately treated differently: an unknown
``sortBy`` falls back to the route's default sort field, while non-integer
``page``/``limit``/``offset`` values are rejected with a validation error.
"""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
import math
import re
from types import MappingProxyType
from typing import Any
from typing import Literal

from fastapi import Depends
from fastapi import Request
from fastapi import Response
from fastapi import status
from starlette.datastructures import URL

from app.core.config import ApiSettings
from app.core.config import get_settings
from app.core.errors import ErrorKind
from app.core.errors import OperationalError
from app.pipeline.sanitizer import RequestParts
from app.pipeline.sanitizer import sanitize_request
from app.schemas.error import FieldIssue
from app.schemas.pagination import PaginationMeta

SortOrder = Literal["asc", "desc"]

PAGE_PARAM = "page"
LIMIT_PARAM = "limit"
OFFSET_PARAM = "offset"
SORT_BY_PARAM = "sortBy"
SORT_ORDER_PARAM = "sortOrder"
SEARCH_PARAM = "search"

SORT_ORDERS: tuple[SortOrder, ...] = ("asc", "desc")
DEFAULT_SORT_ORDER: SortOrder = "desc"

_INTEGER = re.compile(r"^[+-]?\d+$")
MAX_PAGINATION_VALUE = 2**31 - 1
_MAX_DIGITS = len(str(MAX_PAGINATION_VALUE))


@dataclass(frozen=True)
class PaginationPolicy:
    """Per-route pagination limits, sort fields, filters and search fields."""

    default_limit: int = 20
    max_limit: int = 100
    allowed_sort_fields: tuple[str, ...] = ()
    allowed_filter_keys: tuple[str, ...] = ()
    default_sort_field: str = "created_at"
    search_fields: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: ApiSettings, **overrides: Any) -> PaginationPolicy:
        values: dict[str, Any] = {
            "default_limit": settings.pagination_default_limit,
            "max_limit": settings.pagination_max_limit,
            "default_sort_field": settings.default_sort_field,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class PaginationDescriptor:
    """Resolved, read-only pagination request for the data-access layer."""

    page: int
    limit: int
    offset: int
    sort_by: str
    sort_order: SortOrder
    filters: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    search: str | None = None
    search_fields: tuple[str, ...] | None = None


def _last_value(raw: Any) -> Any:
    if isinstance(raw, list):
        return raw[-1] if raw else None
    return raw


def _read_integer(
    query: Mapping[str, Any],
    name: str,
    issues: list[FieldIssue],
    *,
    minimum: int | None = None,
) -> int | None:
    raw = _last_value(query.get(name))
    if raw is None:
        return None

    text = str(raw).strip()
    if isinstance(raw, bool) or not _INTEGER.match(text):
        issues.append(FieldIssue(field=name, message="Expected an integer", code="invalid_type"))
        return None

    value: int | None = None
    if len(text.lstrip("+-").lstrip("0")) <= _MAX_DIGITS:
        try:
            value = int(text)
        except ValueError:
            value = None
    if value is None and text.startswith("-"):
        value = -MAX_PAGINATION_VALUE - 1
    if value is None or value > MAX_PAGINATION_VALUE:
        issues.append(
            FieldIssue(
                field=name,
                message=f"Must be less than or equal to {MAX_PAGINATION_VALUE}",
                code="too_big",
            )
        )
        return None

    if minimum is not None and value < minimum:
        issues.append(
            FieldIssue(field=name, message=f"Must be greater than or equal to {minimum}", code="too_small")
        )
        return None
    return value


def _read_sort_order(query: Mapping[str, Any], issues: list[FieldIssue]) -> SortOrder:
    raw = _last_value(query.get(SORT_ORDER_PARAM))
    if raw is None:
        return DEFAULT_SORT_ORDER
    if raw not in SORT_ORDERS:
        issues.append(
            FieldIssue(field=SORT_ORDER_PARAM, message="Expected 'asc' or 'desc'", code="invalid_enum_value")
        )
        return DEFAULT_SORT_ORDER
    return raw


def _resolve_sort_field(raw: Any, policy: PaginationPolicy) -> str:
    sort_by = _last_value(raw)
    if not sort_by:
        return policy.default_sort_field
    if policy.allowed_sort_fields and sort_by not in policy.allowed_sort_fields:
        return policy.default_sort_field
    return str(sort_by)


def resolve_pagination(query: Mapping[str, Any], policy: PaginationPolicy | None = None) -> PaginationDescriptor:
    """Resolve raw query parameters into a pagination descriptor.

    Raises:
        OperationalError: 400 ``VALIDATION_ERROR`` listing every malformed field.
    """
    policy = policy or PaginationPolicy()
    issues: list[FieldIssue] = []

    page = _read_integer(query, PAGE_PARAM, issues, minimum=1)
    offset = _read_integer(query, OFFSET_PARAM, issues, minimum=0)
    limit = _read_integer(query, LIMIT_PARAM, issues)
    sort_order = _read_sort_order(query, issues)

    if issues:
        summary = ", ".join(f"{issue.field}: {issue.message}" for issue in issues)
        raise OperationalError(
            f"Invalid pagination parameters: {summary}",
            status.HTTP_400_BAD_REQUEST,
            ErrorKind.VALIDATION_ERROR,
            details=[issue.model_dump() for issue in issues],
        )

    limit = min(max(limit if limit is not None else policy.default_limit, 1), policy.max_limit)

    if offset is not None:
        page = offset // limit + 1
    elif page is None:
        page = 1

    filters = {key: query[key] for key in policy.allowed_filter_keys if query.get(key) is not None}
    search = _last_value(query.get(SEARCH_PARAM))

    return PaginationDescriptor(
        page=page,
        limit=limit,
        offset=(page - 1) * limit,
        sort_by=_resolve_sort_field(query.get(SORT_BY_PARAM), policy),
        sort_order=sort_order,
        filters=MappingProxyType(filters),
        search=str(search) if search is not None else None,
        search_fields=policy.search_fields or None,
    )


def paginate(
    policy: PaginationPolicy | None = None,
    **overrides: Any,
) -> Callable[..., Awaitable[PaginationDescriptor]]:
    """Build a request dependency resolving and attaching the pagination descriptor.

    Without an explicit ``policy`` the limits come from the application's
    settings, with ``overrides`` applied on top.
    """

    async def dependency(request: Request, parts: RequestParts = Depends(sanitize_request)) -> PaginationDescriptor:
        resolved_policy = policy
        if resolved_policy is None:
            settings = getattr(request.app.state, "settings", None) or get_settings()
            resolved_policy = PaginationPolicy.from_settings(settings, **overrides)
        descriptor = resolve_pagination(parts.query, resolved_policy)
        request.state.pagination = descriptor
        return descriptor

    return dependency


def build_pagination_meta(page: int, limit: int, total: int) -> PaginationMeta:
    """Derive navigation metadata for one page of a result set."""
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
        offset=(page - 1) * limit,
    )


def _window_url(url: URL, offset: int, limit: int) -> str:
    target = url.include_query_params(offset=offset, limit=limit)
    return f"{target.path}?{target.query}"


def build_link_header(meta: PaginationMeta, url: URL) -> str:
    """Build an RFC 5988 ``Link`` header; ``first`` and ``last`` are always present."""
    links: list[str] = []
    if meta.has_next:
        links.append(f'<{_window_url(url, meta.offset + meta.limit, meta.limit)}>; rel="next"')
    if meta.has_prev:
        links.append(f'<{_window_url(url, max(0, meta.offset - meta.limit), meta.limit)}>; rel="prev"')
    links.append(f'<{_window_url(url, 0, meta.limit)}>; rel="first"')
    last_offset = max(meta.total_pages - 1, 0) * meta.limit
    links.append(f'<{_window_url(url, last_offset, meta.limit)}>; rel="last"')
    return ", ".join(links)


def pagination_headers(meta: PaginationMeta, url: URL) -> dict[str, str]:
    """Return the pagination response headers for ``meta``."""
    next_offset = meta.offset + meta.limit if meta.has_next else None
    prev_offset = max(0, meta.offset - meta.limit) if meta.has_prev else None
    return {
        "X-Total-Count": str(meta.total),
        "X-Total-Pages": str(meta.total_pages),
        "X-Current-Page": str(meta.page),
        "X-Has-Next": str(meta.has_next).lower(),
        "X-Has-Prev": str(meta.has_prev).lower(),
        "X-Limit": str(meta.limit),
        "X-Offset": str(meta.offset),
        "X-Next-Offset": str(next_offset) if next_offset is not None else "",
        "X-Prev-Offset": str(prev_offset) if prev_offset is not None else "",
        "Link": build_link_header(meta, url),
    }


def apply_pagination_headers(response: Response, request: Request, meta: PaginationMeta) -> None:
    response.headers.update(pagination_headers(meta, request.url))
