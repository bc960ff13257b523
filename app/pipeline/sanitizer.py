"""Control-character stripping and markup neutralization for request input.

Every string leaf of the body, query and route parameters goes through two
passes before any handler sees it:

1. ASCII control characters (``0x00-0x1F`` and ``0x7F``) are removed.
2. HTML markup is escaped so the text stays visible but renders inert.
   Each leaf changed by this pass is logged as a possible XSS attempt.

Object and array structure is preserved and non-string leaves are returned
untouched. The sanitized parts are cached on ``request.state.parts`` so
later pipeline stages read the same values.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
import html
import json
import logging
import re
from typing import Any

from fastapi import Request

from app.core.errors import RequestInfo
from app.core.errors import ValidationFailure
from app.schemas.error import FieldIssue

logger = logging.getLogger(__name__)

CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")
MARKUP_CHARACTERS = re.compile(r"[<>]")
PREVIEW_LENGTH = 100


@dataclass(frozen=True)
class RequestParts:
    """Body, route parameters and query of one request."""

    body: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)

    def with_part(self, part: str, value: Any) -> RequestParts:
        return replace(self, **{part: value})


def strip_control_characters(value: str) -> str:
    return CONTROL_CHARACTERS.sub("", value)


def escape_markup(value: str) -> str:
    """Escape HTML special characters when the value contains markup."""
    if not MARKUP_CHARACTERS.search(value):
        return value
    return html.escape(value, quote=False)


def map_string_leaves(value: Any, transform: Callable[[str], str]) -> Any:
    """Apply ``transform`` to every string leaf of a JSON-shaped value."""
    if isinstance(value, str):
        return transform(value)
    if isinstance(value, dict):
        return {key: map_string_leaves(item, transform) for key, item in value.items()}
    if isinstance(value, list):
        return [map_string_leaves(item, transform) for item in value]
    return value


def preview(value: str, limit: int = PREVIEW_LENGTH) -> str:
    return value[:limit] + ("..." if len(value) > limit else "")


def sanitize_value(value: Any, *, on_markup: Callable[[str], None] | None = None) -> Any:
    """Run both sanitizing passes over a JSON-shaped value.

    ``on_markup`` is called with the original text of every leaf whose
    content was changed by the markup pass.
    """
    stripped = map_string_leaves(value, strip_control_characters)

    def _neutralize(text: str) -> str:
        escaped = escape_markup(text)
        if escaped != text and on_markup is not None:
            on_markup(text)
        return escaped

    return map_string_leaves(stripped, _neutralize)


def sanitize_parts(parts: RequestParts, info: RequestInfo) -> RequestParts:
    """Sanitize all request parts, logging neutralized markup."""

    def _log_markup(original: str) -> None:
        logger.warning(
            "XSS attempt detected and sanitized",
            extra={"extra_fields": {"original": preview(original), "path": info.path, "ip": info.ip}},
        )

    return RequestParts(
        body=sanitize_value(parts.body, on_markup=_log_markup),
        params=sanitize_value(parts.params, on_markup=_log_markup),
        query=sanitize_value(parts.query, on_markup=_log_markup),
    )


def query_to_dict(request: Request) -> dict[str, Any]:
    """Collapse query items into a dict; repeated keys become lists."""
    query: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key not in query:
            query[key] = value
        elif isinstance(query[key], list):
            query[key].append(value)
        else:
            query[key] = [query[key], value]
    return query


async def read_request_parts(request: Request) -> RequestParts:
    """Collect the raw JSON body, route parameters and query of a request."""
    body: Any = None
    raw_body = await request.body()
    content_type = request.headers.get("content-type", "")
    if raw_body and "json" in content_type:
        try:
            body = json.loads(raw_body)
        except ValueError as exc:
            raise ValidationFailure(
                "body",
                [FieldIssue(field="body", message="Malformed JSON body", code="json_invalid")],
            ) from exc

    return RequestParts(
        body=body,
        params=dict(request.path_params),
        query=query_to_dict(request),
    )


async def sanitize_request(request: Request) -> RequestParts:
    """Request dependency returning the sanitized parts, computed once per request."""
    cached = getattr(request.state, "sanitized_parts", None)
    if cached is not None:
        return cached

    parts = sanitize_parts(await read_request_parts(request), RequestInfo.from_request(request))
    request.state.sanitized_parts = parts
    request.state.parts = parts
    return parts
