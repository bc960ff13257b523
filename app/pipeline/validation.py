"""Schema-driven validation of request body, route parameters and query."""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any

from fastapi import Depends
from fastapi import Request
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError

from app.core.errors import ValidationFailure
from app.core.errors import issues_from_errors
from app.pipeline.sanitizer import RequestParts
from app.pipeline.sanitizer import sanitize_request

VALIDATION_ORDER = ("body", "params", "query")


class RequestShape(BaseModel):
    """Base for request shapes: undeclared fields are dropped, not passed through."""

    model_config = ConfigDict(extra="ignore")


def validate_part(shape: type[BaseModel], part: str, data: Any) -> BaseModel:
    """Parse one request part, raising a ``ValidationFailure`` listing every issue."""
    try:
        return shape.model_validate({} if data is None and part != "body" else data)
    except ValidationError as exc:
        raise ValidationFailure(part, issues_from_errors(exc.errors(), default_field=part)) from exc


def validate_request(
    parts: RequestParts,
    *,
    body: type[BaseModel] | None = None,
    params: type[BaseModel] | None = None,
    query: type[BaseModel] | None = None,
) -> RequestParts:
    """Validate declared parts in body, params, query order.

    Only the first failing part is reported; parts without a shape are
    passed through unchanged.
    """
    shapes = {"body": body, "params": params, "query": query}
    validated = parts
    for part in VALIDATION_ORDER:
        shape = shapes[part]
        if shape is None:
            continue
        validated = validated.with_part(part, validate_part(shape, part, getattr(parts, part)))
    return validated


def validate(
    *,
    body: type[BaseModel] | None = None,
    params: type[BaseModel] | None = None,
    query: type[BaseModel] | None = None,
) -> Callable[..., Awaitable[RequestParts]]:
    """Build a request dependency that validates and replaces the declared parts."""

    async def dependency(request: Request, parts: RequestParts = Depends(sanitize_request)) -> RequestParts:
        validated = validate_request(parts, body=body, params=params, query=query)
        request.state.parts = validated
        return validated

    return dependency


def validate_body(shape: type[BaseModel]) -> Callable[..., Awaitable[RequestParts]]:
    return validate(body=shape)


def validate_params(shape: type[BaseModel]) -> Callable[..., Awaitable[RequestParts]]:
    return validate(params=shape)


def validate_query(shape: type[BaseModel]) -> Callable[..., Awaitable[RequestParts]]:
    return validate(query=shape)
