"""Route handler wrapping that forwards every failure to the error normalizer."""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
import functools
import inspect
from typing import Any

from fastapi import Request
from fastapi import Response
from fastapi.routing import APIRoute

from app.core.errors import error_response

RequestHandler = Callable[[Request], Any]


def async_handler(handler: RequestHandler) -> Callable[[Request], Awaitable[Any]]:
    """Await ``handler`` and turn any exception into the normalized error response."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Any:
        try:
            result = handler(request)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            return error_response(request, exc)
        return result

    return wrapper


class PipelineRoute(APIRoute):
    """API route whose handler, dependencies included, runs inside ``async_handler``."""

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        return async_handler(super().get_route_handler())
