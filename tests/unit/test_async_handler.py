"""Unit tests for handler wrapping and the pipeline route class."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter
from fastapi import Depends
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient
from starlette.requests import Request as StarletteRequest

from app.core.errors import NotFoundError
from app.pipeline.handlers import PipelineRoute
from app.pipeline.handlers import async_handler


def _request(path: str = "/lessons") -> StarletteRequest:
    return StarletteRequest({"type": "http", "method": "GET", "path": path, "headers": [], "query_string": b""})


def test_successful_result_passes_through_unchanged() -> None:
    sentinel = JSONResponse({"ok": True})

    async def handler(request: Request) -> JSONResponse:
        return sentinel

    assert asyncio.run(async_handler(handler)(_request())) is sentinel


def test_sync_handlers_are_supported() -> None:
    wrapped = async_handler(lambda request: "plain")

    assert asyncio.run(wrapped(_request())) == "plain"


def test_async_failures_become_error_responses() -> None:
    async def handler(request: Request) -> None:
        raise NotFoundError("Lesson not found")

    response = asyncio.run(async_handler(handler)(_request("/lessons/9")))

    assert response.status_code == 404
    assert b'"path":"/lessons/9"' in response.body


def test_wrapper_keeps_handler_metadata() -> None:
    async def list_lessons(request: Request) -> None:
        """List lessons."""

    wrapped = async_handler(list_lessons)

    assert wrapped.__name__ == "list_lessons"
    assert wrapped.__doc__ == "List lessons."


def test_pipeline_route_catches_dependency_and_endpoint_failures() -> None:
    app = FastAPI()
    router = APIRouter(route_class=PipelineRoute)

    async def require_module() -> None:
        raise NotFoundError("Module not found")

    @router.get("/modules/{module_id}", dependencies=[Depends(require_module)])
    async def get_module(module_id: str) -> dict[str, str]:
        return {"id": module_id}

    @router.get("/boom")
    def boom() -> None:
        raise RuntimeError("disk full")

    @router.get("/ok")
    def ok() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(router)
    client = TestClient(app)

    missing = client.get("/modules/m1")
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Module not found"

    failed = client.get("/boom")
    assert failed.status_code == 500
    assert failed.json()["error"] == {"code": "INTERNAL_ERROR", "message": "Internal server error", "path": "/boom"}

    assert client.get("/ok").json() == {"status": "ok"}
