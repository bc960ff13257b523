"""Unit tests for request input sanitization."""

from __future__ import annotations

import logging

from fastapi import Depends
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import register_error_handlers
from app.pipeline.sanitizer import RequestParts
from app.pipeline.sanitizer import sanitize_request
from app.pipeline.sanitizer import sanitize_value


def _build_client() -> TestClient:
    app = FastAPI()
    register_error_handlers(app)

    @app.post("/echo/{slug}")
    async def echo(parts: RequestParts = Depends(sanitize_request)) -> dict:
        return {"body": parts.body, "params": parts.params, "query": parts.query}

    return TestClient(app)


def test_markup_is_escaped_and_stays_visible() -> None:
    assert sanitize_value("<script>alert(1)</script>") == "&lt;script&gt;alert(1)&lt;/script&gt;"


def test_control_characters_are_removed() -> None:
    assert sanitize_value("Hola\x00 mun\x1fdo\x7f") == "Hola mundo"


def test_plain_text_with_ampersand_is_untouched() -> None:
    assert sanitize_value("Salt & Pepper") == "Salt & Pepper"


def test_structure_and_non_string_leaves_are_preserved() -> None:
    value = {
        "name": "<b>Quechua</b>",
        "order": 3,
        "is_public": True,
        "description": None,
        "tags": ["ok", "<i>x</i>", 1.5],
        "meta": {"level": {"code": "A1\x07"}},
    }

    assert sanitize_value(value) == {
        "name": "&lt;b&gt;Quechua&lt;/b&gt;",
        "order": 3,
        "is_public": True,
        "description": None,
        "tags": ["ok", "&lt;i&gt;x&lt;/i&gt;", 1.5],
        "meta": {"level": {"code": "A1"}},
    }


def test_sanitizing_twice_changes_nothing() -> None:
    samples = ["<a href='x'>&amp;</a>", "Tom & Jerry", "a\x01<b>", {"k": ["<p>", "&lt;p&gt;"]}]

    for sample in samples:
        once = sanitize_value(sample)
        assert sanitize_value(once) == once


def test_markup_callback_receives_original_text() -> None:
    seen: list[str] = []

    sanitize_value({"a": "<img src=x onerror=alert(1)>", "b": "clean"}, on_markup=seen.append)

    assert seen == ["<img src=x onerror=alert(1)>"]


def test_all_request_parts_are_sanitized(caplog) -> None:
    client = _build_client()

    with caplog.at_level(logging.WARNING, logger="app.pipeline.sanitizer"):
        response = client.post(
            "/echo/intro",
            params={"search": "<svg>", "tag": ["a", "b"]},
            json={"title": "<h1>Unit 1</h1>", "steps": [{"text": "line\x0bbreak"}]},
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["body"] == {"title": "&lt;h1&gt;Unit 1&lt;/h1&gt;", "steps": [{"text": "linebreak"}]}
    assert payload["params"] == {"slug": "intro"}
    assert payload["query"] == {"search": "&lt;svg&gt;", "tag": ["a", "b"]}

    warnings = [record for record in caplog.records if record.getMessage() == "XSS attempt detected and sanitized"]
    assert len(warnings) == 2
    assert warnings[0].extra_fields["path"] == "/echo/intro"


def test_malformed_json_body_is_a_validation_error() -> None:
    client = _build_client()

    response = client.post(
        "/echo/intro",
        content=b'{"title": ',
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"] == [{"field": "body", "message": "Malformed JSON body", "code": "json_invalid"}]
