"""Error envelope schemas shared across API handlers."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import Field


def utc_timestamp() -> str:
    """Return the current instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FieldIssue(BaseModel):
    """Single field-level validation issue."""

    field: str
    message: str
    code: str


class ErrorObject(BaseModel):
    """Canonical error payload object."""

    code: str
    message: str
    details: Any | None = None
    path: str


class ErrorResponse(BaseModel):
    """Top-level API error response envelope."""

    success: Literal[False] = False
    timestamp: str = Field(default_factory=utc_timestamp)
    error: ErrorObject
