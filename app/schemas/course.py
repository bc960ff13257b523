"""Pydantic schemas for course API payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from app.pipeline.validation import RequestShape

LANGUAGE_CODE_PATTERN = r"^[a-z]{2}$"


class CourseCreate(RequestShape):
    """Payload to create a course."""

    id: str = Field(min_length=1, max_length=20)
    source_language: str = Field(pattern=LANGUAGE_CODE_PATTERN)
    target_language: str = Field(pattern=LANGUAGE_CODE_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    is_public: bool = True


class CourseUpdate(RequestShape):
    """Payload to update mutable course fields."""

    source_language: str | None = Field(default=None, pattern=LANGUAGE_CODE_PATTERN)
    target_language: str | None = Field(default=None, pattern=LANGUAGE_CODE_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    is_public: bool | None = None

    @field_validator("source_language", "target_language", "name", "is_public")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field may not be null")
        return value


class CourseIdParams(RequestShape):
    """Route parameters addressing one course."""

    course_id: str = Field(min_length=1, max_length=20)


class Course(BaseModel):
    """Course response payload."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    source_language: str
    target_language: str
    name: str
    description: str | None = None
    is_public: bool
    created_at: datetime
    updated_at: datetime
