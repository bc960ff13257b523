"""Pydantic schemas for credential submission."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

from app.pipeline.validation import RequestShape

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(RequestShape):
    """Credentials submitted to the login endpoint."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """Access token issued for accepted credentials."""

    access_token: str
    token_type: str = "bearer"
