"""Credential checks delegated to the configured authenticator."""

from __future__ import annotations

from typing import Protocol

from fastapi import status

from app.core.errors import OperationalError
from app.schemas.auth import LoginRequest
from app.schemas.auth import TokenResponse

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class Authenticator(Protocol):
    """Identity backend deciding whether credentials are accepted."""

    def authenticate(self, email: str, password: str) -> str | None:
        """Return an access token for accepted credentials, else None."""


class RejectingAuthenticator:
    """Default authenticator: rejects every attempt until a backend is attached."""

    def authenticate(self, email: str, password: str) -> str | None:
        return None


def login_service(authenticator: Authenticator, credentials: LoginRequest) -> TokenResponse:
    """Exchange credentials for an access token or raise 401."""
    token = authenticator.authenticate(credentials.email, credentials.password)
    if token is None:
        raise OperationalError(INVALID_CREDENTIALS_MESSAGE, status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED")
    return TokenResponse(access_token=token)
