"""Authentication API routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request

from app.pipeline.handlers import PipelineRoute
from app.pipeline.rate_limit import credential_rate_limit
from app.pipeline.sanitizer import RequestParts
from app.pipeline.validation import validate
from app.schemas.auth import LoginRequest
from app.schemas.auth import TokenResponse
from app.services.auth import login_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"], route_class=PipelineRoute)


@router.post(
    "/login",
    response_model=TokenResponse,
    dependencies=[Depends(credential_rate_limit)],
)
def login_endpoint(
    request: Request,
    parts: RequestParts = Depends(validate(body=LoginRequest)),
) -> TokenResponse:
    """Exchange credentials for an access token."""
    return login_service(request.app.state.authenticator, parts.body)
