"""Shared pytest fixtures for course creator test suites."""

from collections.abc import Generator
from pathlib import Path
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import ApiSettings  # noqa: E402
from app.db.base import build_session_factory  # noqa: E402
from app.db.models import Base  # noqa: E402


@pytest.fixture
def api_settings() -> ApiSettings:
    """Settings with rate limiting off so suites can issue many requests."""
    return ApiSettings(rate_limit_enabled=False, log_format="plain")


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    """Provide sessions bound to a fresh in-memory SQLite database."""
    factory = build_session_factory(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    engine = factory.kw["bind"]
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def api_app(api_settings: ApiSettings, session_factory: sessionmaker) -> FastAPI:
    """Build the application with database sessions routed to SQLite."""
    from app.db.base import get_db_session
    from app.main import create_app

    application = create_app(api_settings)

    def _session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db_session] = _session_override
    return application


@pytest.fixture
def client(api_app: FastAPI) -> Generator[TestClient, None, None]:
    """Provide an API test client for contract suites."""
    with TestClient(api_app) as test_client:
        yield test_client
