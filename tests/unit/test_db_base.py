"""Unit tests for session factory construction."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.pool import StaticPool
import pytest

from app.db import base


@pytest.fixture
def sqlite_database(monkeypatch):
    monkeypatch.setenv(base.DATABASE_URL_ENV, "sqlite+pysqlite://")
    base.default_session_factory.cache_clear()
    yield
    base.default_session_factory().kw["bind"].dispose()
    base.default_session_factory.cache_clear()


def test_database_url_reads_environment(monkeypatch) -> None:
    monkeypatch.delenv(base.DATABASE_URL_ENV, raising=False)
    assert base.database_url() == base.DEFAULT_DATABASE_URL

    monkeypatch.setenv(base.DATABASE_URL_ENV, "sqlite+pysqlite:///courses.db")
    assert base.database_url() == "sqlite+pysqlite:///courses.db"


def test_build_session_factory_keeps_rows_readable_after_commit() -> None:
    factory = base.build_session_factory(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    assert factory.kw["autoflush"] is False
    assert factory.kw["expire_on_commit"] is False
    with factory() as session:
        assert session.execute(text("SELECT 1")).scalar_one() == 1
    factory.kw["bind"].dispose()


def test_get_db_session_uses_configured_database(sqlite_database) -> None:
    sessions = base.get_db_session()
    session = next(sessions)

    assert str(session.bind.url) == "sqlite+pysqlite://"
    assert session.execute(text("SELECT 1")).scalar_one() == 1

    sessions.close()
    assert base.default_session_factory() is base.default_session_factory()
