"""Unit tests for pagination-aware query builders."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.course import Course
from app.db.query import cursor_window
from app.db.query import enum_clause
from app.db.query import fetch_page
from app.db.query import page_window
from app.db.query import range_clause
from app.db.query import split_cursor_page
from app.pipeline.pagination import PaginationPolicy
from app.pipeline.pagination import resolve_pagination

POLICY = PaginationPolicy(
    allowed_sort_fields=("name", "created_at"),
    allowed_filter_keys=("source_language", "is_public"),
    search_fields=("name", "description"),
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seed(session: Session) -> None:
    rows = [
        ("qu-es", "qu", "es", "Quechua for Spanish speakers", "Andes", True),
        ("ay-es", "ay", "es", "Aymara basics", None, True),
        ("en-es", "en", "es", "English 101", "Intro course", False),
        ("es-en", "es", "en", "Spanish 101", "Curso de ESPAÑOL", True),
        ("pt-en", "pt", "en", "Portuguese 100% online", None, True),
    ]
    for index, (course_id, source, target, name, description, is_public) in enumerate(rows):
        session.add(
            Course(
                id=course_id,
                source_language=source,
                target_language=target,
                name=name,
                description=description,
                is_public=is_public,
                created_at=BASE_TIME + timedelta(days=index),
                updated_at=BASE_TIME + timedelta(days=index),
            )
        )
    session.commit()


def _ids(page) -> list[str]:
    return [course.id for course in page.items]


def test_page_window_is_skip_and_take() -> None:
    assert page_window(resolve_pagination({"page": "3", "limit": "10"}, POLICY)) == (20, 10)


def test_fetch_page_orders_windows_and_counts(session_factory) -> None:
    with session_factory() as session:
        _seed(session)

        first = fetch_page(session, select(Course), Course, resolve_pagination({"limit": "2"}, POLICY))
        second = fetch_page(session, select(Course), Course, resolve_pagination({"limit": "2", "page": "2"}, POLICY))

    assert first.total == second.total == 5
    assert _ids(first) == ["pt-en", "es-en"]
    assert _ids(second) == ["en-es", "ay-es"]


def test_fetch_page_applies_filters_and_search(session_factory) -> None:
    with session_factory() as session:
        _seed(session)

        filtered = fetch_page(
            session,
            select(Course),
            Course,
            resolve_pagination({"source_language": ["qu", "ay"], "sortBy": "name", "sortOrder": "asc"}, POLICY),
        )
        hidden = fetch_page(session, select(Course), Course, resolve_pagination({"is_public": "false"}, POLICY))
        searched = fetch_page(session, select(Course), Course, resolve_pagination({"search": "101"}, POLICY))
        literal = fetch_page(session, select(Course), Course, resolve_pagination({"search": "100%"}, POLICY))

    assert _ids(filtered) == ["ay-es", "qu-es"]
    assert _ids(hidden) == ["en-es"]
    assert sorted(_ids(searched)) == ["en-es", "es-en"]
    assert _ids(literal) == ["pt-en"]


def test_range_and_enum_clauses(session_factory) -> None:
    with session_factory() as session:
        _seed(session)

        stmt = select(Course.id).where(
            range_clause(Course.created_at, BASE_TIME + timedelta(days=1), BASE_TIME + timedelta(days=3)),
            enum_clause(Course.target_language, "es"),
        )
        ids = sorted(session.scalars(stmt))

    assert ids == ["ay-es", "en-es"]
    assert range_clause(Course.created_at) is None
    assert enum_clause(Course.target_language, []) is None


def test_cursor_window_walks_newest_first(session_factory) -> None:
    with session_factory() as session:
        _seed(session)

        first_rows = list(session.scalars(cursor_window(select(Course), Course, None, 2)))
        first, cursor = split_cursor_page(first_rows, 2)
        second_rows = list(session.scalars(cursor_window(select(Course), Course, cursor, 2)))
        second, _ = split_cursor_page(second_rows, 2)
        last_rows = list(session.scalars(cursor_window(select(Course), Course, "ay-es", 2)))
        last, last_cursor = split_cursor_page(last_rows, 2)

    assert [course.id for course in first] == ["pt-en", "es-en"]
    assert cursor == "es-en"
    assert [course.id for course in second] == ["en-es", "ay-es"]
    assert [course.id for course in last] == ["qu-es"]
    assert last_cursor is None
