"""Repository primitives for course entities."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.course import Course
from app.db.query import Page
from app.db.query import fetch_page
from app.pipeline.pagination import PaginationDescriptor


def create_course(session: Session, **values: Any) -> Course:
    """Create and return a course row."""
    course = Course(**values)
    session.add(course)
    session.flush()
    session.refresh(course)
    return course


def get_course(session: Session, course_id: str) -> Course | None:
    """Fetch a course by id."""
    return session.get(Course, course_id)


def require_course(session: Session, course_id: str) -> Course:
    """Fetch a course by id, raising ``NoResultFound`` when it does not exist."""
    return session.scalars(select(Course).where(Course.id == course_id)).one()


def list_courses(session: Session, descriptor: PaginationDescriptor) -> Page[Course]:
    """List one window of courses matching the descriptor's filters and search."""
    return fetch_page(session, select(Course), Course, descriptor)


def update_course(session: Session, course: Course, **changes: Any) -> Course:
    """Apply ``changes`` to a course; ``None`` clears a nullable column."""
    for name, value in changes.items():
        setattr(course, name, value)
    session.flush()
    session.refresh(course)
    return course


def delete_course(session: Session, course: Course) -> None:
    """Delete a course row."""
    session.delete(course)
    session.flush()
