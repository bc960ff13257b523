"""Service helpers for course API operations."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.db.repository.courses import create_course
from app.db.repository.courses import delete_course
from app.db.repository.courses import get_course
from app.db.repository.courses import list_courses
from app.db.repository.courses import require_course
from app.db.repository.courses import update_course
from app.pipeline.pagination import PaginationDescriptor
from app.schemas.course import CourseCreate
from app.schemas.course import CourseUpdate


def create_course_service(session: Session, payload: CourseCreate):
    """Create and persist a new course.

    Unique violations propagate to the error normalizer as ``CONFLICT``.
    """
    try:
        course = create_course(session, **payload.model_dump())
        session.commit()
        return course
    except IntegrityError:
        session.rollback()
        raise


def list_courses_service(session: Session, descriptor: PaginationDescriptor):
    """List one page of courses."""
    return list_courses(session, descriptor)


def get_course_service(session: Session, course_id: str):
    """Fetch a course or raise not found."""
    course = get_course(session, course_id)
    if course is None:
        raise NotFoundError(message="Course not found")
    return course


def update_course_service(session: Session, course_id: str, payload: CourseUpdate):
    """Update mutable course fields for an existing course."""
    course = get_course_service(session, course_id)
    try:
        course = update_course(session, course, **payload.model_dump(exclude_unset=True))
        session.commit()
        return course
    except IntegrityError:
        session.rollback()
        raise


def delete_course_service(session: Session, course_id: str) -> None:
    """Delete a course; a missing course surfaces as a record-not-found failure."""
    course = require_course(session, course_id)
    delete_course(session, course)
    session.commit()
