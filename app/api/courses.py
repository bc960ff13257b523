"""Course API routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from sqlalchemy.orm import Session

from app.db.base import get_db_session
from app.pipeline.handlers import PipelineRoute
from app.pipeline.pagination import PaginationDescriptor
from app.pipeline.pagination import apply_pagination_headers
from app.pipeline.pagination import build_pagination_meta
from app.pipeline.pagination import paginate
from app.pipeline.sanitizer import RequestParts
from app.pipeline.sanitizer import sanitize_request
from app.pipeline.validation import validate
from app.schemas.course import Course
from app.schemas.course import CourseCreate
from app.schemas.course import CourseIdParams
from app.schemas.course import CourseUpdate
from app.schemas.pagination import PaginatedResponse
from app.services.courses import create_course_service
from app.services.courses import delete_course_service
from app.services.courses import get_course_service
from app.services.courses import list_courses_service
from app.services.courses import update_course_service

COURSE_SORT_FIELDS = ("name", "created_at", "updated_at", "source_language", "target_language")
COURSE_FILTER_KEYS = ("source_language", "target_language", "is_public")
COURSE_SEARCH_FIELDS = ("name", "description")

router = APIRouter(
    prefix="/api/v1",
    tags=["courses"],
    route_class=PipelineRoute,
    dependencies=[Depends(sanitize_request)],
)


@router.post("/courses", response_model=Course, status_code=201)
def create_course_endpoint(
    parts: RequestParts = Depends(validate(body=CourseCreate)),
    session: Session = Depends(get_db_session),
) -> Course:
    """Create a course."""
    return create_course_service(session, parts.body)


@router.get("/courses", response_model=PaginatedResponse[Course])
def list_courses_endpoint(
    request: Request,
    response: Response,
    descriptor: PaginationDescriptor = Depends(
        paginate(
            allowed_sort_fields=COURSE_SORT_FIELDS,
            allowed_filter_keys=COURSE_FILTER_KEYS,
            search_fields=COURSE_SEARCH_FIELDS,
        )
    ),
    session: Session = Depends(get_db_session),
) -> PaginatedResponse[Course]:
    """List courses one page at a time with filters, search and sorting."""
    page = list_courses_service(session, descriptor)
    meta = build_pagination_meta(descriptor.page, descriptor.limit, page.total)
    apply_pagination_headers(response, request, meta)
    return PaginatedResponse[Course](
        items=[Course.model_validate(course) for course in page.items],
        pagination=meta,
    )


@router.get("/courses/{course_id}", response_model=Course)
def get_course_endpoint(
    parts: RequestParts = Depends(validate(params=CourseIdParams)),
    session: Session = Depends(get_db_session),
) -> Course:
    """Get a single course by id."""
    return get_course_service(session, parts.params.course_id)


@router.patch("/courses/{course_id}", response_model=Course)
def update_course_endpoint(
    parts: RequestParts = Depends(validate(body=CourseUpdate, params=CourseIdParams)),
    session: Session = Depends(get_db_session),
) -> Course:
    """Update a course."""
    return update_course_service(session, parts.params.course_id, parts.body)


@router.delete("/courses/{course_id}", status_code=204)
def delete_course_endpoint(
    parts: RequestParts = Depends(validate(params=CourseIdParams)),
    session: Session = Depends(get_db_session),
) -> Response:
    """Delete a course."""
    delete_course_service(session, parts.params.course_id)
    return Response(status_code=204)
