"""Query builders turning a pagination descriptor into SQLAlchemy statements."""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from typing import Generic
from typing import TypeVar

from sqlalchemy import Select
from sqlalchemy import and_
from sqlalchemy import func
from sqlalchemy import or_
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.pipeline.pagination import PaginationDescriptor

ModelT = TypeVar("ModelT")

DEFAULT_SORT_COLUMN = "created_at"
_TRUE_VALUES = frozenset({"true", "1", "yes"})


@dataclass(frozen=True)
class Page(Generic[ModelT]):
    """One window of rows plus the total matching the same filters."""

    items: list[ModelT]
    total: int


def _column(model: type, name: str | None, fallback: str | None = None):
    column = model.__table__.columns.get(name) if name else None
    if column is None and fallback is not None:
        column = model.__table__.columns.get(fallback)
    return column


def page_window(descriptor: PaginationDescriptor) -> tuple[int, int]:
    """Return ``(skip, take)`` for a descriptor."""
    return descriptor.offset, descriptor.limit


def sort_clause(model: type, sort_by: str | None, sort_order: str = "desc"):
    """Order by ``sort_by`` when it names a column, else by ``created_at``."""
    column = _column(model, sort_by, DEFAULT_SORT_COLUMN)
    if column is None:
        raise ValueError(f"{model.__name__} has no sortable column {sort_by!r}")
    return column.asc() if sort_order == "asc" else column.desc()


def text_search_clause(model: type, search: str | None, fields: Sequence[str] | None) -> ColumnElement[bool] | None:
    """Case-insensitive substring match across ``fields``."""
    if not search or not fields:
        return None
    columns = [column for column in (_column(model, name) for name in fields) if column is not None]
    if not columns:
        return None
    return or_(*(column.icontains(search, autoescape=True) for column in columns))


def range_clause(column, minimum: Any | None = None, maximum: Any | None = None) -> ColumnElement[bool] | None:
    """Inclusive range condition; None when neither bound is given."""
    conditions = []
    if minimum is not None:
        conditions.append(column >= minimum)
    if maximum is not None:
        conditions.append(column <= maximum)
    if not conditions:
        return None
    return and_(*conditions)


def enum_clause(column, values: str | Iterable[str] | None) -> ColumnElement[bool] | None:
    """Membership condition accepting a single value or several."""
    if not values:
        return None
    if isinstance(values, str):
        values = [values]
    return column.in_(list(values))


def _coerce_filter_value(column, raw: Any) -> Any:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    if python_type is bool and isinstance(raw, str):
        return raw.strip().lower() in _TRUE_VALUES
    return raw


def filter_clauses(model: type, filters: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Equality (or membership, for repeated keys) conditions for known columns."""
    clauses: list[ColumnElement[bool]] = []
    for name, raw in filters.items():
        column = _column(model, name)
        if column is None:
            continue
        if isinstance(raw, list):
            clauses.append(column.in_([_coerce_filter_value(column, value) for value in raw]))
        else:
            clauses.append(column == _coerce_filter_value(column, raw))
    return clauses


def cursor_window(
    stmt: Select,
    model: type,
    cursor: str | None,
    limit: int,
    sort_field: str = DEFAULT_SORT_COLUMN,
) -> Select:
    """Keyset window after ``cursor``, newest first, taking one extra row.

    The extra row tells the caller whether a next page exists; see
    ``split_cursor_page``.
    """
    sort_column = _column(model, sort_field, DEFAULT_SORT_COLUMN)
    id_column = _column(model, "id")
    stmt = stmt.order_by(sort_column.desc(), id_column.desc()).limit(limit + 1)
    if cursor:
        anchor = select(sort_column).where(id_column == cursor).scalar_subquery()
        stmt = stmt.where(or_(sort_column < anchor, and_(sort_column == anchor, id_column < cursor)))
    return stmt


def split_cursor_page(rows: Sequence[ModelT], limit: int) -> tuple[list[ModelT], str | None]:
    """Trim the look-ahead row and return ``(items, next_cursor)``."""
    items = list(rows[:limit])
    if len(rows) > limit and items:
        return items, str(items[-1].id)
    return items, None


def fetch_page(session: Session, stmt: Select, model: type, descriptor: PaginationDescriptor) -> Page:
    """Run ``stmt`` for the descriptor's window and count its matches."""
    conditions = filter_clauses(model, descriptor.filters)
    search = text_search_clause(model, descriptor.search, descriptor.search_fields)
    if search is not None:
        conditions.append(search)
    if conditions:
        stmt = stmt.where(*conditions)

    total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    skip, take = page_window(descriptor)
    rows = session.scalars(
        stmt.order_by(sort_clause(model, descriptor.sort_by, descriptor.sort_order)).offset(skip).limit(take)
    )
    return Page(items=list(rows), total=total)
