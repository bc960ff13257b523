"""Model module imports for SQLAlchemy metadata registration."""

from app.db.models.course import Base
from app.db.models.course import Course

__all__ = [
    "Base",
    "Course",
]
