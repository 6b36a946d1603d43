"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.search_request import SearchRequestRecord

__all__ = ["Base", "SearchRequestRecord"]
