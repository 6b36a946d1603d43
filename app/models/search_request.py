"""SearchRequestRecord model — durable lifecycle record of one search-string request."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class SearchRequestRecord(Base):
    """One row per request; retries update the same row and bump ``attempt``."""

    __tablename__ = "search_requests"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    query_type: Mapped[str] = mapped_column(String(30), nullable=False)
    input_source: Mapped[str] = mapped_column(String(20), nullable=False)
    input_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    input_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    document_reference: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True, insert_default="new")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, insert_default=0)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, insert_default=1)
    generated_query: Mapped[str | None] = mapped_column(Text, nullable=True)
    generation_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    error_kind: Mapped[str | None] = mapped_column(String(40), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
