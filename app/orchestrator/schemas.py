"""Pydantic models for API input/output — shared across the generation engine.

Split into: enums, source descriptors, the stored request, and API views.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from app.errors import NON_RETRYABLE_KINDS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════ ENUMS ═══════════════

class QueryType(str, Enum):
    RECRUITING = "recruiting"
    LEAD_GENERATION = "lead_generation"


class InputSource(str, Enum):
    TEXT = "text"
    WEBSITE = "website"
    DOCUMENT = "document"


class RequestStatus(str, Enum):
    NEW = "new"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.FAILED, RequestStatus.CANCELED})
RETRYABLE_STATUSES = TERMINAL_STATUSES


class Language(str, Enum):
    EN = "en"
    DE = "de"


class GenerationMethod(str, Enum):
    LLM = "llm"
    FALLBACK = "fallback"
    MANUAL = "manual"


_SOURCE_FIELDS = {
    InputSource.TEXT: "input_text",
    InputSource.WEBSITE: "input_url",
    InputSource.DOCUMENT: "document_reference",
}


def _check_single_source(input_source: InputSource, values: dict[str, str | None]) -> None:
    """Exactly one source field is populated and it matches ``input_source``."""
    populated = [name for name, value in values.items() if value]
    expected = _SOURCE_FIELDS[input_source]
    if populated != [expected]:
        raise ValueError(
            f"input_source={input_source.value} requires exactly one of "
            f"input_text/input_url/document_reference, namely {expected}"
        )


# ═══════════════ SOURCE DESCRIPTORS ═══════════════

class TextSource(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class WebsiteSource(BaseModel):
    kind: Literal["website"] = "website"
    url: str


class DocumentSource(BaseModel):
    """Already-extracted document text; ``text`` is None when the document is gone."""
    kind: Literal["document"] = "document"
    reference: str
    text: str | None = None


ExtractedRecord = Annotated[
    Union[TextSource, WebsiteSource, DocumentSource],
    Field(discriminator="kind"),
]
extracted_record_adapter: TypeAdapter[ExtractedRecord] = TypeAdapter(ExtractedRecord)


# ═══════════════ STORED REQUEST ═══════════════

class SearchRequest(BaseModel):
    """The unit of work — one search-string request and its latest outcome."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    query_type: QueryType
    input_source: InputSource
    input_text: str | None = None
    input_url: str | None = None
    document_reference: str | None = None

    status: RequestStatus = RequestStatus.NEW
    progress: int = Field(default=0, ge=0, le=100)
    attempt: int = 1
    generated_query: str | None = None
    generation_method: GenerationMethod | None = None
    error_kind: str | None = None
    error_message: str | None = None
    is_processed: bool = False
    processed_at: datetime | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def _validate_invariants(self) -> SearchRequest:
        _check_single_source(self.input_source, {
            "input_text": self.input_text,
            "input_url": self.input_url,
            "document_reference": self.document_reference,
        })
        if self.generated_query is not None and self.status != RequestStatus.COMPLETED:
            raise ValueError("generated_query is only set on completed requests")
        if self.error_message is not None and self.status != RequestStatus.FAILED:
            raise ValueError("error_message is only set on failed requests")
        if self.is_processed and self.status != RequestStatus.COMPLETED:
            raise ValueError("only completed requests can be marked processed")
        return self

    @property
    def raw_input(self) -> str:
        return getattr(self, _SOURCE_FIELDS[self.input_source])

    def source(self, document_text: str | None = None) -> ExtractedRecord:
        """Build the typed source descriptor for the extractor."""
        if self.input_source == InputSource.TEXT:
            payload = {"kind": "text", "text": self.input_text}
        elif self.input_source == InputSource.WEBSITE:
            payload = {"kind": "website", "url": self.input_url}
        else:
            payload = {"kind": "document", "reference": self.document_reference, "text": document_text}
        return extracted_record_adapter.validate_python(payload)


# ═══════════════ API INPUTS ═══════════════

class CreateSearchRequest(BaseModel):
    query_type: QueryType
    input_source: InputSource
    input_text: str | None = None
    input_url: str | None = None
    document_reference: str | None = None

    @model_validator(mode="after")
    def _validate_source(self) -> CreateSearchRequest:
        _check_single_source(self.input_source, {
            "input_text": self.input_text,
            "input_url": self.input_url,
            "document_reference": self.document_reference,
        })
        return self


class CreateDocument(BaseModel):
    text: str = Field(min_length=1)


class UpdateGeneratedQuery(BaseModel):
    """Hand-edited replacement for a completed request's query."""
    generated_query: str = Field(min_length=1, max_length=10_000)

    @field_validator("generated_query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("generated_query must not be blank")
        return value


# ═══════════════ API OUTPUTS ═══════════════

class SearchRequestView(BaseModel):
    """Status-query projection of a SearchRequest."""
    id: str
    query_type: QueryType
    input_source: InputSource
    raw_input: str
    status: RequestStatus
    progress: int
    attempt: int
    generated_query: str | None = None
    generation_method: GenerationMethod | None = None
    error_kind: str | None = None
    error_message: str | None = None
    is_processed: bool = False
    processed_at: datetime | None = None
    is_terminal: bool = False
    retryable: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_request(cls, req: SearchRequest) -> SearchRequestView:
        return cls(
            id=req.id,
            query_type=req.query_type,
            input_source=req.input_source,
            raw_input=req.raw_input,
            status=req.status,
            progress=req.progress,
            attempt=req.attempt,
            generated_query=req.generated_query,
            generation_method=req.generation_method,
            error_kind=req.error_kind,
            error_message=req.error_message,
            is_processed=req.is_processed,
            processed_at=req.processed_at,
            is_terminal=req.status.is_terminal,
            retryable=req.status in RETRYABLE_STATUSES and req.error_kind not in NON_RETRYABLE_KINDS,
            created_at=req.created_at,
            updated_at=req.updated_at,
        )


class DocumentCreated(BaseModel):
    reference: str


class GeneratedQuery(BaseModel):
    query: str
    method: GenerationMethod
