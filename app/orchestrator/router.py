"""Generation Orchestrator — drives each search request through its lifecycle.

States: new → processing → completed | failed | canceled
        failed / canceled / completed → processing   (explicit retry)
        any state → deleted   (a running attempt is canceled first)

Responsibilities:
  - Create the record and start a processing run right away
  - Run extraction, then generation (LLM or fallback), as an asyncio task
  - Report coarse progress: 0 → 25 → 50 → 75 → 100
  - Cancel cooperatively; every write is conditional on (processing, attempt)
  - Never leave a record in processing because of an unhandled exception
  - Hand-edit a completed query, mark it processed, delete the record
"""

import asyncio
import logging
from typing import Any

from app.errors import (
    UNEXPECTED_ERROR_KIND,
    InvalidTransition,
    RequestNotFound,
    SearchStringError,
    SourceUnavailable,
)
from app.integrations.documents import DocumentStore, document_store
from app.orchestrator.schemas import (
    RETRYABLE_STATUSES,
    CreateSearchRequest,
    GenerationMethod,
    InputSource,
    RequestStatus,
    SearchRequest,
    utcnow,
)
from app.pipelines.search_string import SearchStringPipeline
from app.services.realtime import RealtimeNotifier, realtime_notifier
from app.services.request_store import InMemoryRequestStore, RequestStore

logger = logging.getLogger(__name__)

PROGRESS_EXTRACTING = 25
PROGRESS_EXTRACTED = 50
PROGRESS_GENERATING = 75
PROGRESS_DONE = 100

_PROCESSING = frozenset({RequestStatus.PROCESSING})
_COMPLETED = frozenset({RequestStatus.COMPLETED})


class GenerationOrchestrator:
    """State-machine driver; the store is the only state shared between runs."""

    def __init__(
        self,
        store: RequestStore | None = None,
        pipeline: SearchStringPipeline | None = None,
        documents: DocumentStore | None = None,
        notifier: RealtimeNotifier | None = None,
    ):
        self.store = store or InMemoryRequestStore()
        self.pipeline = pipeline or SearchStringPipeline()
        self.documents = documents or document_store
        self.notifier = notifier or realtime_notifier
        self._tasks: set[asyncio.Task] = set()

    def use_store(self, store: RequestStore):
        logger.info("Lifecycle store | %s → %s", self.store.kind, store.kind)
        self.store = store

    # ═══════════════ CLIENT OPERATIONS ═══════════════

    async def create(self, payload: CreateSearchRequest) -> SearchRequest:
        """Persist a new request and start processing it in the background."""
        request = SearchRequest(**payload.model_dump())
        await self.store.create(request)
        await self.notifier.publish(request)
        logger.info(
            "Request created | id=%s | type=%s | source=%s",
            request.id, request.query_type.value, request.input_source.value,
        )

        started = await self._transition(
            request.id, {RequestStatus.NEW}, status=RequestStatus.PROCESSING, progress=0,
        )
        if started is None:
            return await self.get(request.id)
        self._schedule(started)
        return started

    async def get(self, request_id: str) -> SearchRequest:
        request = await self.store.get(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        return request

    async def cancel(self, request_id: str) -> SearchRequest:
        """Cancel a processing request; a no-op on anything else."""
        current = await self.get(request_id)
        updated = await self._transition(
            request_id, _PROCESSING, expected_attempt=current.attempt, status=RequestStatus.CANCELED,
        )
        if updated is None:
            logger.info("Cancel no-op | id=%s | status=%s", request_id, current.status.value)
            return await self.get(request_id)
        return updated

    async def retry(self, request_id: str) -> SearchRequest:
        """Start a new processing run on the same record."""
        current = await self.get(request_id)
        if current.status not in RETRYABLE_STATUSES:
            raise InvalidTransition(f"cannot retry a request in status {current.status.value}")

        if current.input_source == InputSource.DOCUMENT:
            if not await self.documents.exists(current.document_reference):
                logger.info("Retry refused | id=%s | document gone", request_id)
                raise SourceUnavailable(f"document {current.document_reference} not found")

        updated = await self._transition(
            request_id,
            {current.status},
            expected_attempt=current.attempt,
            status=RequestStatus.PROCESSING,
            progress=0,
            attempt=current.attempt + 1,
            generated_query=None,
            generation_method=None,
            error_kind=None,
            error_message=None,
            is_processed=False,
            processed_at=None,
        )
        if updated is None:
            raise InvalidTransition("request changed while retrying, reload and try again")
        self._schedule(updated)
        return updated

    async def edit_query(self, request_id: str, query: str) -> SearchRequest:
        """Replace the generated query of a completed request with a hand-edited one."""
        current = await self.get(request_id)
        updated = await self._transition(
            request_id,
            _COMPLETED,
            expected_attempt=current.attempt,
            generated_query=query,
            generation_method=GenerationMethod.MANUAL,
        )
        if updated is None:
            await self.get(request_id)
            raise InvalidTransition(f"cannot edit a request in status {current.status.value}")
        logger.info("Query edited | id=%s | chars=%d", request_id, len(query))
        return updated

    async def mark_processed(self, request_id: str) -> SearchRequest:
        """Flag a completed request as handled by the client; repeat calls are no-ops."""
        current = await self.get(request_id)
        if current.is_processed:
            return current
        updated = await self._transition(
            request_id,
            _COMPLETED,
            expected_attempt=current.attempt,
            is_processed=True,
            processed_at=utcnow(),
        )
        if updated is None:
            await self.get(request_id)
            raise InvalidTransition(f"cannot mark a request in status {current.status.value} as processed")
        logger.info("Request marked processed | id=%s", request_id)
        return updated

    async def delete(self, request_id: str) -> SearchRequest:
        """Remove the record and its uploaded document, canceling a running attempt first."""
        current = await self.get(request_id)
        if current.status == RequestStatus.PROCESSING:
            await self._transition(
                request_id, _PROCESSING, expected_attempt=current.attempt, status=RequestStatus.CANCELED,
            )
        if not await self.store.delete(request_id):
            raise RequestNotFound(request_id)
        if current.input_source == InputSource.DOCUMENT:
            await self.documents.delete(current.document_reference)
        logger.info("Request deleted | id=%s | status=%s", request_id, current.status.value)
        return current

    # ═══════════════ PROCESSING RUN ═══════════════

    def _schedule(self, request: SearchRequest):
        task = asyncio.create_task(self.run(request.id, request.attempt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self):
        """Wait for every in-flight run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run(self, request_id: str, attempt: int):
        """Outer boundary of one run — always ends in a terminal status."""
        try:
            await self._process(request_id, attempt)
        except asyncio.CancelledError:
            await self._fail_safely(request_id, attempt, "processing was interrupted")
            raise
        except Exception as e:
            logger.exception("Run crashed | id=%s | attempt=%d", request_id, attempt)
            await self._fail_safely(request_id, attempt, f"{type(e).__name__}: {str(e)[:300]}")

    async def _process(self, request_id: str, attempt: int):
        request = await self.store.get(request_id)
        if request is None or request.attempt != attempt or request.status != RequestStatus.PROCESSING:
            return

        try:
            if not await self._progress(request_id, attempt, PROGRESS_EXTRACTING):
                return
            document_text = None
            if request.input_source == InputSource.DOCUMENT:
                document_text = await self.documents.get_text(request.document_reference)
            text = await self.pipeline.extract(request.source(document_text))

            if not await self._progress(request_id, attempt, PROGRESS_EXTRACTED):
                return
            if not await self._progress(request_id, attempt, PROGRESS_GENERATING):
                return
            generated = await self.pipeline.generate(request.query_type, text)
        except SearchStringError as e:
            logger.info("Run failed | id=%s | attempt=%d | kind=%s | %s", request_id, attempt, e.kind, e)
            await self._transition(
                request_id,
                _PROCESSING,
                expected_attempt=attempt,
                status=RequestStatus.FAILED,
                error_kind=e.kind,
                error_message=e.to_error_message(),
            )
            return

        completed = await self._transition(
            request_id,
            _PROCESSING,
            expected_attempt=attempt,
            status=RequestStatus.COMPLETED,
            progress=PROGRESS_DONE,
            generated_query=generated.query,
            generation_method=generated.method,
            error_kind=None,
            error_message=None,
        )
        if completed is None:
            logger.info("Result discarded | id=%s | attempt=%d | no longer processing", request_id, attempt)

    async def _progress(self, request_id: str, attempt: int, value: int) -> bool:
        """Record progress; False means the run was canceled or superseded."""
        updated = await self._transition(request_id, _PROCESSING, expected_attempt=attempt, progress=value)
        return updated is not None

    async def _fail_safely(self, request_id: str, attempt: int, detail: str):
        try:
            await self._transition(
                request_id,
                _PROCESSING,
                expected_attempt=attempt,
                status=RequestStatus.FAILED,
                error_kind=UNEXPECTED_ERROR_KIND,
                error_message=f"{UNEXPECTED_ERROR_KIND}: {detail}",
            )
        except Exception as e:
            logger.error("Could not record failure | id=%s | %s", request_id, str(e)[:200])

    async def _transition(
        self,
        request_id: str,
        expected: set[RequestStatus] | frozenset[RequestStatus],
        *,
        expected_attempt: int | None = None,
        **changes: Any,
    ) -> SearchRequest | None:
        updated = await self.store.update_if(
            request_id, expected, expected_attempt=expected_attempt, **changes,
        )
        if updated is None:
            return None
        if "status" in changes:
            logger.info(
                "Request %s | id=%s | attempt=%d | progress=%d",
                updated.status.value, request_id, updated.attempt, updated.progress,
            )
        await self.notifier.publish(updated)
        return updated
