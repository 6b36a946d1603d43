"""Request Lifecycle Store.

The only shared mutable resource of the engine. Every status change goes
through ``update_if``, a compare-and-swap on (status, attempt): a writer that
lost a race gets ``None`` back instead of clobbering the winner.

Two backends:
  - InMemoryRequestStore — default, and what the tests use
  - SqlRequestStore — PostgreSQL via SQLAlchemy async, used when the DB is up
"""

import asyncio
import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.search_request import SearchRequestRecord
from app.orchestrator.schemas import RequestStatus, SearchRequest, utcnow

logger = logging.getLogger(__name__)


class RequestStore:
    """Interface: create, read, conditional update, delete."""

    kind = "abstract"

    async def create(self, request: SearchRequest) -> SearchRequest:
        raise NotImplementedError

    async def get(self, request_id: str) -> SearchRequest | None:
        raise NotImplementedError

    async def update_if(
        self,
        request_id: str,
        expected: Iterable[RequestStatus],
        *,
        expected_attempt: int | None = None,
        **changes: Any,
    ) -> SearchRequest | None:
        """Apply ``changes`` only if status is in ``expected`` (and attempt matches).

        Returns the updated record, or None when the guard did not match.
        """
        raise NotImplementedError

    async def delete(self, request_id: str) -> bool:
        """Remove the record; False when it did not exist."""
        raise NotImplementedError


class InMemoryRequestStore(RequestStore):
    kind = "memory"

    def __init__(self):
        self._records: dict[str, SearchRequest] = {}
        self._lock = asyncio.Lock()

    async def create(self, request: SearchRequest) -> SearchRequest:
        async with self._lock:
            if request.id in self._records:
                raise ValueError(f"duplicate request id {request.id}")
            self._records[request.id] = request
        return request

    async def get(self, request_id: str) -> SearchRequest | None:
        return self._records.get(request_id)

    async def update_if(
        self,
        request_id: str,
        expected: Iterable[RequestStatus],
        *,
        expected_attempt: int | None = None,
        **changes: Any,
    ) -> SearchRequest | None:
        expected = frozenset(expected)
        async with self._lock:
            current = self._records.get(request_id)
            if current is None or current.status not in expected:
                return None
            if expected_attempt is not None and current.attempt != expected_attempt:
                return None
            updated = SearchRequest.model_validate(
                {**current.model_dump(), **changes, "updated_at": utcnow()}
            )
            self._records[request_id] = updated
            return updated

    async def delete(self, request_id: str) -> bool:
        async with self._lock:
            return self._records.pop(request_id, None) is not None


class SqlRequestStore(RequestStore):
    kind = "postgres"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from app.database import async_session_factory
            session_factory = async_session_factory
        self._session_factory = session_factory

    async def create(self, request: SearchRequest) -> SearchRequest:
        async with self._session_factory() as session:
            session.add(SearchRequestRecord(**_to_columns(request.model_dump())))
            await session.commit()
        return request

    async def get(self, request_id: str) -> SearchRequest | None:
        async with self._session_factory() as session:
            row = await session.get(SearchRequestRecord, request_id)
            return _from_row(row) if row is not None else None

    async def update_if(
        self,
        request_id: str,
        expected: Iterable[RequestStatus],
        *,
        expected_attempt: int | None = None,
        **changes: Any,
    ) -> SearchRequest | None:
        stmt = (
            update(SearchRequestRecord)
            .where(
                SearchRequestRecord.id == request_id,
                SearchRequestRecord.status.in_([s.value for s in expected]),
            )
            .values(**_to_columns({**changes, "updated_at": utcnow()}))
            .returning(SearchRequestRecord)
        )
        if expected_attempt is not None:
            stmt = stmt.where(SearchRequestRecord.attempt == expected_attempt)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            updated = _from_row(row) if row is not None else None
            await session.commit()
        return updated

    async def delete(self, request_id: str) -> bool:
        stmt = delete(SearchRequestRecord).where(SearchRequestRecord.id == request_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount > 0


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}


def _from_row(row: SearchRequestRecord) -> SearchRequest:
    """Validate a DB row into the domain model — rows are never trusted as-is."""
    return SearchRequest.model_validate(row)
