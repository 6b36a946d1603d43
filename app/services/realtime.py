"""Realtime status events for search requests.

In-process subscribers (SSE streams) always receive updates. When ``enable()``
managed to reach Redis, every update is also published on
``search_requests:<id>`` for other processes.

``enable()`` is idempotent: it is called once from the app lifespan and its
result is checked there; later calls return the first outcome.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from app.config import settings
from app.orchestrator.schemas import SearchRequest, SearchRequestView

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "search_requests:"


class RealtimeNotifier:
    def __init__(self):
        self._redis = None
        self._enabled: bool | None = None
        self._enable_lock = asyncio.Lock()
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    @property
    def enabled(self) -> bool:
        return bool(self._enabled)

    async def enable(self) -> bool:
        """Connect the Redis publisher once. Returns True when cross-process events work."""
        if self._enabled is not None:
            return self._enabled
        async with self._enable_lock:
            if self._enabled is not None:
                return self._enabled
            try:
                import redis.asyncio as aioredis

                client = aioredis.from_url(
                    settings.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=3,
                )
                await client.ping()
                self._redis = client
                self._enabled = True
            except Exception as e:
                logger.warning("Realtime publisher unavailable — in-process events only: %s", str(e)[:100])
                self._redis = None
                self._enabled = False
        return self._enabled

    async def disconnect(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        self._enabled = None

    async def publish(self, request: SearchRequest):
        view = SearchRequestView.from_request(request)
        for queue in list(self._subscribers.get(request.id, ())):
            queue.put_nowait(view)

        if self._redis:
            try:
                await self._redis.publish(f"{CHANNEL_PREFIX}{request.id}", view.model_dump_json())
            except Exception as e:
                logger.debug("Realtime publish error: %s", str(e)[:100])

    @asynccontextmanager
    async def subscribe(self, request_id: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[request_id].add(queue)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(request_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[request_id]

    def subscriber_count(self, request_id: str) -> int:
        return len(self._subscribers.get(request_id, ()))


# Singleton instance
realtime_notifier = RealtimeNotifier()
