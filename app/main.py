"""SearchGen Backend — FastAPI application entry point.

Boolean search-string requests: create, poll or stream status, cancel, retry,
hand-edit the result, mark it processed, delete.
"""

import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from app.config import settings
from app.errors import InvalidTransition, RequestNotFound, SourceUnavailable
from app.integrations.documents import document_store
from app.orchestrator.router import GenerationOrchestrator
from app.orchestrator.schemas import (
    CreateDocument,
    CreateSearchRequest,
    DocumentCreated,
    SearchRequestView,
    UpdateGeneratedQuery,
)
from app.services.cache import cache_service
from app.services.realtime import realtime_notifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("searchgen")

SSE_KEEPALIVE_SECONDS = 15


# ═══════════════ RATE LIMITER ═══════════════

class RateLimiter:
    """Fixed-window rate limiter by client IP."""

    def __init__(self, max_requests: int, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window = window_seconds
        self._hits: dict[str, list[float]] = defaultdict(list)
        self._last_sweep = 0.0

    def is_limited(self, ip: str) -> bool:
        now = time.monotonic()
        if now - self._last_sweep > self.window:
            self._sweep(now)
        recent = [t for t in self._hits[ip] if t > now - self.window]
        self._hits[ip] = recent
        if len(recent) >= self.max_requests:
            return True
        recent.append(now)
        return False

    def _sweep(self, now: float):
        # Drop IPs with no hit inside the current window
        cutoff = now - self.window
        for ip in [ip for ip, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[ip]
        self._last_sweep = now

    def reset(self):
        self._hits.clear()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else "unknown"


rate_limiter = RateLimiter(settings.rate_limit_per_minute)
orchestrator = GenerationOrchestrator(documents=document_store, notifier=realtime_notifier)


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("SearchGen backend starting | llm_enabled=%s", settings.llm_enabled)

    # PostgreSQL lifecycle store (in-memory store if unavailable)
    from app.database import close_db, init_db
    db_ok = await init_db()
    if db_ok:
        from app.services.request_store import SqlRequestStore
        orchestrator.use_store(SqlRequestStore())
    logger.info("Database: %s", "connected" if db_ok else "unavailable (in-memory request store)")

    # Redis page cache (in-memory fallback if unavailable)
    redis_ok = await cache_service.connect()
    logger.info("Redis cache: %s", "connected" if redis_ok else "unavailable (using in-memory fallback)")

    realtime_ok = await realtime_notifier.enable()
    logger.info("Realtime: %s", "redis pub/sub" if realtime_ok else "in-process only")

    yield

    await orchestrator.drain()
    await realtime_notifier.disconnect()
    await cache_service.disconnect()
    await close_db()
    logger.info("SearchGen backend shutting down")


# ═══════════════ APP ═══════════════

app = FastAPI(
    title="SearchGen API",
    description="Boolean search-string generation for recruiting and lead generation",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["POST", "OPTIONS", "GET", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(RequestNotFound)
async def _not_found(request: Request, exc: RequestNotFound):
    return JSONResponse(status_code=404, content={"error": f"search request not found: {exc}"})


@app.exception_handler(InvalidTransition)
async def _conflict(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(SourceUnavailable)
async def _gone(request: Request, exc: SourceUnavailable):
    return JSONResponse(
        status_code=410,
        content={"error": exc.to_error_message(), "error_kind": exc.kind},
    )


def _too_many_requests() -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please wait a minute and try again."},
    )


# ═══════════════ ENDPOINTS ═══════════════

@app.get("/health")
async def health():
    body = {
        "status": "ok",
        "llm_enabled": settings.llm_enabled,
        "store": orchestrator.store.kind,
        "cache": "redis" if cache_service.available else "memory",
        "realtime": realtime_notifier.enabled,
    }
    if orchestrator.store.kind == "postgres":
        from app.database import ping_db
        body["database"] = "ok" if await ping_db() else "down"
    return body


@app.post("/api/documents", status_code=201, response_model=DocumentCreated)
async def create_document(payload: CreateDocument):
    """Store already-extracted document text and hand back its reference."""
    reference = await document_store.put_text(payload.text)
    return DocumentCreated(reference=reference)


@app.post("/api/search-strings", status_code=201, response_model=SearchRequestView)
async def create_search_string(payload: CreateSearchRequest, request: Request):
    """Create a request; generation runs in the background."""
    ip = client_ip(request)
    if rate_limiter.is_limited(ip):
        return _too_many_requests()

    created = await orchestrator.create(payload)
    logger.info("Search string requested | id=%s | ip=%s", created.id, ip)
    return SearchRequestView.from_request(created)


@app.get("/api/search-strings/{request_id}", response_model=SearchRequestView)
async def get_search_string(request_id: str):
    return SearchRequestView.from_request(await orchestrator.get(request_id))


@app.post("/api/search-strings/{request_id}/retry", status_code=202, response_model=SearchRequestView)
async def retry_search_string(request_id: str, request: Request):
    if rate_limiter.is_limited(client_ip(request)):
        return _too_many_requests()
    return SearchRequestView.from_request(await orchestrator.retry(request_id))


@app.post("/api/search-strings/{request_id}/cancel", response_model=SearchRequestView)
async def cancel_search_string(request_id: str):
    return SearchRequestView.from_request(await orchestrator.cancel(request_id))


@app.patch("/api/search-strings/{request_id}", response_model=SearchRequestView)
async def edit_search_string(request_id: str, payload: UpdateGeneratedQuery):
    """Replace the generated query of a completed request."""
    return SearchRequestView.from_request(await orchestrator.edit_query(request_id, payload.generated_query))


@app.post("/api/search-strings/{request_id}/processed", response_model=SearchRequestView)
async def mark_search_string_processed(request_id: str):
    return SearchRequestView.from_request(await orchestrator.mark_processed(request_id))


@app.delete("/api/search-strings/{request_id}", status_code=204)
async def delete_search_string(request_id: str):
    await orchestrator.delete(request_id)
    return Response(status_code=204)


@app.get("/api/search-strings/{request_id}/events")
async def search_string_events(request_id: str, request: Request):
    """Server-Sent Events: one ``status`` event per update, closed on a terminal status."""
    await orchestrator.get(request_id)

    async def stream():
        async with realtime_notifier.subscribe(request_id) as queue:
            view = SearchRequestView.from_request(await orchestrator.get(request_id))
            yield _sse(view)
            while not view.is_terminal:
                try:
                    view = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    if await request.is_disconnected():
                        return
                    yield ": keepalive\n\n"
                    continue
                yield _sse(view)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _sse(view: SearchRequestView) -> str:
    return f"event: status\ndata: {view.model_dump_json()}\n\n"


def run():
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
