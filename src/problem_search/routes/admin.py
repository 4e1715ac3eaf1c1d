"""Admin endpoints for index maintenance."""

import asyncio
import contextlib
from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from problem_search.documents import IndexDocument
from problem_search.search.reindex import Reindexer
from problem_search.search.schemas import ReindexProgress, ReindexResult
from problem_search.search.writer import IndexWriter

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["admin"])

ALREADY_RUNNING = "Reindex already running"


class ReindexRequest(BaseModel):
    """Request body for triggering a reindex."""

    domain_id: str | None = Field(
        default=None,
        min_length=1,
        max_length=64,
        alias="domainId",
        description="Domain to rebuild; the whole corpus when omitted",
    )

    model_config = ConfigDict(populate_by_name=True)


async def reindex_events(
    reindexer: Reindexer,
    domain_id: str | None,
    lock: asyncio.Lock,
) -> AsyncIterator[ServerSentEvent]:
    """Run a reindex and stream its progress as server-sent events.

    Emits one ``progress`` event per report, then a single ``completed`` or
    ``failed`` event carrying the ReindexResult. When another run holds the
    lock by the time the stream starts, the only event is ``failed`` with
    the conflict as its error.

    Args:
        reindexer: Reindexer bound to the live index.
        domain_id: Domain to rebuild, None for everything.
        lock: Lock held for the duration of the run.

    Yields:
        Server-sent events for the client.
    """
    if lock.locked():
        result = ReindexResult(success=False, domain_id=domain_id, error=ALREADY_RUNNING)
        yield ServerSentEvent(event="failed", data=result.model_dump_json())
        return
    # Uncontended acquire does not suspend; check and claim are one step
    await lock.acquire()

    queue: asyncio.Queue[ReindexProgress | None] = asyncio.Queue()
    messages: list[str] = []

    async def job() -> bool:
        try:
            return await reindexer.run(domain_id, report=queue.put)
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(job())
    indexed = 0
    try:
        while True:
            progress = await queue.get()
            if progress is None:
                break
            messages.append(progress.message)
            indexed = progress.indexed
            yield ServerSentEvent(event="progress", data=progress.model_dump_json())

        try:
            success = await task
        except Exception as e:
            logger.exception("reindex_failed", domain_id=domain_id)
            result = ReindexResult(
                success=False,
                domain_id=domain_id,
                indexed=indexed,
                messages=messages,
                error=str(e),
            )
            yield ServerSentEvent(event="failed", data=result.model_dump_json())
            return

        result = ReindexResult(
            success=success, domain_id=domain_id, indexed=indexed, messages=messages
        )
        yield ServerSentEvent(event="completed", data=result.model_dump_json())
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        lock.release()


@router.post("/reindex", response_model=ReindexResult)
async def reindex(request: Request, body: ReindexRequest) -> ReindexResult:
    """Rebuild the search index and wait for completion.

    Returns:
        Run outcome with every progress message emitted.

    Raises:
        HTTPException: 409 if another reindex is already running.
    """
    reindexer: Reindexer = request.app.state.reindexer
    lock: asyncio.Lock = request.app.state.reindex_lock
    if lock.locked():
        raise HTTPException(status_code=409, detail=ALREADY_RUNNING)

    messages: list[str] = []
    indexed = 0

    def collect(progress: ReindexProgress) -> None:
        nonlocal indexed
        messages.append(progress.message)
        indexed = progress.indexed

    async with lock:
        try:
            success = await reindexer.run(body.domain_id, report=collect)
        except Exception as e:
            logger.exception("reindex_failed", domain_id=body.domain_id)
            return ReindexResult(
                success=False,
                domain_id=body.domain_id,
                indexed=indexed,
                messages=messages,
                error=str(e),
            )

    return ReindexResult(
        success=success,
        domain_id=body.domain_id,
        indexed=indexed,
        messages=messages,
    )


@router.get("/reindex/stream")
async def reindex_stream(
    request: Request,
    domain_id: str | None = None,
) -> EventSourceResponse:
    """Rebuild the search index, streaming progress via Server-Sent Events.

    A run that starts between this check and the stream start is reported
    in-band as a ``failed`` event.

    Raises:
        HTTPException: 409 if another reindex is already running.
    """
    lock: asyncio.Lock = request.app.state.reindex_lock
    if lock.locked():
        raise HTTPException(status_code=409, detail=ALREADY_RUNNING)

    return EventSourceResponse(
        reindex_events(request.app.state.reindexer, domain_id, lock),
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/documents/{domain_id}/{doc_id}", response_model=IndexDocument)
async def get_indexed_document(
    request: Request,
    domain_id: str,
    doc_id: str,
) -> IndexDocument:
    """Return the document stored in the index under a key.

    Raises:
        HTTPException: 404 if the key is not indexed.
    """
    writer: IndexWriter = request.app.state.index_writer
    doc = await writer.get(domain_id, doc_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not indexed")
    return doc
