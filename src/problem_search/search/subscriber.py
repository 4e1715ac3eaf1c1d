"""Event bus subscriber for keeping the search index in sync."""

import asyncio
from collections.abc import Iterable

import structlog

from problem_search.documents import DocId, SourceDocument
from problem_search.events.bus import EventBus
from problem_search.events.types import DomainEvent, EventType
from problem_search.search.normalizer import DEFAULT_EXCLUDED_FIELDS, normalize
from problem_search.search.writer import Indexer

logger = structlog.get_logger()


class SearchSyncAdapter:
    """Applies problem lifecycle notifications to an indexer.

    Holds no state besides its collaborators; repeated or reordered
    notifications for the same problem resolve to the last write.
    """

    def __init__(
        self,
        indexer: Indexer,
        exclude: Iterable[str] = DEFAULT_EXCLUDED_FIELDS,
    ) -> None:
        """Initialize adapter.

        Args:
            indexer: Index write capability.
            exclude: Field names dropped before indexing.
        """
        self._indexer = indexer
        self._exclude = frozenset(exclude)

    async def on_add(self, doc: SourceDocument, doc_id: DocId) -> None:
        """Index a newly created problem under the id assigned by the store."""
        await self._indexer.upsert(
            doc.tenant_id, doc_id, normalize(doc, self._exclude)
        )

    async def on_edit(self, doc: SourceDocument) -> None:
        """Re-index an edited problem."""
        await self._indexer.upsert(
            doc.tenant_id, doc.doc_id, normalize(doc, self._exclude)
        )

    async def on_delete(self, tenant_id: str, doc_id: DocId) -> None:
        """Drop a deleted problem from the index."""
        await self._indexer.remove(tenant_id, doc_id)

    async def handle(self, event: DomainEvent) -> None:
        """Dispatch a lifecycle event to the matching handler.

        Raises:
            ValueError: If an add or edit event carries no document.
        """
        if event.type is EventType.PROBLEM_DELETED:
            await self.on_delete(event.tenant_id, event.doc_id)
            return

        if event.document is None:
            raise ValueError(f"{event.type.value} event {event.id} has no document")
        if event.type is EventType.PROBLEM_ADDED:
            await self.on_add(event.document, event.doc_id)
        else:
            await self.on_edit(event.document)


async def run_search_subscriber(
    event_bus: EventBus,
    adapter: SearchSyncAdapter,
    started: asyncio.Event | None = None,
) -> None:
    """Subscribe to problem events and update the search index.

    Runs as a long-lived asyncio task. Each event is handled on its own
    task so a slow or failing write never holds back the next one. The
    subscription is lossless: a burst of store mutations is queued in full
    so every index entry follows its source document.

    Args:
        event_bus: Application event bus instance.
        adapter: Sync adapter bound to the index writer.
        started: Set once the subscription is registered.
    """
    subscriber_id, events = await event_bus.subscribe(topic="problems", lossless=True)
    logger.info("search_subscriber_started", subscriber_id=subscriber_id)
    if started is not None:
        started.set()

    pending: set[asyncio.Task[None]] = set()

    async def dispatch(event: DomainEvent) -> None:
        try:
            await adapter.handle(event)
        except Exception:
            logger.exception(
                "search_sync_failed",
                event_id=event.id,
                event_type=event.type.value,
                tenant_id=event.tenant_id,
                doc_id=event.doc_id,
            )

    try:
        async for event in events:
            task = asyncio.create_task(dispatch(event))
            pending.add(task)
            task.add_done_callback(pending.discard)
        logger.info("search_subscriber_closed", subscriber_id=subscriber_id)
    except asyncio.CancelledError:
        logger.info("search_subscriber_stopped", subscriber_id=subscriber_id)
        raise
    finally:
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
