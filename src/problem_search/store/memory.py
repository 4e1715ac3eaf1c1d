"""In-process problem store publishing lifecycle events."""

import asyncio
import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import structlog

from problem_search.documents import DocId, SourceDocument
from problem_search.events.bus import EventBus
from problem_search.events.types import DomainEvent, EventType
from problem_search.store.base import project_public

logger = structlog.get_logger()


class MemoryProblemStore:
    """Dictionary-backed problem store and domain directory.

    Stands in for the host database when the service runs on its own.
    Every mutation publishes the matching lifecycle event on the bus
    without waiting for subscribers.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        """Initialize store.

        Args:
            event_bus: Bus receiving lifecycle events; mutations are silent
                when None.
        """
        self._docs: dict[tuple[str, str], SourceDocument] = {}
        self._unions: dict[str, list[str]] = {}
        self._bus = event_bus

    def __len__(self) -> int:
        return len(self._docs)

    def _emit(
        self,
        event_type: EventType,
        tenant_id: str,
        doc_id: DocId,
        document: SourceDocument | None = None,
    ) -> None:
        if self._bus is None:
            return
        self._bus.publish(
            DomainEvent(
                id=str(uuid.uuid4()),
                type=event_type,
                timestamp=datetime.now(UTC),
                tenant_id=tenant_id,
                doc_id=doc_id,
                document=document,
            )
        )

    def load(self, path: Path) -> int:
        """Seed the store from a JSON Lines file without emitting events.

        Each line is one problem in host wire format (``domainId``,
        ``docId``, ...). Blank lines are skipped.

        Args:
            path: File to read.

        Returns:
            Number of problems loaded.

        Raises:
            pydantic.ValidationError: If a line is not a valid problem.
        """
        count = 0
        with path.open(encoding="utf-8") as fh:
            for line in fh:
                if not line.strip():
                    continue
                doc = SourceDocument.model_validate_json(line)
                self._docs[(doc.tenant_id, str(doc.doc_id))] = doc
                count += 1
        logger.info("problem_store_loaded", path=str(path), count=count)
        return count

    def get(self, tenant_id: str, doc_id: DocId) -> SourceDocument | None:
        return self._docs.get((tenant_id, str(doc_id)))

    def add(self, doc: SourceDocument) -> DocId:
        """Store a new problem.

        Raises:
            ValueError: If the problem already exists.
        """
        key = (doc.tenant_id, str(doc.doc_id))
        if key in self._docs:
            raise ValueError(f"Problem {doc.tenant_id}/{doc.doc_id} already exists")
        self._docs[key] = doc
        self._emit(EventType.PROBLEM_ADDED, doc.tenant_id, doc.doc_id, doc)
        return doc.doc_id

    def edit(self, tenant_id: str, doc_id: DocId, **changes: object) -> SourceDocument:
        """Apply field changes to a stored problem.

        Raises:
            KeyError: If the problem does not exist.
        """
        key = (tenant_id, str(doc_id))
        current = self._docs[key]
        updated = current.model_copy(update=changes)
        self._docs[key] = updated
        self._emit(EventType.PROBLEM_EDITED, tenant_id, doc_id, updated)
        return updated

    def delete(self, tenant_id: str, doc_id: DocId) -> None:
        """Remove a problem.

        Raises:
            KeyError: If the problem does not exist.
        """
        del self._docs[(tenant_id, str(doc_id))]
        self._emit(EventType.PROBLEM_DELETED, tenant_id, doc_id)

    def set_union(self, domain_id: str, members: list[str]) -> None:
        """Declare which other domains ``domain_id`` can search into."""
        self._unions[domain_id] = [m for m in members if m != domain_id]

    async def get_union(self, domain_id: str) -> list[str]:
        return list(self._unions.get(domain_id, []))

    async def iter_public(
        self,
        domain_id: str | None = None,
    ) -> AsyncIterator[SourceDocument]:
        """Stream problems one at a time in the public projection.

        The corpus already lives in memory here, so the pass walks a
        snapshot of the keys taken up front; only one projected copy exists
        at a time. Problems deleted mid-pass are skipped and problems added
        mid-pass are left for their own add notification. Use
        ``JsonlProblemStore`` to stream a dump too large to hold.
        """
        for key in tuple(self._docs):
            if domain_id is not None and key[0] != domain_id:
                continue
            doc = self._docs.get(key)
            if doc is None:
                continue
            yield project_public(doc)
            await asyncio.sleep(0)
