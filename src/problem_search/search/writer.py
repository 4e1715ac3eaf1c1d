"""Single-document and bulk write operations against the problem index."""

from typing import Any, Protocol

import structlog
from elasticsearch import AsyncElasticsearch, NotFoundError

from problem_search.documents import DocId, IndexDocument, index_key

logger = structlog.get_logger()

INDEX_NOT_FOUND = "index_not_found_exception"

# Domain ids are matched exactly; the analyzed text fields carry the search
INDEX_MAPPINGS: dict[str, Any] = {
    "properties": {
        "tenant_id": {"type": "keyword"},
        "doc_id": {"type": "keyword"},
        "pid": {"type": "text"},
        "title": {"type": "text"},
        "content": {"type": "text"},
        "tag": {"type": "text"},
    }
}


class Indexer(Protocol):
    """Write capability handed to the event sync adapter."""

    async def upsert(self, tenant_id: str, doc_id: DocId, doc: IndexDocument) -> None:
        ...

    async def remove(self, tenant_id: str, doc_id: DocId) -> None:
        ...


class IndexWriter:
    """Writes problem documents into the shared Elasticsearch index.

    Every operation is keyed by ``tenant_id/doc_id`` and is idempotent.
    Errors from the backend propagate to the caller unchanged, with the
    single exception of a missing index during a bulk purge.

    Attributes:
        index: Name of the target index.
    """

    def __init__(self, client: AsyncElasticsearch, index: str = "problem") -> None:
        """Initialize writer.

        Args:
            client: Shared Elasticsearch client.
            index: Name of the target index.
        """
        self._client = client
        self.index = index

    async def ensure_index(self) -> bool:
        """Create the index with its mappings unless it already exists.

        Returns:
            True if the index was created by this call.
        """
        if await self._client.indices.exists(index=self.index):
            return False
        await self._client.indices.create(index=self.index, mappings=INDEX_MAPPINGS)
        logger.info("search_index_created", index=self.index)
        return True

    async def upsert(self, tenant_id: str, doc_id: DocId, doc: IndexDocument) -> None:
        """Write or replace the document stored at the key.

        The change becomes searchable after the next index refresh.
        """
        await self._client.index(
            index=self.index,
            id=index_key(tenant_id, doc_id),
            document=doc.model_dump(mode="json"),
        )
        logger.debug("search_document_upserted", tenant_id=tenant_id, doc_id=doc_id)

    async def remove(self, tenant_id: str, doc_id: DocId) -> None:
        """Delete the document stored at the key.

        Raises:
            NotFoundError: If the key is not indexed. A delete for an entry
                that was never indexed means incremental sync drifted.
        """
        await self._client.delete(index=self.index, id=index_key(tenant_id, doc_id))
        logger.debug("search_document_deleted", tenant_id=tenant_id, doc_id=doc_id)

    async def bulk_purge(self, tenant_id: str | None = None) -> None:
        """Delete every document of a domain, or of the whole index.

        A missing index is treated as already purged.

        Args:
            tenant_id: Domain to purge. Purges everything when None.
        """
        query: dict[str, Any] = (
            {"term": {"tenant_id": tenant_id}} if tenant_id else {"match_all": {}}
        )
        try:
            await self._client.delete_by_query(index=self.index, query=query)
        except NotFoundError as e:
            if INDEX_NOT_FOUND not in str(e):
                raise
            logger.info("search_purge_skipped", index=self.index, reason="missing")
            return
        logger.info("search_index_purged", index=self.index, tenant_id=tenant_id)

    async def refresh(self) -> None:
        """Make every completed write visible to searches."""
        await self._client.indices.refresh(index=self.index)

    async def get(self, tenant_id: str, doc_id: DocId) -> IndexDocument | None:
        """Fetch the stored document by key, bypassing search.

        Returns:
            The indexed document, or None when the key is absent.
        """
        try:
            resp = await self._client.get(
                index=self.index, id=index_key(tenant_id, doc_id)
            )
        except NotFoundError:
            return None
        return IndexDocument.model_validate(resp["_source"])
