"""Domain-scoped full-text queries against the problem index."""

from typing import Any

import structlog
from elasticsearch import AsyncElasticsearch

from problem_search.search.schemas import (
    CountRelation,
    SearchOptions,
    SearchResultEnvelope,
)
from problem_search.store.base import DomainDirectory

logger = structlog.get_logger()

# Identifying fields rank above free text
SEARCH_FIELDS: tuple[str, ...] = ("tag^5", "pid^4", "title^3", "content")


def compute_window(
    limit: int | None,
    skip: int | None,
    default_page_size: int,
    max_window: int,
) -> tuple[int, int]:
    """Resolve the page size and offset for a search.

    The offset is pulled back so that the page never reaches past
    ``max_window``, and never goes below zero when the page itself is
    larger than the window.

    Args:
        limit: Requested page size.
        skip: Requested offset.
        default_page_size: Page size used when no limit is requested.
        max_window: Deepest result position a search may reach.

    Returns:
        Tuple of (size, from).
    """
    size = limit or default_page_size
    offset = min(max_window - size, skip or 0)
    return size, max(0, offset)


def tenant_scope(domain_id: str, union: list[str]) -> list[str]:
    """Combine a domain with its union members, without duplicates."""
    return list(dict.fromkeys([domain_id, *union]))


def build_query(text: str) -> dict[str, Any]:
    """Build the relevance query for free text.

    Blank text matches every document.
    """
    if not text.strip():
        return {"match_all": {}}
    return {
        "simple_query_string": {
            "query": text,
            "fields": list(SEARCH_FIELDS),
        }
    }


def build_scope_filter(scope: list[str]) -> dict[str, Any]:
    """Build the post filter admitting documents of any scoped domain."""
    return {
        "bool": {
            "minimum_should_match": 1,
            "should": [{"term": {"tenant_id": domain}} for domain in scope],
        }
    }


class QueryEngine:
    """Runs relevance-ranked problem searches restricted to a domain scope.

    The index is shared by every domain. Visibility is enforced with a post
    filter so it narrows the hits without touching their scores.

    Attributes:
        index: Name of the searched index.
        default_page_size: Page size used when no limit is requested.
        max_window: Deepest result position a search may reach.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        domains: DomainDirectory,
        index: str = "problem",
        default_page_size: int = 20,
        max_window: int = 10000,
    ) -> None:
        """Initialize query engine.

        Args:
            client: Shared Elasticsearch client.
            domains: Resolver for domain unions.
            index: Name of the searched index.
            default_page_size: Page size used when no limit is requested.
            max_window: Deepest result position a search may reach.
        """
        self._client = client
        self._domains = domains
        self.index = index
        self.default_page_size = default_page_size
        self.max_window = max_window

    async def search(
        self,
        domain_id: str,
        query: str,
        options: SearchOptions | None = None,
    ) -> SearchResultEnvelope:
        """Search problems visible from a domain.

        Args:
            domain_id: Domain the search is issued from.
            query: Free-text query; blank matches everything in scope.
            options: Paging options.

        Returns:
            Envelope with the total and the index keys of the page.

        Raises:
            elasticsearch.ApiError: On backend failure; never retried.
        """
        options = options or SearchOptions()
        scope = tenant_scope(domain_id, await self._domains.get_union(domain_id))
        size, offset = compute_window(
            options.limit, options.skip, self.default_page_size, self.max_window
        )

        resp = await self._client.search(
            index=self.index,
            size=size,
            from_=offset,
            query=build_query(query),
            post_filter=build_scope_filter(scope),
        )

        total = resp["hits"]["total"]
        if isinstance(total, int):
            count, relation = total, CountRelation.EXACT
        else:
            count, relation = total["value"], CountRelation(total["relation"])

        hits = [hit["_id"] for hit in resp["hits"]["hits"]]
        logger.debug(
            "search_executed",
            domain_id=domain_id,
            scope=scope,
            size=size,
            offset=offset,
            total=count,
        )
        return SearchResultEnvelope(total=count, count_relation=relation, hits=hits)
