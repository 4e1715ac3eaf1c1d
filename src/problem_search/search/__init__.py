"""Problem search subsystem: normalization, index sync, rebuild, and queries."""

from problem_search.search.normalizer import normalize
from problem_search.search.query import QueryEngine
from problem_search.search.reindex import Reindexer
from problem_search.search.schemas import (
    CountRelation,
    ReindexProgress,
    ReindexResult,
    SearchOptions,
    SearchResultEnvelope,
)
from problem_search.search.subscriber import SearchSyncAdapter, run_search_subscriber
from problem_search.search.writer import Indexer, IndexWriter

__all__ = [
    "CountRelation",
    "IndexWriter",
    "Indexer",
    "QueryEngine",
    "ReindexProgress",
    "ReindexResult",
    "Reindexer",
    "SearchOptions",
    "SearchResultEnvelope",
    "SearchSyncAdapter",
    "normalize",
    "run_search_subscriber",
]
