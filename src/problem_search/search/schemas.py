"""Pydantic schemas for search results and reindex reporting."""

from enum import Enum

from pydantic import BaseModel, Field


class CountRelation(str, Enum):
    """How the reported total relates to the true match count."""

    EXACT = "eq"
    LOWER_BOUND = "gte"


class SearchOptions(BaseModel):
    """Paging options for a search request."""

    limit: int | None = Field(default=None, ge=1)
    skip: int | None = Field(default=None, ge=0)


class SearchResultEnvelope(BaseModel):
    """Paginated search result.

    Attributes:
        total: Number of matching documents (a floor when count_relation
            is ``gte``).
        count_relation: Whether total is exact or a lower bound.
        hits: Index keys of the current page, in relevance order.
    """

    total: int
    count_relation: CountRelation
    hits: list[str]


class ReindexProgress(BaseModel):
    """Progress message emitted by a running reindex job."""

    message: str
    indexed: int


class ReindexResult(BaseModel):
    """Outcome of a reindex job run.

    Attributes:
        success: Whether every step completed.
        domain_id: Domain that was reindexed, None for the whole corpus.
        indexed: Documents written before the job finished or failed.
        messages: Progress messages reported during the run.
        error: Failure description when success is False.
    """

    success: bool
    domain_id: str | None = None
    indexed: int = 0
    messages: list[str] = Field(default_factory=list)
    error: str | None = None
