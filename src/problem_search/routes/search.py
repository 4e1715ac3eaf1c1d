"""Problem search API endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from elasticsearch import ApiError, TransportError
from fastapi import APIRouter, HTTPException, Query, Request

from problem_search.search.schemas import SearchOptions, SearchResultEnvelope

if TYPE_CHECKING:
    from problem_search.search.query import QueryEngine

logger = structlog.get_logger()

router = APIRouter(tags=["search"])


@router.get(
    "/search",
    response_model=SearchResultEnvelope,
    summary="Full-text problem search within a domain",
    description=(
        "Ranks problems by tag, pid, title, and content matches and returns "
        "the index keys of problems visible from the domain and its union."
    ),
)
async def search(
    request: Request,
    domain: str = Query(..., min_length=1, max_length=64, description="Domain id"),
    q: str = Query(default="", max_length=500, description="Search query string"),
    limit: int | None = Query(default=None, ge=1, le=1000, description="Page size"),
    skip: int | None = Query(default=None, ge=0, description="Results to skip"),
) -> SearchResultEnvelope:
    """Search problems visible from a domain.

    Args:
        request: FastAPI request (provides access to app state).
        domain: Domain the search is issued from.
        q: Search query; empty lists every visible problem.
        limit: Results per page, the configured page size when omitted.
        skip: Pagination offset.

    Returns:
        Result envelope with total, count relation, and index keys.

    Raises:
        HTTPException: 502 when the search backend fails.
    """
    engine: QueryEngine = request.app.state.query_engine

    try:
        return await engine.search(domain, q, SearchOptions(limit=limit, skip=skip))
    except (ApiError, TransportError) as e:
        logger.warning("search_backend_failed", domain_id=domain, error=str(e))
        raise HTTPException(status_code=502, detail="Search backend unavailable") from e
