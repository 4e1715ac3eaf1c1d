"""Health check endpoints for liveness and readiness probes."""
from typing import Literal

from elasticsearch import ApiError, AsyncElasticsearch, TransportError
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when process is running.
    """

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Response model for readiness probe.

    Attributes:
        status: Overall readiness ('ready' or 'not_ready').
        checks: List of individual dependency check results.
    """

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]


async def _check_elasticsearch(client: AsyncElasticsearch, index: str) -> ReadinessCheck:
    """Verify the cluster answers and the problem index exists.

    Args:
        client: Shared Elasticsearch client.
        index: Name of the problem index.

    Returns:
        Check result with status and optional error message.
    """
    name = f"elasticsearch:{index}"
    try:
        if not await client.indices.exists(index=index):
            return ReadinessCheck(name=name, status="failed", message="Index not found")
        return ReadinessCheck(name=name, status="ok")
    except (ApiError, TransportError) as e:
        return ReadinessCheck(name=name, status="failed", message=str(e))


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Returns 200 when Elasticsearch is reachable and the problem index
    exists, 503 otherwise.

    Returns:
        Readiness status with individual check results.
    """
    settings = request.app.state.settings
    checks = [
        await _check_elasticsearch(request.app.state.es_client, settings.index_name),
    ]
    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
