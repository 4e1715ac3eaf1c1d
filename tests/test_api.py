"""HTTP endpoint tests."""

import asyncio

import pytest
from conftest import FakeElasticsearch, api_error, make_problem
from elasticsearch import ApiError
from fastapi.testclient import TestClient

from problem_search.app import create_app
from problem_search.config import Settings
from problem_search.routes.admin import ALREADY_RUNNING, reindex_events
from problem_search.search.reindex import Reindexer
from problem_search.search.schemas import ReindexResult
from problem_search.search.writer import IndexWriter
from problem_search.store import MemoryProblemStore


def test_liveness_returns_200(client: TestClient) -> None:
    """Liveness endpoint returns alive status."""
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_readiness_checks_index(client: TestClient) -> None:
    """Readiness passes once the index exists."""
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"][0]["name"] == "elasticsearch:problem"


def test_startup_creates_index(client: TestClient, fake_es: FakeElasticsearch) -> None:
    """Lifespan creates the index with its mappings."""
    assert "problem" in fake_es.mappings


def test_reindex_then_search(client: TestClient, api_store: MemoryProblemStore) -> None:
    """A reindexed domain is searchable with exact totals."""
    api_store.add(make_problem("system", 1, title="A+B Problem"))
    api_store.add(make_problem("system", 2, title="Shortest path"))
    api_store.add(make_problem("other", 1, title="A+B Problem"))

    response = client.post("/api/v1/admin/reindex", json={"domainId": "system"})
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = client.get("/api/v1/search", params={"domain": "system", "q": "problem"})
    assert response.status_code == 200
    assert response.json() == {"total": 1, "count_relation": "eq", "hits": ["system/1"]}


def test_search_pagination_params(client: TestClient, fake_es: FakeElasticsearch) -> None:
    """Limit and skip are forwarded after clamping."""
    response = client.get(
        "/api/v1/search",
        params={"domain": "system", "q": "x", "limit": 20, "skip": 50000},
    )
    assert response.status_code == 200
    call = fake_es.calls_to("search")[-1]
    assert (call["size"], call["from_"]) == (20, 9980)


def test_search_requires_domain(client: TestClient) -> None:
    response = client.get("/api/v1/search", params={"q": "x"})
    assert response.status_code == 422


def test_search_backend_failure_is_error(
    client: TestClient, fake_es: FakeElasticsearch
) -> None:
    """A failed query is an error, not an empty page."""
    fake_es.failures["search"] = api_error(ApiError, 503, "cluster_block_exception")
    response = client.get("/api/v1/search", params={"domain": "system", "q": "x"})
    assert response.status_code == 502


def test_reindex_failure_reported(
    client: TestClient, fake_es: FakeElasticsearch, api_store: MemoryProblemStore
) -> None:
    api_store.add(make_problem("system", 1))
    fake_es.failures["index"] = api_error(ApiError, 429, "es_rejected_execution")

    response = client.post("/api/v1/admin/reindex", json={})

    data = response.json()
    assert response.status_code == 200
    assert data["success"] is False
    assert "es_rejected_execution" in data["error"]


def test_indexed_document_lookup(client: TestClient, api_store: MemoryProblemStore) -> None:
    api_store.add(make_problem("system", 5, pid="LG1001", data=[{"name": "1.in"}]))
    client.post("/api/v1/admin/reindex", json={"domainId": "system"})

    response = client.get("/api/v1/admin/documents/system/5")
    assert response.status_code == 200
    body = response.json()
    assert body["pid"] == "LG1001 LG 1001"
    assert "data" not in body

    assert client.get("/api/v1/admin/documents/system/6").status_code == 404


def test_admin_key_required_when_configured(fake_es: FakeElasticsearch) -> None:
    settings = Settings(key="s3cret", _env_file=None)
    app = create_app(settings, es_client=fake_es)
    with TestClient(app) as client:
        assert client.post("/api/v1/admin/reindex", json={}).status_code == 401
        ok = client.post(
            "/api/v1/admin/reindex", json={}, headers={"X-API-Key": "s3cret"}
        )
        assert ok.status_code == 200
        assert client.get("/api/v1/search", params={"domain": "d"}).status_code == 200


def test_request_id_echoed(client: TestClient) -> None:
    response = client.get(
        "/api/v1/search", params={"domain": "d"}, headers={"X-Request-ID": "abc"}
    )
    assert response.headers["X-Request-ID"] == "abc"


class TestReindexStream:
    """Tests for the SSE progress generator."""

    @pytest.mark.asyncio
    async def test_streams_progress_then_completed(self, fake_es):
        store = MemoryProblemStore()
        for i in range(1, 5):
            store.add(make_problem("t", i))
        reindexer = Reindexer(store, IndexWriter(fake_es), report_interval=2)

        events = [e async for e in reindex_events(reindexer, "t", asyncio.Lock())]

        assert [e.event for e in events] == ["progress", "progress", "completed"]
        result = ReindexResult.model_validate_json(events[-1].data)
        assert result.success is True
        assert result.indexed == 4
        assert result.messages == ["2 problems indexed", "4 problems indexed"]

    @pytest.mark.asyncio
    async def test_concurrent_streams_run_once(self, fake_es):
        store = MemoryProblemStore()
        for i in range(1, 5):
            store.add(make_problem("t", i))
        reindexer = Reindexer(store, IndexWriter(fake_es), report_interval=2)
        lock = asyncio.Lock()

        async def collect():
            return [e async for e in reindex_events(reindexer, "t", lock)]

        first, second = await asyncio.gather(collect(), collect())

        assert first[-1].event == "completed"
        assert [e.event for e in second] == ["failed"]
        rejected = ReindexResult.model_validate_json(second[0].data)
        assert rejected.error == ALREADY_RUNNING
        assert len(fake_es.calls_to("delete_by_query")) == 1
        assert not lock.locked()

    @pytest.mark.asyncio
    async def test_held_lock_rejected_in_band(self, fake_es):
        reindexer = Reindexer(MemoryProblemStore(), IndexWriter(fake_es))
        lock = asyncio.Lock()
        await lock.acquire()

        events = [e async for e in reindex_events(reindexer, None, lock)]

        assert [e.event for e in events] == ["failed"]
        assert fake_es.calls_to("delete_by_query") == []
        assert lock.locked()

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, fake_es):
        fake_es.failures["delete_by_query"] = api_error(ApiError, 500, "boom")
        reindexer = Reindexer(MemoryProblemStore(), IndexWriter(fake_es))
        lock = asyncio.Lock()

        events = [e async for e in reindex_events(reindexer, "t", lock)]

        assert events[-1].event == "failed"
        assert not lock.locked()

    @pytest.mark.asyncio
    async def test_failure_event(self, fake_es):
        store = MemoryProblemStore()
        store.add(make_problem("t", 1))
        fake_es.failures["delete_by_query"] = api_error(ApiError, 500, "boom")

        reindexer = Reindexer(store, IndexWriter(fake_es))
        events = [e async for e in reindex_events(reindexer, "t", asyncio.Lock())]

        assert [e.event for e in events] == ["failed"]
        result = ReindexResult.model_validate_json(events[0].data)
        assert result.success is False
        assert "boom" in result.error
