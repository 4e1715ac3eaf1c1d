"""Pytest configuration and fixtures."""

import copy
import re
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import ApiError, NotFoundError
from fastapi.testclient import TestClient

from problem_search.app import create_app
from problem_search.config import Settings
from problem_search.documents import SourceDocument
from problem_search.events import EventBus
from problem_search.search import IndexWriter
from problem_search.store import MemoryProblemStore

_TOKEN = re.compile(r"[0-9a-z]+")


def api_error(
    cls: type[ApiError],
    status: int,
    error_type: str,
    reason: str = "",
) -> ApiError:
    """Build an elasticsearch ApiError the way the transport raises it."""
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    body = {
        "error": {
            "root_cause": [{"type": error_type, "reason": reason}],
            "type": error_type,
            "reason": reason,
        },
        "status": status,
    }
    return cls(message=error_type, meta=meta, body=body)


def index_missing(index: str) -> NotFoundError:
    return api_error(
        NotFoundError, 404, "index_not_found_exception", f"no such index [{index}]"
    )


def _tokens(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [t for v in value for t in _tokens(v)]
    return _TOKEN.findall(str(value).lower())


class FakeIndices:
    """Subset of the indices namespace used by the service."""

    def __init__(self, es: "FakeElasticsearch") -> None:
        self._es = es

    async def exists(self, index: str) -> bool:
        self._es.record("indices.exists", index=index)
        return index in self._es.docs

    async def create(self, index: str, mappings: dict[str, Any] | None = None) -> dict:
        self._es.record("indices.create", index=index, mappings=mappings)
        self._es.docs.setdefault(index, {})
        self._es.visible.setdefault(index, {})
        self._es.mappings[index] = mappings or {}
        return {"acknowledged": True, "index": index}

    async def refresh(self, index: str) -> dict:
        self._es.record("indices.refresh", index=index)
        self._es.check("refresh")
        if index not in self._es.docs:
            raise index_missing(index)
        self._es.visible[index] = copy.deepcopy(self._es.docs[index])
        return {"_shards": {"failed": 0}}


class FakeElasticsearch:
    """In-memory stand-in for the AsyncElasticsearch calls the service makes.

    Gets are realtime; searches only see documents as of the last refresh,
    like a real cluster between refresh cycles. Set ``failures[method]`` to
    an exception to make the next calls to that method raise it.
    """

    def __init__(self, total_hits_threshold: int = 10000) -> None:
        self.docs: dict[str, dict[str, dict[str, Any]]] = {}
        self.visible: dict[str, dict[str, dict[str, Any]]] = {}
        self.mappings: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self.total_hits_threshold = total_hits_threshold
        self.indices = FakeIndices(self)
        self.closed = False

    def record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))

    def check(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    async def index(self, index: str, id: str, document: dict[str, Any]) -> dict:
        self.record("index", index=index, id=id, document=document)
        self.check("index")
        self.docs.setdefault(index, {})[id] = copy.deepcopy(document)
        self.visible.setdefault(index, {})
        return {"_id": id, "result": "created"}

    async def get(self, index: str, id: str) -> dict:
        self.record("get", index=index, id=id)
        if index not in self.docs:
            raise index_missing(index)
        if id not in self.docs[index]:
            raise api_error(NotFoundError, 404, "not_found", id)
        return {"_id": id, "found": True, "_source": copy.deepcopy(self.docs[index][id])}

    async def delete(self, index: str, id: str) -> dict:
        self.record("delete", index=index, id=id)
        self.check("delete")
        if index not in self.docs:
            raise index_missing(index)
        if id not in self.docs[index]:
            raise api_error(NotFoundError, 404, "not_found", id)
        del self.docs[index][id]
        self.visible[index].pop(id, None)
        return {"_id": id, "result": "deleted"}

    async def delete_by_query(self, index: str, query: dict[str, Any]) -> dict:
        self.record("delete_by_query", index=index, query=query)
        self.check("delete_by_query")
        if index not in self.docs:
            raise index_missing(index)
        doomed = [i for i, d in self.docs[index].items() if _matches_filter(d, query)]
        for doc_id in doomed:
            del self.docs[index][doc_id]
            self.visible[index].pop(doc_id, None)
        return {"deleted": len(doomed)}

    async def search(
        self,
        index: str,
        size: int = 10,
        from_: int = 0,
        query: dict[str, Any] | None = None,
        post_filter: dict[str, Any] | None = None,
    ) -> dict:
        self.record(
            "search",
            index=index,
            size=size,
            from_=from_,
            query=query,
            post_filter=post_filter,
        )
        self.check("search")
        if index not in self.docs:
            raise index_missing(index)

        scored = []
        for doc_id, doc in self.visible[index].items():
            score = _score(doc, query or {"match_all": {}})
            if score <= 0:
                continue
            if post_filter is not None and not _matches_filter(doc, post_filter):
                continue
            scored.append((score, doc_id, doc))
        scored.sort(key=lambda item: (-item[0], item[1]))

        total = len(scored)
        if total > self.total_hits_threshold:
            total_info = {"value": self.total_hits_threshold, "relation": "gte"}
        else:
            total_info = {"value": total, "relation": "eq"}

        page = scored[from_ : from_ + size]
        return {
            "hits": {
                "total": total_info,
                "hits": [
                    {"_id": doc_id, "_score": score, "_source": doc}
                    for score, doc_id, doc in page
                ],
            }
        }

    async def close(self) -> None:
        self.closed = True


def _matches_filter(doc: dict[str, Any], clause: dict[str, Any]) -> bool:
    if "match_all" in clause:
        return True
    if "term" in clause:
        field, value = next(iter(clause["term"].items()))
        return doc.get(field) == value
    if "bool" in clause:
        should = clause["bool"].get("should", [])
        needed = clause["bool"].get("minimum_should_match", 1 if should else 0)
        return sum(_matches_filter(doc, c) for c in should) >= needed
    raise AssertionError(f"unsupported filter clause: {clause}")


def _score(doc: dict[str, Any], query: dict[str, Any]) -> float:
    if "match_all" in query:
        return 1.0
    sqs = query["simple_query_string"]
    wanted = set(_tokens(sqs["query"]))
    score = 0.0
    for spec in sqs["fields"]:
        field, _, boost = spec.partition("^")
        weight = float(boost or 1)
        score += weight * sum(1 for t in _tokens(doc.get(field)) if t in wanted)
    return score


def make_problem(
    tenant_id: str = "system",
    doc_id: int | str = 1,
    **fields: Any,
) -> SourceDocument:
    """Build a problem document with sensible defaults."""
    fields.setdefault("pid", f"P{doc_id}")
    fields.setdefault("title", f"Problem {doc_id}")
    fields.setdefault("content", "Read two integers and print their sum.")
    return SourceDocument(domainId=tenant_id, docId=doc_id, **fields)


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    """Create an empty in-memory Elasticsearch."""
    return FakeElasticsearch()


@pytest.fixture
def writer(fake_es: FakeElasticsearch) -> IndexWriter:
    """Create an index writer on the fake cluster."""
    return IndexWriter(fake_es, index="problem")  # type: ignore[arg-type]


@pytest.fixture
def event_bus() -> EventBus:
    """Create an event bus."""
    return EventBus(queue_size=100, max_subscribers=4)


@pytest.fixture
def store(event_bus: EventBus) -> MemoryProblemStore:
    """Create an in-process problem store publishing on the bus."""
    return MemoryProblemStore(event_bus)


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        page_size=20,
        index_size=10000,
        _env_file=None,
    )


@pytest.fixture
def api_store() -> MemoryProblemStore:
    """Create a silent problem store for the HTTP app.

    The app loop runs in another thread, so tests seed this store and
    reindex instead of publishing events across threads.
    """
    return MemoryProblemStore()


@pytest.fixture
def client(
    settings: Settings,
    fake_es: FakeElasticsearch,
    event_bus: EventBus,
    api_store: MemoryProblemStore,
) -> Iterator[TestClient]:
    """Create test client with the app lifespan running."""
    app = create_app(settings, es_client=fake_es, event_bus=event_bus, store=api_store)
    with TestClient(app) as test_client:
        yield test_client
