"""FastAPI application factory and lifespan management."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
from elasticsearch import ApiError, AsyncElasticsearch, TransportError
from fastapi import FastAPI

from problem_search import __version__
from problem_search.config import Settings
from problem_search.events import EventBus
from problem_search.middleware.auth import AdminKeyMiddleware
from problem_search.middleware.logging import RequestLoggingMiddleware
from problem_search.routes import admin, health, search
from problem_search.search import (
    IndexWriter,
    QueryEngine,
    Reindexer,
    SearchSyncAdapter,
    run_search_subscriber,
)
from problem_search.store import DomainDirectory, MemoryProblemStore, ProblemStore

logger = structlog.get_logger()


def create_client(settings: Settings) -> AsyncElasticsearch:
    """Build the process-wide Elasticsearch client.

    Args:
        settings: Service configuration.

    Returns:
        Client pooling connections to the configured node.
    """
    return AsyncElasticsearch(
        settings.elastic_url,
        request_timeout=settings.elastic_request_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Opens the Elasticsearch client, wires the index writer, query engine,
    and reindexer around it, and starts the search subscriber. Ensures
    clean shutdown of all subsystems.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info(
        "api_startup",
        host=settings.host,
        port=settings.port,
        elastic_url=settings.elastic_url,
    )

    owns_client = app.state.es_client is None
    client = app.state.es_client if not owns_client else create_client(settings)
    exclude = settings.index_exclude_fields

    writer = IndexWriter(client, index=settings.index_name)
    try:
        await writer.ensure_index()
    except (ApiError, TransportError) as e:
        logger.warning("search_index_unavailable", error=str(e))

    app.state.es_client = client
    app.state.index_writer = writer
    app.state.query_engine = QueryEngine(
        client,
        app.state.domains,
        index=settings.index_name,
        default_page_size=settings.page_size,
        max_window=settings.index_size,
    )
    app.state.reindexer = Reindexer(
        app.state.store,
        writer,
        exclude=exclude,
        report_interval=settings.reindex_report_interval,
    )
    app.state.reindex_lock = asyncio.Lock()

    subscribed = asyncio.Event()
    search_task = asyncio.create_task(
        run_search_subscriber(
            app.state.event_bus,
            SearchSyncAdapter(writer, exclude=exclude),
            started=subscribed,
        )
    )
    await subscribed.wait()

    try:
        yield
    finally:
        if app.state.owns_event_bus:
            # Let queued notifications reach the index before stopping
            app.state.event_bus.close()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(asyncio.shield(search_task), timeout=5.0)

        search_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await search_task

        if owns_client:
            await client.close()
            app.state.es_client = None
        logger.info("api_shutdown", dropped_events=app.state.event_bus.dropped_events)


def create_app(
    settings: Settings | None = None,
    *,
    es_client: Any = None,
    event_bus: EventBus | None = None,
    store: ProblemStore | None = None,
    domains: DomainDirectory | None = None,
) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.
        es_client: Elasticsearch client to use instead of building one.
        event_bus: Bus carrying problem lifecycle events.
        store: Problem source of truth. Defaults to an in-process store
            publishing on ``event_bus``.
        domains: Domain union resolver. Defaults to ``store``.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()
    owns_event_bus = event_bus is None
    if event_bus is None:
        event_bus = EventBus(
            queue_size=settings.event_queue_size,
            max_subscribers=settings.event_max_subscribers,
        )
    if store is None:
        store = MemoryProblemStore(event_bus)
        if settings.seed_file:
            store.load(Path(settings.seed_file))
    if domains is None:
        domains = store  # type: ignore[assignment]

    app = FastAPI(
        title="Problem Search API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.es_client = es_client
    app.state.event_bus = event_bus
    app.state.owns_event_bus = owns_event_bus
    app.state.store = store
    app.state.domains = domains

    app.add_middleware(RequestLoggingMiddleware)
    if settings.key:
        app.add_middleware(AdminKeyMiddleware, api_key=settings.key)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(search.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
