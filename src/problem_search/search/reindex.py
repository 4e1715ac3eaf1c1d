"""Full rebuild of the problem index from the problem store."""

import inspect
from collections.abc import Awaitable, Callable, Iterable

import structlog

from problem_search.search.normalizer import DEFAULT_EXCLUDED_FIELDS, normalize
from problem_search.search.schemas import ReindexProgress
from problem_search.search.writer import IndexWriter
from problem_search.store.base import ProblemStore

logger = structlog.get_logger()

ProgressReporter = Callable[[ReindexProgress], Awaitable[None] | None]


class Reindexer:
    """Rebuilds the index for one domain or the whole corpus.

    A run purges its scope first and then streams the store back in, one
    problem at a time. There is no rollback: a run that fails midway
    leaves the scope purged and partially rebuilt until the next
    successful run.

    Attributes:
        report_interval: Documents between progress reports.
    """

    def __init__(
        self,
        store: ProblemStore,
        writer: IndexWriter,
        exclude: Iterable[str] = DEFAULT_EXCLUDED_FIELDS,
        report_interval: int = 1000,
    ) -> None:
        """Initialize reindexer.

        Args:
            store: Problem source of truth.
            writer: Index writer for the target index.
            exclude: Field names dropped before indexing.
            report_interval: Documents between progress reports.
        """
        self._store = store
        self._writer = writer
        self._exclude = frozenset(exclude)
        self.report_interval = report_interval

    async def run(
        self,
        domain_id: str | None = None,
        report: ProgressReporter | None = None,
    ) -> bool:
        """Purge and rebuild the index.

        Args:
            domain_id: Domain to rebuild; the whole corpus when None.
            report: Sink receiving progress messages; may be sync or async.

        Returns:
            True once every problem is indexed and searchable.

        Raises:
            Exception: Any store or backend failure, after which the scope
                is left partially rebuilt.
        """
        log = logger.bind(domain_id=domain_id)
        log.info("reindex_started")

        await self._writer.bulk_purge(domain_id)
        await self._writer.ensure_index()

        count = 0
        async for doc in self._store.iter_public(domain_id):
            count += 1
            await self._writer.upsert(
                doc.tenant_id, doc.doc_id, normalize(doc, self._exclude)
            )
            if count % self.report_interval == 0:
                progress = ReindexProgress(
                    message=f"{count} problems indexed", indexed=count
                )
                log.info("reindex_progress", indexed=count)
                if report is not None:
                    result = report(progress)
                    if inspect.isawaitable(result):
                        await result

        await self._writer.refresh()
        log.info("reindex_completed", indexed=count)
        return True
