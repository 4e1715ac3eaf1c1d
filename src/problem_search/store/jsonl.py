"""Problem store streaming from a JSON Lines dump."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import structlog

from problem_search.documents import SourceDocument
from problem_search.store.base import project_public

logger = structlog.get_logger()


class JsonlProblemStore:
    """Read-only problem source backed by a JSON Lines file.

    Each line is one problem in host wire format (``domainId``, ``docId``,
    ...). The file is read one line at a time on every pass, so memory use
    does not grow with the size of the dump.

    Attributes:
        path: Dump file to read.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def iter_public(
        self,
        domain_id: str | None = None,
    ) -> AsyncIterator[SourceDocument]:
        """Stream problems from the dump in the public projection.

        Args:
            domain_id: Only yield problems of this domain when given.

        Yields:
            One problem at a time, in file order.

        Raises:
            OSError: If the file cannot be read.
            pydantic.ValidationError: If a line is not a valid problem;
                problems before it have already been yielded.
        """
        count = 0
        with self.path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                doc = SourceDocument.model_validate_json(line)
                if domain_id is not None and doc.tenant_id != domain_id:
                    continue
                count += 1
                yield project_public(doc)
                if lineno % 100 == 0:
                    await asyncio.sleep(0)
        logger.info("problem_dump_streamed", path=str(self.path), count=count)
