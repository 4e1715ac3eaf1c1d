"""Interfaces the search core needs from the host problem store."""

from collections.abc import AsyncIterator
from typing import Protocol

from problem_search.documents import SourceDocument

# Fields a public listing may expose; never includes test data or judge config
PROJECTION_PUBLIC: tuple[str, ...] = (
    "tenant_id",
    "doc_id",
    "pid",
    "title",
    "content",
    "tag",
    "owner",
    "hidden",
    "difficulty",
    "sort",
)


class ProblemStore(Protocol):
    """Source of truth for problem documents."""

    def iter_public(
        self,
        domain_id: str | None = None,
    ) -> AsyncIterator[SourceDocument]:
        """Stream every problem restricted to the public projection.

        Args:
            domain_id: Only stream this domain when given.

        Yields:
            One problem at a time; store failures are raised from the
            iterator.
        """
        ...


class DomainDirectory(Protocol):
    """Resolves which domains a domain can see into."""

    async def get_union(self, domain_id: str) -> list[str]:
        """Return the domains declared in the union of ``domain_id``.

        Returns:
            Member domain ids, empty when no union is declared.
        """
        ...


def project_public(doc: SourceDocument) -> SourceDocument:
    """Restrict a problem to the fields of the public projection."""
    return SourceDocument.model_validate(doc.model_dump(include=set(PROJECTION_PUBLIC)))
