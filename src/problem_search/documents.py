"""Problem document models shared by the store, the event bus, and the index."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DocId = int | str


def index_key(tenant_id: str, doc_id: DocId) -> str:
    """Build the composite index identifier for a problem.

    Args:
        tenant_id: Owning domain.
        doc_id: Problem document id within the domain.

    Returns:
        Key of the form ``tenant_id/doc_id``.
    """
    return f"{tenant_id}/{doc_id}"


def split_index_key(key: str) -> tuple[str, str]:
    """Split an index key back into (tenant_id, doc_id).

    Domain ids never contain "/", so the first separator is authoritative.

    Raises:
        ValueError: If the key has no separator.
    """
    tenant_id, sep, doc_id = key.partition("/")
    if not sep or not tenant_id or not doc_id:
        raise ValueError(f"Malformed index key: {key!r}")
    return tenant_id, doc_id


class SourceDocument(BaseModel):
    """Problem record as owned by the problem store.

    Attributes:
        tenant_id: Owning domain (``domainId`` on the wire).
        doc_id: Document id within the domain (``docId`` on the wire).
        pid: Human-readable problem code, e.g. ``P1001``.
        title: Problem title.
        content: Statement body.
        tag: Free-form tags.
        owner: Uploader user id.
        hidden: Whether the problem is hidden from the problem list.
        difficulty: Optional difficulty rating.
        sort: Sort key used by the host problem list.
        id: Internal storage id, never indexed.
        doc_type: Storage type discriminator, never indexed.
        data: Test data file listing, never indexed.
        additional_file: Attachment listing, never indexed.
        config: Judge configuration, never indexed.
        stats: Submission statistics, never indexed.
        assign: Assigned group list, never indexed.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tenant_id: str = Field(alias="domainId")
    doc_id: DocId = Field(alias="docId")
    pid: str | None = None
    title: str | None = None
    content: str | None = None
    tag: list[str] = Field(default_factory=list)
    owner: int | None = None
    hidden: bool = False
    difficulty: int | None = None
    sort: str | None = None

    id: Any = Field(default=None, alias="_id")
    doc_type: int | None = Field(default=None, alias="docType")
    data: list[Any] | None = None
    additional_file: list[Any] | None = None
    config: Any = None
    stats: dict[str, Any] | None = None
    assign: list[str] | None = None


class IndexDocument(BaseModel):
    """Search-index projection of a problem.

    Carries the normalized text fields plus every source field that is not
    excluded from indexing.
    """

    model_config = ConfigDict(extra="allow")

    tenant_id: str
    doc_id: DocId
    pid: str | None = None
    title: str | None = None
    content: str | None = None
    tag: list[str] = Field(default_factory=list)

