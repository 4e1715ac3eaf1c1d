"""Text normalization applied to problems before they are indexed."""

import re
from collections.abc import Iterable

from problem_search.documents import IndexDocument, SourceDocument

DEFAULT_EXCLUDED_FIELDS: frozenset[str] = frozenset(
    {
        "id",
        "doc_type",
        "data",
        "additional_file",
        "config",
        "stats",
        "assign",
    }
)

# Square, lenticular, and round brackets in ASCII and full-width forms
_BRACKETS = re.compile(r"[\[\]【】()（）]")

# First letter run (2+) glued to digits, e.g. "CF1234"
_ALNUM_CODE = re.compile(r"([a-zA-Z]{2,})(\d+)")


def strip_brackets(text: str) -> str:
    """Replace every bracket character with a single space."""
    return _BRACKETS.sub(" ", text)


def split_code(text: str) -> str:
    """Expand the first letters-then-digits code into its parts.

    ``"CF1234 A"`` becomes ``"CF1234 CF 1234 A"`` so that the combined code
    and both halves are matchable. Later codes are left untouched.
    """
    return _ALNUM_CODE.sub(r"\1\2 \1 \2", text, count=1)


def normalize(
    doc: SourceDocument,
    exclude: Iterable[str] = DEFAULT_EXCLUDED_FIELDS,
) -> IndexDocument:
    """Project a source problem onto its index document.

    Args:
        doc: Problem as stored.
        exclude: Field names dropped from the projection.

    Returns:
        Index document with normalized title, content, and pid.
    """
    fields = doc.model_dump(exclude=set(exclude) - {"tenant_id", "doc_id"})

    if fields.get("content"):
        fields["content"] = strip_brackets(fields["content"])
    if fields.get("title"):
        fields["title"] = split_code(strip_brackets(fields["title"]))
    if fields.get("pid"):
        fields["pid"] = split_code(fields["pid"])

    return IndexDocument.model_validate(fields)
