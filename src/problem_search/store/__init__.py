"""Problem store interfaces and the bundled implementations."""

from problem_search.store.base import (
    PROJECTION_PUBLIC,
    DomainDirectory,
    ProblemStore,
    project_public,
)
from problem_search.store.jsonl import JsonlProblemStore
from problem_search.store.memory import MemoryProblemStore

__all__ = [
    "PROJECTION_PUBLIC",
    "DomainDirectory",
    "JsonlProblemStore",
    "MemoryProblemStore",
    "ProblemStore",
    "project_public",
]
