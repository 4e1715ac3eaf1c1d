"""Elasticsearch-backed problem search with domain-scoped queries."""

__version__ = "0.1.0"
