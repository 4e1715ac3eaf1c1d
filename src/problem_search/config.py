"""Service configuration loaded from environment variables."""
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug mode and API documentation.
        log_format: "json" for production output, "console" for local runs.
        key: API key guarding the admin endpoints (disabled when empty).
        elastic_url: Elasticsearch node URL.
        elastic_request_timeout: Per-request timeout handed to the client.
        index_name: Name of the shared problem index.
        index_size: Deepest result offset a search may reach.
        page_size: Results per page when the caller gives no limit.
        reindex_report_interval: Documents between reindex progress reports.
        index_exclude_fields_raw: Comma-separated fields never indexed.
        seed_file: JSON Lines file loaded into the in-process problem store.
        event_queue_size: Maximum size of each subscriber queue.
        event_max_subscribers: Maximum number of concurrent subscribers.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROBLEM_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_format: Literal["json", "console"] = "json"
    key: str = ""

    elastic_url: str = "http://127.0.0.1:9200"
    elastic_request_timeout: float = 30.0
    index_name: str = "problem"
    index_size: int = 10000
    page_size: int = 20
    reindex_report_interval: int = 1000
    index_exclude_fields_raw: str = (
        "id,doc_type,data,additional_file,config,stats,assign"
    )

    seed_file: str = ""

    event_queue_size: int = 1000
    event_max_subscribers: int = 16

    @computed_field
    @property
    def index_exclude_fields(self) -> frozenset[str]:
        """Parse excluded index fields from comma-separated string.

        Returns:
            Set of document field names dropped before indexing.
        """
        return frozenset(
            field.strip()
            for field in self.index_exclude_fields_raw.split(",")
            if field.strip()
        )
