"""Entry point for the problem search service and its maintenance jobs."""

import argparse
import asyncio
import contextlib
import sys
from pathlib import Path

import structlog
import uvicorn

from problem_search.app import create_app, create_client
from problem_search.config import Settings
from problem_search.logging import configure_logging
from problem_search.search import IndexWriter, Reindexer, ReindexProgress
from problem_search.store import JsonlProblemStore

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn server until SIGTERM or SIGINT.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
    )
    await uvicorn.Server(config).serve()


async def reindex(settings: Settings, domain_id: str | None, source: Path) -> bool:
    """Rebuild the index from a JSON Lines problem dump.

    The dump is streamed line by line, never loaded whole.

    Args:
        settings: Service configuration.
        domain_id: Domain to rebuild, the whole corpus when None.
        source: Problem dump to stream from.

    Returns:
        True when the rebuild completed.
    """
    client = create_client(settings)
    try:
        reindexer = Reindexer(
            JsonlProblemStore(source),
            IndexWriter(client, index=settings.index_name),
            exclude=settings.index_exclude_fields,
            report_interval=settings.reindex_report_interval,
        )

        def report(progress: ReindexProgress) -> None:
            print(progress.message, file=sys.stderr)

        return await reindexer.run(domain_id, report=report)
    finally:
        await client.close()


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(prog="problem_search")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the HTTP API (default)")

    rebuild = sub.add_parser("reindex", help="Purge and rebuild the search index")
    rebuild.add_argument("--domain", default=None, help="Only rebuild this domain")
    rebuild.add_argument(
        "--source",
        type=Path,
        default=None,
        help="JSON Lines problem dump (defaults to the configured seed file)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for python -m problem_search."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(debug=settings.debug, log_format=settings.log_format)

    if args.command == "reindex":
        source = args.source or (Path(settings.seed_file) if settings.seed_file else None)
        if source is None:
            logger.error("reindex_source_missing")
            sys.exit(2)
        try:
            asyncio.run(reindex(settings, args.domain, source))
        except Exception:
            logger.exception("reindex_failed", domain_id=args.domain)
            sys.exit(1)
        sys.exit(0)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
