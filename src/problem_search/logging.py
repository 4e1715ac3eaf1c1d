"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SERVICE_NAME = "problem-search"

# Stdlib loggers rerouted through structlog; elastic_transport logs every request at INFO
_QUIET_LOGGERS = ("elastic_transport", "elasticsearch")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(
    debug: bool = False,
    log_format: Literal["json", "console"] = "json",
) -> None:
    """Configure structlog and route stdlib logging through it.

    Library loggers (Elasticsearch transport, uvicorn) are rendered with the
    same processors so every line on stdout has one format.

    Args:
        debug: Enable debug-level logging when True.
        log_format: "json" for one JSON object per line, "console" for
            human-readable output during local runs.
    """
    level = logging.DEBUG if debug else logging.INFO

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_service,
    ]

    renderer: Processor
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
        tail: list[Processor] = [structlog.dev.set_exc_info, renderer]
    else:
        renderer = structlog.processors.JSONRenderer()
        tail = [
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            renderer,
        ]

    structlog.configure(
        processors=[*shared, structlog.processors.StackInfoRenderer(), *tail],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*shared, structlog.stdlib.add_logger_name],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _UVICORN_LOGGERS:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)
