"""Logging for the marketplace.

stdlib logging carries the records to stdout; structlog shapes them. Records
that carry an ``integrity_event`` key (orphaned reservations, cost-basis
divergence) are tagged ``alert=True`` so log shippers can route them on.
"""

import logging
import os
import sys

import structlog

LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def _environment() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", LEVELS_BY_ENV.get(_environment(), "INFO"))


def tag_integrity_events(logger, method_name, event_dict):
    if event_dict.get("integrity_event"):
        event_dict["alert"] = True
    return event_dict


def configure_logging() -> None:
    level = get_log_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
    logging.getLogger("protean").setLevel(logging.WARNING)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        tag_integrity_events,
    ]
    if _environment() in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.RichTracebackFormatter(max_frames=2))
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
