"""Structured logging configuration using structlog.

JSON output in production, pretty console in development. Request and task
identifiers bound via contextvars are merged into every event.
"""

import logging

import structlog


def configure_logging(environment: str = "development", log_level: str = "INFO") -> None:
    """Configure structlog for the application.

    Args:
        environment: One of "development" or "production". Controls output format.
        log_level: Minimum level name that is emitted (e.g. "INFO", "DEBUG").
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if environment == "production":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
