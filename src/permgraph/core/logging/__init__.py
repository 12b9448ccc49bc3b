"""Structured logging setup.

The process-wide structlog configuration lives in ``configure_logging``.
Each permission system also gets its own logger from ``build_logger`` so the
debug switch travels with the system that was configured with it.
"""

import logging

import structlog
from structlog.typing import FilteringBoundLogger, Processor

from permgraph.config import Settings


def _processors(settings: Settings) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        (
            structlog.processors.JSONRenderer()
            if settings.log_json
            else structlog.dev.ConsoleRenderer()
        ),
    ]


def _level(settings: Settings) -> int:
    if settings.debug:
        return logging.DEBUG
    return logging.getLevelNamesMapping()[settings.log_level]


def configure_logging(settings: Settings) -> None:
    """Configure structlog for the whole process.

    Args:
        settings: Settings providing level and renderer choice
    """
    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(_level(settings)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_logger(settings: Settings, **initial_values: object) -> FilteringBoundLogger:
    """Build a logger bound to one permission system.

    Unlike ``configure_logging`` this does not touch global structlog state,
    so two systems with different ``debug`` settings can coexist.

    Args:
        settings: Settings providing level and renderer choice
        **initial_values: Context bound to every event

    Returns:
        A filtering bound logger
    """
    logger: FilteringBoundLogger = structlog.wrap_logger(
        structlog.PrintLogger(),
        processors=_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(_level(settings)),
        context_class=dict,
    )
    return logger.bind(**initial_values) if initial_values else logger


__all__ = [
    "build_logger",
    "configure_logging",
]
