"""Structured logging configuration with structlog.

Modules log through ``structlog.get_logger(__name__)`` with event-style
messages and key/value context::

    logger.info("aggregation_created", aggregation="allTests", inputs=[...])

``configure_logging`` is called once by the command line entry point.
Log output goes to stderr so it never mixes with the task listing or
plan printed on stdout.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.typing import Processor

LOG_LEVEL_ENV = "BETTERTESTING_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def _get_log_level(verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    level_name = os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.WARNING)


def configure_logging(verbose: bool = False, json_output: bool = False) -> None:
    """Configure structlog for the command line tool.

    Args:
        verbose: Log at DEBUG level regardless of the environment.
        json_output: Render JSON lines instead of console output.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level(verbose)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
