"""Structured logging setup for the command line."""

import logging
import sys

import structlog


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """
    Configure structlog once for the process.

    Log lines go to stderr so stdout only carries the command's own output.

    Args:
        verbose: Log DEBUG events too (default INFO and above).
        json_logs: Render one JSON object per line instead of console output.
    """
    level = logging.DEBUG if verbose else logging.INFO
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
