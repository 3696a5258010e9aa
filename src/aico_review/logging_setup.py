"""Structured logging setup.

Logs go to stderr so report output on stdout stays machine-readable.
"""

import logging
import sys

import structlog


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """Configure structlog for the CLI.

    Args:
        verbose: Emit debug events
        json_logs: Render events as JSON lines (CI) instead of console text
    """
    level = logging.DEBUG if verbose else logging.WARNING
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
