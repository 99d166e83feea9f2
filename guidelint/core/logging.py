"""
Structured logging configuration for guidelint.

Provides consistent, structured logging with correlation IDs and rich formatting.
"""

import logging
import sys
import uuid
from typing import Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

# Global correlation ID for run tracing
_correlation_id: Optional[str] = None


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set a correlation ID for the current run."""
    global _correlation_id
    _correlation_id = correlation_id or str(uuid.uuid4())[:8]
    return _correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID."""
    return _correlation_id


def add_correlation_id(logger, method_name, event_dict):
    """Add correlation ID to log entries."""
    if _correlation_id:
        event_dict["correlation_id"] = _correlation_id
    return event_dict


def setup_logging(debug: bool = False, rich_output: bool = True) -> None:
    """
    Configure structured logging for the application.

    Events are rendered by structlog and emitted through the standard library
    handlers on stderr, so ``--format json`` output on stdout stays parseable.

    Args:
        debug: Enable debug level logging
        rich_output: Use rich formatting for console output
    """
    level = logging.DEBUG if debug else logging.WARNING

    processors = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.dev.set_exc_info,
    ]

    if rich_output:
        console = Console(stderr=True)
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=console.is_terminal,
                exception_formatter=structlog.dev.rich_traceback,
            )
        )
        logging.basicConfig(
            level=level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=console, show_path=False)],
            force=True,
        )
    else:
        processors.append(structlog.processors.JSONRenderer())
        logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance with the given name."""
    return structlog.get_logger(name)
