"""Logging configuration for the SFM level tools."""

import sys
from pathlib import Path
from typing import Any, Optional, TextIO

import structlog

# File opened by the last configure_logging() call, if any
_log_stream: Optional[TextIO] = None


def _level_to_int(level: str) -> int:
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 30)


def close_log_file() -> None:
    """Close the log file opened by configure_logging(), if there is one.

    structlog goes back to its defaults first, so nothing logs to the
    closed file afterwards.
    """
    global _log_stream
    if _log_stream is not None:
        structlog.reset_defaults()
        _log_stream.close()
        _log_stream = None


def configure_logging(
    log_level: str = "WARNING",
    log_file: Optional[Path] = None,
    json_logs: bool = False,
) -> None:
    """Configure structured logging.

    Logs go to stderr unless a file is given, so command output on stdout
    stays clean. Reconfiguring closes the file a previous call opened.
    """
    global _log_stream
    close_log_file()

    if log_file:
        output_stream = _log_stream = open(log_file, "a")
    else:
        output_stream = sys.stderr

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(
            fmt="iso" if json_logs else "%Y-%m-%d %H:%M:%S"
        ),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=output_stream.isatty())
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_to_int(log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output_stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance for a module."""
    return structlog.get_logger(name)
