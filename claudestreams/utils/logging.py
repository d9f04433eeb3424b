"""
Structured logging for claudestreams using structlog.

The CLI writes stream records to stdout, so log entries go to stderr unless
asked otherwise. Entries render as JSON lines under a supervisor or with
structlog's console renderer when a person is watching.
"""

import logging
import sys
from typing import Any, ContextManager, List

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "claudestreams"
LOG_FORMATS = ("console", "json")

_handler: "logging.Handler | None" = None


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every entry with the application name."""
    event_dict["app"] = APP_NAME
    return event_dict


def parse_level(log_level: str) -> int:
    """
    Convert a level name to its numeric value.

    Raises:
        ValueError: If the name is not a standard logging level
    """
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")
    return level


def _processors(log_format: str, colors: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # ConsoleRenderer formats exc_info itself
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))
    return processors


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    log_output: str = "stderr",
) -> None:
    """
    Configure structured logging for the application.

    Safe to call more than once; the previous handler is replaced.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_output: Output stream (stdout or stderr)

    Raises:
        ValueError: If the level or format is unknown
    """
    global _handler

    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format!r}")
    level = parse_level(log_level)
    stream = sys.stdout if log_output == "stdout" else sys.stderr

    app_logger = logging.getLogger(APP_NAME)
    if _handler is not None:
        app_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(stream)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    app_logger.addHandler(_handler)
    app_logger.setLevel(level)

    structlog.configure(
        processors=_processors(log_format, colors=stream.isatty()),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def stream_context(stream_id: str) -> ContextManager:
    """Bind ``stream_id`` to every entry logged inside the block."""
    return structlog.contextvars.bound_contextvars(stream_id=stream_id)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name`` (typically __name__)."""
    return structlog.get_logger(name)


def reset_logging() -> None:
    """Remove the application handler and restore structlog defaults."""
    global _handler

    if _handler is not None:
        logging.getLogger(APP_NAME).removeHandler(_handler)
        _handler = None
    structlog.reset_defaults()
