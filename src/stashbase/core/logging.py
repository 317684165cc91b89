"""Structured logging for the record engine.

structlog is configured once per process. Resource operations bind the
resource name and the hook context's request id through LoggingContext so
that every log line emitted while the operation runs (including lines from
adapters and blob stores) can be correlated.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from stashbase.core.config import Settings, get_settings


def add_logger_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add logger name to log entry.

    Args:
        logger: Logger instance.
        method_name: Method name (unused).
        event_dict: Event dictionary to modify.

    Returns:
        EventDict: Modified event dictionary with logger name.
    """
    event_dict["logger"] = logger.name if hasattr(logger, "name") else "stashbase"
    return event_dict


def rename_message_field(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename 'event' field to 'message'.

    The engine already uses ``event`` for hook event names in log entries,
    so the structlog message key is moved out of the way.
    """
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structured logging.

    Console rendering in development (or when ``log_format`` is
    ``console``), JSON lines otherwise.

    Args:
        settings: Optional settings instance. If not provided, will load from environment.
    """
    if settings is None:
        settings = get_settings()

    level = getattr(logging, settings.log_level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        rename_message_field,
    ]

    if settings.is_development or settings.log_format == "console":
        renderer: Processor = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=not settings.is_development,
    )

    # Driver libraries (sqlalchemy, pymongo, botocore) log through stdlib
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name. If not provided, uses 'stashbase'.

    Returns:
        BoundLogger: Configured structured logger instance.
    """
    return structlog.get_logger(name or "stashbase")


class LoggingContext:
    """Context manager for adding logging context.

    Example:
        with LoggingContext(resource="person", request_id="hk_abc123"):
            logger.info("Record created")  # includes resource and request_id
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> "LoggingContext":
        """Bind the context variables, remembering any values they shadow."""
        current = structlog.contextvars.get_contextvars()
        self._previous = {key: current[key] for key in self.context if key in current}
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        """Unbind the context variables and restore shadowed values."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())
        if self._previous:
            structlog.contextvars.bind_contextvars(**self._previous)


def clear_context() -> None:
    """Clear all context variables from the current logging context."""
    structlog.contextvars.clear_contextvars()
