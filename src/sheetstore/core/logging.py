"""
sheetstore logging - structured logging for the row-store engine.

Every engine module logs through structlog so that quota waits, dedup
decisions and backend rejections show up as machine-readable events with
the table and range they concern.

Manifesto:
    The remote grid is eventually observed and has no transactions, so the
    log is the only record of what the engine decided and why. Events use
    snake_case names with key/value context; the database and table of the
    running operation are bound once via LogContext.

Architecture:
    ::

        configure_from_settings(settings)   # SHEETSTORE_LOG_LEVEL / _JSON_LOGS
              │
              ▼
        configure_logging(level, json_format, service)
              │
              ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars / add_log_level / add_logger_name
          3. _add_service_metadata
          4. _expand_sheetstore_errors   (error=exc  ->  exc.to_dict())
          5. JSONRenderer (or ConsoleRenderer when attached to a tty)

        logger = get_logger(__name__)
        logger.info("upsert_written", table="Users", rows=3, start_row=5)

Examples:
    >>> from sheetstore.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.debug("table_synced", table="Users", rows=12)

Tags:
    logging, structlog, observability, json-logging, sheetstore
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sheetstore.core.errors import SheetStoreError
from sheetstore.core.settings import SheetStoreSettings, get_settings

_SERVICE_NAME = "sheetstore"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def _expand_sheetstore_errors(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace a ``SheetStoreError`` under ``error`` with its ``to_dict()``."""
    error = event_dict.get("error")
    if isinstance(error, SheetStoreError):
        event_dict["error"] = error.to_dict()
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"unknown log level {level!r}")
    return number


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "sheetstore",
    add_timestamp: bool = True,
) -> None:
    """Route structlog through the stdlib root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: JSON when True, console when False; None picks JSON
            unless stdout is a terminal
        service: value of the ``service`` key on every event
        add_timestamp: prepend an ISO ``timestamp`` key
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service
    threshold = _level_number(level)
    interactive = sys.stdout.isatty()
    if json_format is None:
        json_format = not interactive

    processors: list[Processor] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
        _expand_sheetstore_errors,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=interactive))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=threshold)


def configure_from_settings(settings: SheetStoreSettings | None = None) -> None:
    """Apply ``log_level`` and ``json_logs`` from the environment settings."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind keys for the duration of a ``with`` block.

    Example:
        with LogContext(database="1AbC", table="Users", operation="delete"):
            logger.info("rows_deleted", count=2)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
