"""
HunterFit Logging Subsystem

Purpose
-------
Structured, context-aware logging for every engine operation:

- JSON records for aggregation, plain text for local development.
- ``LogContext`` binds hunter/operation context through ContextVars so that
  every record emitted inside one hunter operation carries the same
  ``correlation_id``.
- Records are handed to a ``QueueListener`` thread, so writing to the
  console never blocks the event loop.

Design Decisions
----------------
- ``setup_logging()`` is explicit; importing this module has no side effects
  so library consumers and tests keep control of the root logger.
- Extra fields passed via ``logger.info("msg", extra={...})`` land under the
  ``extra`` key of the JSON record.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional

from hunterfit.core.config.config import Config


_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context",
    default={},
)


# ============================================================================
# Config
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Logging settings derived from ``Config``."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def log_level(self) -> int:
        level_name = getattr(Config, "LOG_LEVEL", "INFO")
        if not isinstance(level_name, str):
            level_name = "INFO"
        return getattr(logging, level_name.upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        json_flag = getattr(Config, "LOG_JSON", None)
        if json_flag is None:
            return Config.is_production()
        return bool(json_flag)


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _request_context.get({})

        record.hunter_id = context.get("hunter_id", "N/A")

        correlation_id = context.get("correlation_id") or context.get("request_id")
        record.correlation_id = correlation_id or "N/A"
        record.request_id = context.get("request_id", record.correlation_id)

        record.component = context.get("component") or record.name.split(".", 1)[0]
        if not hasattr(record, "operation"):
            record.operation = context.get("operation", "N/A")

        return True


class JSONFormatter(logging.Formatter):
    # Attributes every LogRecord carries; anything else came in through ``extra``
    STANDARD_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__
    ) | {"message", "asctime", "taskName"}

    CONTEXT_ATTRS = ("hunter_id", "operation", "correlation_id", "request_id", "component")

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: val
            for key, val in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in self.CONTEXT_ATTRS
            and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HunterFitQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            sys.stderr.write("HunterFit logging queue full; dropping log record.\n")


# ============================================================================
# Global Setup
# ============================================================================

_queue_listener: Optional[QueueListener] = None


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)
    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )
    return handler


def setup_logging() -> None:
    """Route the root logger through the queue to the console. Idempotent."""
    global _queue_listener

    if _queue_listener is not None:
        return

    root = logging.getLogger()
    root.setLevel(LOGGER_CONFIG.log_level)
    root.handlers.clear()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(
        log_queue, _build_console_handler(), respect_handler_level=True
    )
    _queue_listener.start()

    queue_handler = HunterFitQueueHandler(log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    # Enrich before the record crosses the queue; ContextVars are per-task.
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
        },
    )


def shutdown_logging() -> None:
    """Flush pending records and detach the queue handler."""
    global _queue_listener

    if _queue_listener is None:
        return

    _queue_listener.stop()
    _queue_listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, HunterFitQueueHandler):
            handler.close()
            root.removeHandler(handler)


def is_logging_initialized() -> bool:
    return _queue_listener is not None


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind hunter/operation context to every log record emitted inside the block.

    Example
    -------
    >>> async with LogContext(hunter_id=hunter_id, operation="start_raid"):
    ...     await dungeon_service.start_raid(hunter_id, dungeon_id)
    """

    def __init__(
        self,
        hunter_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        effective = correlation_id or request_id or str(uuid.uuid4())[:8]

        self.context: Dict[str, Any] = {
            "hunter_id": str(hunter_id) if hunter_id is not None else "N/A",
            "component": component,
            "operation": operation,
            "correlation_id": effective,
            "request_id": request_id or effective,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def set_log_context(
    hunter_id: Optional[str] = None,
    operation: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Merge fields into the current context without opening a new scope."""
    current = _request_context.get({}).copy()

    if hunter_id is not None:
        current["hunter_id"] = str(hunter_id)
    if operation is not None:
        current["operation"] = operation
    if request_id:
        current["request_id"] = request_id
        current.setdefault("correlation_id", request_id)

    current.update(extra)
    _request_context.set(current)


def clear_log_context() -> None:
    _request_context.set({})
