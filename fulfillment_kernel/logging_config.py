"""
Module: fulfillment_kernel.logging_config
Responsibility: JSON-lines logging for the kernel.  Every record carries
    the order and actor being worked on, bound once at the service entry
    points (OrderStatusService.set_status, PaymentConfirmationService.confirm)
    so nested services do not have to repeat them in ``extra``.
Architecture position: Kernel top level.  Imports nothing from the kernel.

Record shape:
    {"ts", "level", "logger", "message", <bound context>, <extra fields>,
     "error": {"type", "message", "code", <exception attributes>},
     "traceback"}

Audit relevance:
    Kernel exceptions expose their structured attributes (variant_id,
    requested, available, ...), so a rejected deduction can be traced from
    the log line alone.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "fulfillment_kernel"


class LogContext:
    """Per-task log fields, held in a single ContextVar."""

    FIELDS = ("order_id", "actor_id")

    _bound: ContextVar[dict[str, str]] = ContextVar(
        "fulfillment_log_context", default={}
    )

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        """Bind fields for the duration of the block; None values are skipped."""
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = {**cls._bound.get(), **{k: v for k, v in fields.items() if v is not None}}
        token = cls._bound.set(merged)
        try:
            yield
        finally:
            cls._bound.reset(token)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._bound.get())

    @classmethod
    def clear(cls) -> None:
        cls._bound.set({})


# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        error["code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            error[key] = value
    return error


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_fields(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the fulfillment_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _installed_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "_fulfillment_kernel", False)]


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the kernel logger.  No-op if already installed."""
    root = logging.getLogger(_LOGGER_PREFIX)
    if _installed_handlers(root):
        return

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    h._fulfillment_kernel = True  # type: ignore[attr-defined]
    root.addHandler(h)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Remove the handler installed by configure_logging. FOR TESTING ONLY."""
    root = logging.getLogger(_LOGGER_PREFIX)
    for h in _installed_handlers(root):
        root.removeHandler(h)
    root.setLevel(logging.WARNING)
