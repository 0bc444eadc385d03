"""
Structured JSON logging for the contravention kernel.

Every logger lives under the ``contravention_kernel`` namespace and emits one
JSON object per line.  Operation-scoped fields (correlation id, operation,
actor, contravention, employee) are held in a single context variable so
that worker threads and nested engine calls each see their own values.

Usage:
    logger = get_logger("services.points_ledger")
    with LogContext.bind(operation="file_contravention", employee_id=emp):
        logger.info("points_applied", extra={"delta": 4, "new_total": 7})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "operation",
    "actor_id",
    "contravention_id",
    "employee_id",
)

_EMPTY: Mapping[str, str] = {}
_context: ContextVar[Mapping[str, str]] = ContextVar("contravention_log_context", default=_EMPTY)


class LogContext:
    """Operation-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Overwrite the given fields; ``None`` values are skipped."""
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context field: {', '.join(sorted(unknown))}")
        current = dict(_context.get())
        current.update({k: str(v) for k, v in fields.items() if v is not None})
        _context.set(current)

    @staticmethod
    def get_all() -> dict[str, str]:
        current = _context.get()
        return {name: current[name] for name in CONTEXT_FIELDS if name in current}

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """
        Layer fields over the current context for the duration of the block.

        Keys outside ``CONTEXT_FIELDS`` are dropped so callers can pass an
        operation's keyword context straight through.
        """
        layered = dict(_context.get())
        layered.update(
            {k: str(v) for k, v in fields.items() if k in CONTEXT_FIELDS and v is not None}
        )
        token = _context.set(layered)
        try:
            yield LogContext
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}

_EXC_SKIP = frozenset({"args", "code", "kind"})


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: header, context, extras, then exception."""

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                out.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            out.update(self._exception_fields(record.exc_info))
        return json.dumps(out, default=_json_default)

    def _exception_fields(self, exc_info) -> dict[str, Any]:
        exc = exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        # Kernel errors carry code, kind and their structured attributes.
        for attr in ("code", "kind"):
            if hasattr(exc, attr):
                fields[f"exc_{attr}"] = getattr(exc, attr)
        fields.update(
            {
                f"exc_{name}": value
                for name, value in vars(exc).items()
                if not name.startswith("_") and name not in _EXC_SKIP
            }
        )
        fields["traceback"] = self.formatException(exc_info)
        return fields


_ROOT_NAME = "contravention_kernel"
_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``contravention_kernel.<name>``."""
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the namespace root.  Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(_ROOT_NAME)
        root.setLevel(level)
        root.propagate = False
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Detach handlers and allow ``configure_logging`` to run again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
        root = logging.getLogger(_ROOT_NAME)
        for h in list(root.handlers):
            root.removeHandler(h)
        root.setLevel(logging.WARNING)
