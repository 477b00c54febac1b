"""
JSON-lines logging for uploads, validation runs and scoped imports.

Every record under the ``mediaplan`` logger is written as one JSON object.
Fields bound through LogContext (the upload session, the acting planner,
the import profile) ride along on each record emitted while they are bound,
including records from background import threads that re-bind the caller's
correlation id.
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
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Iterator

_CONTEXT_FIELDS = ("correlation_id", "session_id", "actor_id", "producer", "profile")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"mediaplan_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


class LogContext:
    """
    Per-task log fields: correlation_id, session_id, actor_id, producer
    and profile.

    Values live in ContextVars, so concurrent threads and tasks each see
    their own.
    """

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Overwrite the given fields; None leaves a field as it is."""
        pairs = [(_context_var(name), value) for name, value in fields.items()]
        for var, value in pairs:
            if value is not None:
                var.set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Bound fields only; unset ones are left out."""
        return {
            name: var.get()
            for name, var in _context_vars.items()
            if var.get() is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator["type[LogContext]"]:
        """Bind fields for the duration of a with block, then put back the old values."""
        pairs = [(_context_var(name), value) for name, value in fields.items()]
        tokens = [(var, var.set(str(value))) for var, value in pairs if value is not None]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # MediaPlanError subclasses keep their details as public attributes
    for attr, value in vars(exc).items():
        if not attr.startswith("_") and attr not in ("args", "code"):
            fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Key order: ts, level, logger, message, then bound LogContext fields,
    then extra= fields, then exception details when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for attr, value in vars(record).items():
            if attr not in _RECORD_ATTRS:
                entry.setdefault(attr, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default)


_ROOT = "mediaplan"


def get_logger(name: str) -> logging.Logger:
    """``get_logger("ingestion.pipeline")`` -> the ``mediaplan.ingestion.pipeline`` logger."""
    return logging.getLogger(f"{_ROOT}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``mediaplan`` logger.

    Only the first call has an effect until reset_logging() runs. Records
    stop at ``mediaplan`` and do not reach the root logger.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)
    logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    logger.addHandler(target)


def reset_logging() -> None:
    """Detach handlers and allow configure_logging() again; used by the test suite."""
    global _configured
    with _configure_lock:
        _configured = False
    logger = logging.getLogger(_ROOT)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
