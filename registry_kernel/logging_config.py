"""
registry_kernel.logging_config -- Structured JSON logs for review activity.

Responsibility:
    Every review transition (issue recorded, review started or blocked,
    authority decision, completion, election certification) is logged as a
    single JSON line so the host can ship it to any log store and
    reconstruct who decided what, on which submission, and when.

Architecture position:
    Kernel infrastructure.  Imported by services and by ``registry_config``;
    imports nothing from the rest of the kernel.

Invariants enforced:
    - One record, one line: the formatter never emits multi-line output
      (tracebacks are embedded as a JSON string).
    - Request scope: ``LogContext`` fields live in contextvars, so
      concurrent decisions on different threads never see each other's
      ``submission_id`` / ``workflow_id`` / ``actor_id``.
    - ``configure_logging`` is idempotent; only the first call installs a
      handler.

Usage:
    configure_logging()
    logger = get_logger("services.review_coordinator")
    with LogContext.bind(submission_id=str(sid), actor_id=identity.identity_id):
        logger.info("decision_recorded", extra={"step_index": 2})
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Iterator

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

_ROOT_NAME = "registry_kernel"


# ---------------------------------------------------------------------------
# Request-scoped fields
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"registry_log_{name}", default=None)
    for name in ("correlation_id", "actor_id", "submission_id", "workflow_id")
}


class LogContext:
    """Review-scoped fields merged into every log line.

    Known fields: ``correlation_id``, ``actor_id``, ``submission_id``,
    ``workflow_id``.  ``None`` values are ignored by ``set`` and ``bind``.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        for name, value in fields.items():
            if value is not None:
                _field(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _CONTEXT_FIELDS.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_FIELDS.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = [
            (_field(name), _field(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


def _field(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT_FIELDS[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name}") from None


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class _PayloadEncoder(json.JSONEncoder):
    """UUIDs, Decimals and anything else unknown are written as strings."""

    def default(self, o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return str(o)


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON object.

    Key order: ``ts``, ``level``, ``logger``, ``message``, then context
    fields, then ``extra`` fields, then ``exc_*`` fields.  Context wins over
    an ``extra`` key of the same name.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, cls=_PayloadEncoder)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # RegistryKernelError subclasses keep their context as plain attributes
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the ``registry_kernel`` hierarchy."""
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


_setup_lock = threading.Lock()
_installed = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the ``registry_kernel`` logger.

    Args:
        level: Minimum level for the whole hierarchy.
        stream: Target for the default StreamHandler (stderr when omitted).
        handler: Use this handler instead of a StreamHandler.
    """
    global _installed
    with _setup_lock:
        if _installed:
            return
        _installed = True

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT_NAME)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Tests only."""
    global _installed
    with _setup_lock:
        _installed = False
    root = logging.getLogger(_ROOT_NAME)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
