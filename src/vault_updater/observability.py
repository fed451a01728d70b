"""Structured logging helpers shared by every layer.

Purpose
    Keep every emission of logging data predictable and contextual without
    forcing host applications to adopt a specific logging backend. The package
    logger stays silent until :func:`configure_logging` (used by the CLI) or the
    host application attaches a handler.

Contents
    - ``TRACE_ID``: context variable storing the active run identifier.
    - ``get_logger``: returns the shared package logger (quiet by default).
    - ``bind_trace_id`` / ``new_trace_id``: bind or clear the run identifier.
    - ``log_debug`` / ``log_info`` / ``log_warning`` / ``log_error``: emit
      structured entries via a single private emitter.
    - ``make_event``: convenience builder for structured event payloads.
    - ``ContextFormatter`` / ``configure_logging``: render the structured
      context for stream or file handlers.

System Integration
    Adapters and the orchestrator never log plaintext values; fields carry
    counts, lengths, paths, and status codes only.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Final, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("vault_updater_trace_id", default=None)
"""Identifier correlating every log entry of one update run."""

_LOGGER: Final[logging.Logger] = logging.getLogger("vault_updater")
_LOGGER.addHandler(logging.NullHandler())
_HANDLER_MARKER: Final[str] = "_vault_updater_handler"


def get_logger() -> logging.Logger:
    """Expose the package logger so applications may attach handlers."""

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Bind or clear the active trace identifier.

    Examples
    --------
    >>> bind_trace_id('abc123')
    >>> TRACE_ID.get()
    'abc123'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


def new_trace_id() -> str:
    """Bind and return a fresh random trace identifier."""

    trace_id = uuid.uuid4().hex
    bind_trace_id(trace_id)
    return trace_id


def log_debug(message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, message, fields)


def log_info(message: str, **fields: Any) -> None:
    _emit(logging.INFO, message, fields)


def log_warning(message: str, **fields: Any) -> None:
    _emit(logging.WARNING, message, fields)


def log_error(message: str, **fields: Any) -> None:
    _emit(logging.ERROR, message, fields)


def make_event(
    operation: str,
    target: str | None,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a structured logging payload for pipeline events.

    Inputs
        operation: Pipeline stage (``"read"``, ``"encrypt"``, ``"write"``...).
        target: Document locator or file path concerned, if any.
        payload: Optional mapping with extra diagnostic detail.

    Examples
    --------
    >>> make_event('write', 'acme/infra:vault.yml', {'status': 409})
    {'operation': 'write', 'target': 'acme/infra:vault.yml', 'status': 409}
    """

    event: dict[str, Any] = {"operation": operation, "target": target}
    if payload:
        event |= dict(payload)
    return event


class ContextFormatter(logging.Formatter):
    """Append the structured ``context`` of a record as compact JSON."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line = f"{line} {json.dumps(context, default=str, sort_keys=True)}"
        return line


def configure_logging(level: str = "INFO", log_file: str | None = None) -> logging.Handler:
    """Attach one stream (stderr) or file handler to the package logger.

    Calling it again replaces the handler installed by the previous call, so
    repeated CLI invocations in one process do not duplicate output.
    """

    for handler in list(_LOGGER.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            _LOGGER.removeHandler(handler)
            handler.close()

    handler: logging.Handler
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    setattr(handler, _HANDLER_MARKER, True)
    handler.setFormatter(ContextFormatter())
    _LOGGER.addHandler(handler)
    resolved = logging.getLevelName(level.upper())
    _LOGGER.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    return handler


def _emit(level: int, message: str, fields: Mapping[str, Any]) -> None:
    _LOGGER.log(level, message, extra={"context": _with_trace(fields)})


def _with_trace(fields: Mapping[str, Any]) -> dict[str, Any]:
    context = {"trace_id": TRACE_ID.get()}
    context.update(fields)
    return context
