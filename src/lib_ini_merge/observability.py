"""Structured logging for merge and filter runs.

Purpose
    Every diagnostic the package writes is a short event name plus a
    ``context`` mapping attached to the log record. Host applications decide
    where records go; the package itself stays silent.

Contents
    - ``TRACE_ID``: identifier of the run currently being logged.
    - ``get_logger``: the ``lib_ini_merge`` logger (``NullHandler`` attached).
    - ``bind_trace_id``: set or clear ``TRACE_ID``.
    - ``log_debug`` / ``log_info`` / ``log_warning`` / ``log_error``: level
      specific emitters.
    - ``make_event``: ``document``/``section`` fields plus event detail.

System Integration
    The merge engine, the filter engine, the rule loaders and the CLI log
    through these helpers. Secret values are never handed to them; secret
    events carry the service and account only.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Final, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("lib_ini_merge_trace_id", default=None)
"""Identifier attached to every record as ``context["trace_id"]``.

The CLI binds a fresh value per invocation; embedding code may bind its own.
"""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_ini_merge")
_LOGGER.addHandler(logging.NullHandler())


def get_logger() -> logging.Logger:
    """Return the package logger so applications can attach handlers to it."""

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Bind *trace_id* for the current context; ``None`` clears it.

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


def log_debug(message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, message, fields)


def log_info(message: str, **fields: Any) -> None:
    _emit(logging.INFO, message, fields)


def log_warning(message: str, **fields: Any) -> None:
    _emit(logging.WARNING, message, fields)


def log_error(message: str, **fields: Any) -> None:
    _emit(logging.ERROR, message, fields)


def make_event(
    document: str,
    section: str | None,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Return the fields of one merge or filter event.

    Inputs
        document: ``"source"``, ``"target"``, ``"rules"`` or ``"output"``.
        section: Section the event is about, ``None`` for whole-document events.
        payload: Extra detail; its keys win over ``document``/``section``.

    Examples
    --------
    >>> make_event('source', 'General', {'keys': 3})
    {'document': 'source', 'section': 'General', 'keys': 3}
    """

    event: dict[str, Any] = {"document": document, "section": section}
    if payload:
        event.update(payload)
    return event


def _emit(level: int, message: str, fields: Mapping[str, Any]) -> None:
    if not _LOGGER.isEnabledFor(level):
        return
    context = {"trace_id": TRACE_ID.get(), **fields}
    _LOGGER.log(level, message, extra={"context": context})
