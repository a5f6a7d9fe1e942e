"""
Per-run log context carried in a ``ContextVar``.

Every structured event picks up the current run, stage, and workspace via
``add_context_processor``; callers never pass them explicitly. Manifest
reads on worker threads run inside ``contextvars.copy_context()`` so they
log with the caller's context.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, replace
from typing import Any

import structlog


def new_run_id() -> str:
    """Short id for one pipeline invocation (8 hex chars)."""
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class LogContext:
    """
    Fields attached to every log event while set.

    run_id / repo identify the invocation, span_id / parent_span_id come
    from ``log_step``, stage and workspace locate the event in the pipeline.
    """

    run_id: str | None = None
    repo: str | None = None
    span_id: str | None = None
    parent_span_id: str | None = None
    stage: str | None = None
    workspace: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **values: Any) -> LogContext:
        """Copy with the non-None *values* applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


_EMPTY = LogContext()
_current: ContextVar[LogContext] = ContextVar("changescribe_log_context", default=_EMPTY)


def get_context() -> LogContext:
    return _current.get()


def set_context(**values: Any) -> LogContext:
    """Replace the whole context with *values*."""
    ctx = LogContext(**values)
    _current.set(ctx)
    return ctx


def bind_context(**values: Any) -> LogContext:
    """Merge *values* into the current context for the rest of this scope."""
    ctx = get_context().merge(**values)
    _current.set(ctx)
    return ctx


def clear_context() -> None:
    _current.set(_EMPTY)


class _ContextToken:
    """Undo handle returned by ``push_context``."""

    def __init__(self, token: Token[LogContext]):
        self._token = token

    def restore(self) -> None:
        _current.reset(self._token)


def push_context(**values: Any) -> _ContextToken:
    """
    Merge *values* and return a token that restores the previous context.

    Usage:
        token = push_context(workspace="packages/dto")
        try:
            emit_fragment()
        finally:
            token.restore()
    """
    return _ContextToken(_current.set(get_context().merge(**values)))


def add_context_processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Structlog processor: copy context fields the event does not set itself."""
    for key, value in get_context().to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
