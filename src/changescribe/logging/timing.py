"""
Stage timing for pipeline logging.

``log_step`` wraps one pipeline stage (collect, classify, categorize,
emit). It opens a span in the log context so events logged inside the
stage carry ``stage`` and ``span_id``, and nested steps record their
parent span.

Events:
- ``<stage>.start`` at DEBUG with the initial metrics
- ``<stage>.end`` at INFO with ``duration_ms`` and all metrics
- ``<stage>.error`` at ERROR with the exception type, then re-raise
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from changescribe.logging.context import get_context, get_logger, push_context


@dataclass
class StageTimer:
    """Span handed to the body of ``log_step`` for metrics."""

    stage: str
    parent_span_id: str | None = None
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    metrics: dict[str, Any] = field(default_factory=dict)
    _start: float = field(default_factory=time.perf_counter, repr=False)
    _end: float | None = field(default=None, repr=False)

    @property
    def duration_ms(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return (end - self._start) * 1000

    def add_metric(self, key: str, value: Any) -> StageTimer:
        self.metrics[key] = value
        return self

    def finish(self) -> None:
        if self._end is None:
            self._end = time.perf_counter()

    def fields(self) -> dict[str, Any]:
        """Event fields for the end/error log line."""
        out: dict[str, Any] = {"span_id": self.span_id, "duration_ms": round(self.duration_ms, 2)}
        if self.parent_span_id:
            out["parent_span_id"] = self.parent_span_id
        out.update(self.metrics)
        return out


@contextmanager
def log_step(stage: str, **metrics: Any) -> Iterator[StageTimer]:
    """
    Time one pipeline stage and log its start, end, or failure.

    Usage:
        with log_step("classify", files=12) as timer:
            groups, unmanaged = classify_changes(changes)
            timer.add_metric("workspaces", len(groups))
    """
    log = get_logger("changescribe.timing")
    timer = StageTimer(stage=stage, parent_span_id=get_context().span_id, metrics=dict(metrics))
    token = push_context(span_id=timer.span_id, parent_span_id=timer.parent_span_id, stage=stage)

    log.debug(f"{stage}.start", span_id=timer.span_id, **metrics)
    try:
        yield timer
    except Exception as exc:
        timer.finish()
        log.error(f"{stage}.error", error_type=type(exc).__name__, error=str(exc), **timer.fields())
        raise
    finally:
        timer.finish()
        token.restore()

    log.info(f"{stage}.end", **timer.fields())
