"""
Timing utilities for performance logging.

Provides reusable helpers for measuring and logging step durations:
- Context manager: with log_step("step_name"):
- Manual: with timed_block() as timer; timer.duration_ms
- Open-ended: TimingResult() ... timer.stop()

Design:
- Logs start at DEBUG, end at the requested level (with duration)
- Includes execution context automatically
- Lightweight tracing with span_id/parent_span_id
- Monotonic clock (time.perf_counter), so durations are never negative
"""

from __future__ import annotations

import time
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from open_tasks.framework.logging.context import get_context, get_logger, push_context


def _generate_span_id() -> str:
    """Generate a short span ID (8 hex chars)."""
    return uuid.uuid4().hex[:8]


@dataclass
class TimingResult:
    """Result of a timed operation with tracing support."""

    step: str
    span_id: str = field(default_factory=_generate_span_id)
    parent_span_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"  # ok, error
    error_info: dict[str, Any] | None = None

    def stop(self) -> TimingResult:
        """Record end time.  Only the first call counts."""
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        return self

    @property
    def stopped(self) -> bool:
        return self.ended_at is not None

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds (running total until stopped)."""
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return max(0.0, end - self.started_at)

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return self.duration_seconds * 1000

    def add_metric(self, key: str, value: Any) -> TimingResult:
        """Add a metric to include in the log output."""
        self.metrics[key] = value
        return self

    def set_error(self, e: BaseException) -> TimingResult:
        """Record error information."""
        self.status = "error"
        self.error_info = {
            "error_type": type(e).__name__,
            "error_message": str(e),
            "error_stack": traceback.format_exc(),
        }
        return self

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        result = {
            "duration_ms": round(self.duration_ms, 2),
            "span_id": self.span_id,
        }
        if self.parent_span_id:
            result["parent_span_id"] = self.parent_span_id
        result.update(self.metrics)
        return result

    def to_error_dict(self) -> dict[str, Any]:
        """Convert to dict for error logging."""
        result = self.to_log_dict()
        result["status"] = "error"
        if self.error_info:
            result.update(self.error_info)
        return result


@contextmanager
def timed_block(step: str = "unnamed") -> Iterator[TimingResult]:
    """
    Low-level timing context manager.

    Does not log automatically - use log_step for that.

    Usage:
        with timed_block("serialize") as timer:
            payload = serialize(value)
        print(f"Took {timer.duration_ms}ms")
    """
    timer = TimingResult(step=step, parent_span_id=get_context().span_id)
    try:
        yield timer
    finally:
        timer.stop()


@contextmanager
def log_step(event: str, log_start: bool = True, level: str = "info", **extra_metrics) -> Iterator[TimingResult]:
    """
    Context manager that logs step start/end with timing and tracing.

    Logs:
    - Start: DEBUG level (event.start) with span_id
    - End: ``level`` (event.end) with duration_ms, span_id
    - Error: ERROR level (event.error) with the exception details, then re-raises

    The span_id is propagated to nested steps as parent_span_id.

    Usage:
        with log_step("store.write", file_name="out.txt") as timer:
            path.write_text(data)
            timer.add_metric("bytes", len(data))
    """
    log = get_logger("open_tasks.timing")

    parent_span = get_context().span_id
    timer = TimingResult(step=event, parent_span_id=parent_span, metrics=dict(extra_metrics))
    context_token = push_context(span_id=timer.span_id, parent_span_id=parent_span, step=event)

    try:
        if log_start:
            start_fields = {"span_id": timer.span_id}
            if parent_span:
                start_fields["parent_span_id"] = parent_span
            start_fields.update(extra_metrics)
            log.debug(f"{event}.start", **start_fields)

        yield timer

    except Exception as e:
        timer.stop()
        timer.set_error(e)
        log.error(f"{event}.error", **timer.to_error_dict())
        raise

    finally:
        timer.stop()
        context_token.restore()

    getattr(log, level)(f"{event}.end", **timer.to_log_dict())
