"""Per-session capture, buffering and classification.

:class:`TerminalMonitor` owns every per-session map of the monitoring side:
output buffers, the last captured text and the time of the last detected
activity. Nothing outside it holds a reference to these maps; accessors return
copies or immutable values.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from shepherd import constants
from shepherd.exceptions import (
    AggregateCaptureFailure,
    CaptureError,
    ClassificationError,
)
from shepherd.logging import get_logger
from shepherd.models import (
    ActivityCategory,
    ActivityResult,
    SessionCheckResult,
    SessionTarget,
)
from shepherd.monitor.buffer import (
    BufferStats,
    CircularOutputBuffer,
    OutputCompressor,
    importance_pattern,
    shrink_output,
    truncate_output,
)
from shepherd.monitor.capture import OutputCapture
from shepherd.monitor.classifier import ActivityClassifier
from shepherd.monitor.detector import IdleErrorDetector
from shepherd.utils.async_utils import run_parallel
from shepherd.utils.clock import Clock, utc_now

__all__ = [
    "OutputObserver",
    "PruneReport",
    "TerminalMetrics",
    "TerminalMonitor",
]

logger = get_logger(__name__)


@runtime_checkable
class OutputObserver(Protocol):
    """Receives every successfully captured output, once per tick."""

    async def observe_output(self, session_id: str, output: str) -> None: ...


@dataclass(frozen=True, slots=True)
class TerminalMetrics:
    """Aggregate figures for the terminal monitor.

    Attributes:
        outputs_processed: Captures that were buffered and classified.
        average_output_size: Mean length of those captures in characters.
        memory_usage: Characters held in buffers and last outputs.
        tracked_sessions: Sessions with any retained state.
        cleanup_operations: Completed prune runs.
        last_cleanup_at: When the last prune ran.
    """

    outputs_processed: int
    average_output_size: float
    memory_usage: int
    tracked_sessions: int
    cleanup_operations: int
    last_cleanup_at: datetime | None


@dataclass(frozen=True, slots=True)
class PruneReport:
    """Outcome of one :meth:`TerminalMonitor.prune` run.

    Attributes:
        pressure: "normal", "high" or "critical".
        memory_before: Memory usage in characters before pruning.
        memory_after: Memory usage in characters after pruning.
        stale_sessions: Sessions whose activity record was dropped.
    """

    pressure: str
    memory_before: int
    memory_after: int
    stale_sessions: tuple[str, ...]


class TerminalMonitor:
    """Capture and classify sessions, keeping bounded per-session history.

    Example:
        ```python
        monitor = TerminalMonitor(OutputCapture(driver), ActivityClassifier(), detector)
        results = await monitor.monitor_all(targets)
        ```
    """

    def __init__(
        self,
        capture: OutputCapture,
        classifier: ActivityClassifier,
        detector: IdleErrorDetector,
        *,
        buffer_capacity: int = constants.BUFFER_CAPACITY,
        compressor: OutputCompressor | None = None,
        max_lines: int = constants.MAX_OUTPUT_LINES,
        chars_per_line: int = constants.CHARS_PER_LINE,
        importance_keywords: Iterable[str] = constants.IMPORTANCE_KEYWORDS,
        max_activity_age: timedelta = timedelta(
            seconds=constants.MAX_ACTIVITY_AGE_SECONDS
        ),
        high_memory_bytes: int = constants.HIGH_MEMORY_BYTES,
        critical_memory_bytes: int = constants.CRITICAL_MEMORY_BYTES,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the monitor.

        Args:
            capture: Capture helper with timeout and retries.
            classifier: Activity classifier for new output.
            detector: Idle and error detector.
            buffer_capacity: Entries kept per session.
            compressor: Compressor for oversized buffer entries, or None.
            max_lines: Line cap applied to raw captures.
            chars_per_line: Character budget per line for raw captures.
            importance_keywords: Lines kept when outputs are shrunk.
            max_activity_age: Activity records older than this are pruned.
            high_memory_bytes: Usage at which pruning tightens.
            critical_memory_bytes: Usage at which buffers are reset.
            clock: Time source.
        """
        self._capture = capture
        self._classifier = classifier
        self._detector = detector
        self._buffer_capacity = buffer_capacity
        self._compressor = compressor
        self._max_lines = max_lines
        self._chars_per_line = chars_per_line
        self._important = importance_pattern(importance_keywords)
        self._max_activity_age = max_activity_age
        self._high_memory = high_memory_bytes
        self._critical_memory = critical_memory_bytes
        self._clock = clock

        self._buffers: dict[str, CircularOutputBuffer] = {}
        self._last_outputs: dict[str, str] = {}
        self._last_activity: dict[str, datetime] = {}
        self._observers: list[OutputObserver] = []

        self._outputs_processed = 0
        self._output_chars = 0
        self._cleanup_operations = 0
        self._last_cleanup_at: datetime | None = None

    @property
    def detector(self) -> IdleErrorDetector:
        return self._detector

    def add_observer(self, observer: OutputObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: OutputObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def monitor_session(self, target: SessionTarget) -> SessionCheckResult:
        """Capture, buffer and classify one session, then notify observers.

        Raises:
            CaptureError: If the capture failed after its retries.
        """
        result = await self._check(target)
        await self._notify(result.session_id, result.output)
        return result

    async def monitor_all(
        self, targets: Sequence[SessionTarget]
    ) -> list[SessionCheckResult]:
        """Check every target concurrently.

        A session whose capture fails yields a result with ``captured=False``.
        Observers are notified sequentially after all captures finished.

        Raises:
            AggregateCaptureFailure: If every target failed to capture.
        """
        outcomes = await run_parallel(
            [functools.partial(self._check, target) for target in targets]
        )

        now = self._clock()
        results: list[SessionCheckResult] = []
        failures: dict[str, CaptureError] = {}
        for target, outcome in zip(targets, outcomes, strict=True):
            if isinstance(outcome, SessionCheckResult):
                results.append(outcome)
                continue
            if isinstance(outcome, CaptureError):
                error = outcome
            else:
                logger.error(
                    "session_check_crashed",
                    session_id=target.session_id,
                    error=repr(outcome),
                )
                error = CaptureError(
                    f"Unexpected failure checking {target.session_id}: {outcome!r}",
                    session_id=target.session_id,
                )
            failures[target.session_id] = error
            results.append(
                SessionCheckResult(
                    session_id=target.session_id,
                    captured=False,
                    output="",
                    activity=None,
                    is_idle=False,
                    timestamp=now,
                    error=error.message,
                )
            )

        if targets and len(failures) == len(targets):
            raise AggregateCaptureFailure(
                f"All {len(targets)} session captures failed", failures
            )

        for result in results:
            if result.captured:
                await self._notify(result.session_id, result.output)
        return results

    async def _check(self, target: SessionTarget) -> SessionCheckResult:
        session_id = target.session_id
        raw = await self._capture.capture(target)
        now = self._clock()
        output = truncate_output(raw, self._max_lines, self._chars_per_line)

        self._buffer_for(session_id).add(output)
        self._outputs_processed += 1
        self._output_chars += len(output)

        previous = self._last_outputs.get(session_id, "")
        try:
            activity = self._classifier.classify(
                output, previous, session_id=session_id
            )
        except ClassificationError as e:
            logger.warning(
                "classification_failed", session_id=session_id, error=e.message
            )
            activity = ActivityResult(
                category=ActivityCategory.IDLE,
                description="Activity detection error",
                timestamp=now,
                is_error=True,
            )

        self._last_outputs[session_id] = output
        if activity is not None:
            self._last_activity[session_id] = now

        return SessionCheckResult(
            session_id=session_id,
            captured=True,
            output=output,
            activity=activity,
            is_idle=self._detector.is_idle(
                output, self._last_activity.get(session_id), now
            ),
            timestamp=now,
        )

    async def _notify(self, session_id: str, output: str) -> None:
        for observer in list(self._observers):
            try:
                await observer.observe_output(session_id, output)
            except Exception:
                logger.exception("output_observer_failed", session_id=session_id)

    def _buffer_for(self, session_id: str) -> CircularOutputBuffer:
        buffer = self._buffers.get(session_id)
        if buffer is None:
            buffer = CircularOutputBuffer(
                self._buffer_capacity, compressor=self._compressor
            )
            self._buffers[session_id] = buffer
        return buffer

    def last_output(self, session_id: str) -> str | None:
        return self._last_outputs.get(session_id)

    def last_activity(self, session_id: str) -> datetime | None:
        return self._last_activity.get(session_id)

    def recent_output(self, session_id: str, count: int | None = None) -> list[str]:
        buffer = self._buffers.get(session_id)
        return buffer.get_recent(count) if buffer is not None else []

    def buffer_stats(self, session_id: str) -> BufferStats | None:
        buffer = self._buffers.get(session_id)
        return buffer.stats() if buffer is not None else None

    def reset_session(self, session_id: str) -> None:
        """Forget everything retained for ``session_id``."""
        self._buffers.pop(session_id, None)
        self._last_outputs.pop(session_id, None)
        self._last_activity.pop(session_id, None)

    def memory_usage(self) -> int:
        """Characters held in buffers and last outputs."""
        return sum(b.memory_usage for b in self._buffers.values()) + sum(
            len(output) for output in self._last_outputs.values()
        )

    def prune(
        self,
        now: datetime | None = None,
        *,
        keep_sessions: Iterable[str] | None = None,
    ) -> PruneReport:
        """Drop stale state, tightening limits under memory pressure.

        - Sessions not in ``keep_sessions`` (when given) are forgotten.
        - Activity records older than the maximum age are dropped, together
          with the session's buffered history. The age limit is halved above
          the high-memory threshold and quartered above the critical one.
        - Above the high threshold, last outputs are shrunk to half their
          lines, keeping important and recent lines.
        - Above the critical threshold, buffers are rebuilt at half capacity.
        """
        current = now or self._clock()
        before = self.memory_usage()

        if keep_sessions is not None:
            keep = set(keep_sessions)
            tracked = set(self._buffers) | set(self._last_outputs) | set(
                self._last_activity
            )
            for session_id in tracked - keep:
                self.reset_session(session_id)

        if before > self._critical_memory:
            pressure = "critical"
            max_age = self._max_activity_age / 4
        elif before > self._high_memory:
            pressure = "high"
            max_age = self._max_activity_age / 2
        else:
            pressure = "normal"
            max_age = self._max_activity_age

        if pressure != "normal":
            for session_id, output in list(self._last_outputs.items()):
                self._last_outputs[session_id] = shrink_output(
                    output, 0.5, self._important
                )
        if pressure == "critical":
            self._buffer_capacity = max(1, self._buffer_capacity // 2)
            self._buffers = {
                session_id: CircularOutputBuffer(
                    self._buffer_capacity, compressor=self._compressor
                )
                for session_id in self._buffers
            }

        cutoff = current - max_age
        stale = tuple(
            session_id
            for session_id, seen in self._last_activity.items()
            if seen < cutoff
        )
        for session_id in stale:
            del self._last_activity[session_id]
            buffer = self._buffers.get(session_id)
            if buffer is not None:
                buffer.clear()

        self._cleanup_operations += 1
        self._last_cleanup_at = current
        report = PruneReport(
            pressure=pressure,
            memory_before=before,
            memory_after=self.memory_usage(),
            stale_sessions=stale,
        )
        log = logger.warning if pressure != "normal" else logger.debug
        log(
            "terminal_state_pruned",
            pressure=pressure,
            memory_before=report.memory_before,
            memory_after=report.memory_after,
            stale_sessions=len(stale),
        )
        return report

    def metrics(self) -> TerminalMetrics:
        tracked = set(self._buffers) | set(self._last_outputs)
        return TerminalMetrics(
            outputs_processed=self._outputs_processed,
            average_output_size=(
                self._output_chars / self._outputs_processed
                if self._outputs_processed
                else 0.0
            ),
            memory_usage=self.memory_usage(),
            tracked_sessions=len(tracked),
            cleanup_operations=self._cleanup_operations,
            last_cleanup_at=self._last_cleanup_at,
        )
