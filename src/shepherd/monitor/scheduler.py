"""Adaptive monitoring loop with graceful degradation.

Each tick captures every session through the :class:`TerminalMonitor`,
updates per-session monitoring state, and broadcasts the statuses that
changed. Failures never escape a tick. A single session failing degrades only
that session. Every session failing at once switches the tick to fallback
statuses and the loop to a slower interval.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta

from shepherd.config import MonitoringConfig
from shepherd.exceptions import AggregateCaptureFailure
from shepherd.logging import get_logger
from shepherd.models import (
    ActivityCategory,
    MonitoringStats,
    SessionCheckResult,
    SessionMonitoringState,
    SessionStatus,
    SessionTarget,
    StatusUpdate,
)
from shepherd.monitor.stats import MonitoringStatsCollector
from shepherd.monitor.terminal import TerminalMonitor
from shepherd.utils.clock import Clock, utc_now
from shepherd.utils.loops import RepeatingTask

__all__ = ["MonitoringScheduler", "StatusListener"]

logger = get_logger(__name__)

#: Called with (session_id, update) for every de-duplicated status change
StatusListener = Callable[[str, StatusUpdate], None]

WAITING_FOR_INPUT = "Waiting for input"
PROCESSING = "Processing..."
FALLBACK_DESCRIPTION = "Status from fallback monitoring"
MONITORING_UNAVAILABLE = "Session monitoring unavailable"


class MonitoringScheduler:
    """Self-rescheduling monitoring loop over a fixed set of sessions.

    Example:
        ```python
        scheduler = MonitoringScheduler(monitor, config.session_targets())
        unsubscribe = scheduler.subscribe(lambda sid, update: print(sid, update))
        scheduler.start()
        ...
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        monitor: TerminalMonitor,
        targets: Sequence[SessionTarget],
        *,
        config: MonitoringConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the scheduler.

        Args:
            monitor: Terminal monitor that captures and classifies sessions.
            targets: Sessions to monitor.
            config: Intervals, retry threshold and tuning bounds.
            clock: Time source.
        """
        self._monitor = monitor
        self._targets = tuple(targets)
        self._config = config or MonitoringConfig()
        self._clock = clock

        self._states: dict[str, SessionMonitoringState] = {}
        self._listeners: list[StatusListener] = []
        self._stats = MonitoringStatsCollector(self._config.duration_window)
        self._active_interval = self._config.active_interval_seconds
        self._idle_interval = self._config.idle_interval_seconds
        self._degraded = False
        self._loop: RepeatingTask | None = None

    @property
    def targets(self) -> tuple[SessionTarget, ...]:
        return self._targets

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running

    @property
    def is_degraded(self) -> bool:
        return self._degraded

    @property
    def active_interval(self) -> float:
        return self._active_interval

    @property
    def idle_interval(self) -> float:
        return self._idle_interval

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` for status changes.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """Start the loop. The first tick runs immediately."""
        if self.is_running:
            return
        self._loop = RepeatingTask("monitoring", self.run_tick, self.next_interval)
        self._loop.start()
        logger.info("monitoring_started", sessions=len(self._targets))

    async def stop(self) -> None:
        """Stop the loop, letting a tick in progress finish."""
        loop, self._loop = self._loop, None
        if loop is not None:
            await loop.stop()
            logger.info("monitoring_stopped", ticks=loop.iterations)

    def next_interval(self) -> float:
        """Delay before the next tick, in seconds."""
        if self._degraded:
            return min(
                self._idle_interval * 2,
                self._config.degraded_interval_ceiling_seconds,
            )
        if any(state.is_active for state in self._states.values()):
            return self._active_interval
        return self._idle_interval

    async def run_tick(self) -> list[StatusUpdate]:
        """Run one monitoring tick.

        Never raises. Unexpected errors are logged and counted as a failed
        check.

        Returns:
            The status updates that were broadcast.
        """
        started = time.perf_counter()
        success = False
        broadcast: list[StatusUpdate] = []
        try:
            now = self._clock()
            prior = {
                session_id: state.last_known_status
                for session_id, state in self._states.items()
            }
            try:
                results = await self._monitor.monitor_all(self._targets)
            except AggregateCaptureFailure as e:
                updates = self._apply_fallback(e, now)
                if not self._degraded:
                    logger.warning(
                        "monitoring_degraded",
                        failed_sessions=len(e.failures),
                        error=e.message,
                    )
                self._degraded = True
            else:
                updates = self._apply_results(results, now)
                if self._degraded:
                    logger.info("monitoring_restored")
                self._degraded = False
                success = True

            broadcast = [
                update
                for update in updates
                if update.differs_from(prior.get(update.session_id))
            ]
            self._broadcast(broadcast)
        except Exception:
            logger.exception("monitoring_tick_failed")
            broadcast = []
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            self._stats.record_check(duration_ms, success=success, at=self._clock())
        return broadcast

    def _state_for(self, session_id: str) -> SessionMonitoringState:
        state = self._states.get(session_id)
        if state is None:
            state = SessionMonitoringState()
            self._states[session_id] = state
        return state

    def _apply_results(
        self, results: Sequence[SessionCheckResult], now: datetime
    ) -> list[StatusUpdate]:
        updates: list[StatusUpdate] = []
        for result in results:
            state = self._state_for(result.session_id)
            state.last_check_time = now
            if result.captured:
                update = self._on_success(state, result, now)
            else:
                update = self._on_failure(
                    state,
                    result.session_id,
                    result.error or "capture failed",
                    now,
                )
            if update is not None:
                state.last_known_status = update
                updates.append(update)
        return updates

    def _on_success(
        self,
        state: SessionMonitoringState,
        result: SessionCheckResult,
        now: datetime,
    ) -> StatusUpdate:
        if state.consecutive_failures > 0:
            self._stats.recovered_errors += 1
            logger.info(
                "session_recovered",
                session_id=result.session_id,
                failures=state.consecutive_failures,
            )
        state.consecutive_failures = 0
        state.fallback_mode = False
        state.last_successful_check = now

        update = self._derive_status(state, result, now)
        state.is_active = update.status is SessionStatus.WORKING

        error = state.error_state
        if update.status is SessionStatus.ERROR:
            if not error.has_error:
                error.timestamp = now
            error.has_error = True
            error.message = update.description
        elif error.has_error:
            error.has_error = False
            error.message = None
            error.timestamp = None
            error.recovery_attempts += 1
        return update

    def _derive_status(
        self,
        state: SessionMonitoringState,
        result: SessionCheckResult,
        now: datetime,
    ) -> StatusUpdate:
        output = result.output
        activity = result.activity
        prior = state.last_known_status

        def status(
            label: SessionStatus,
            description: str | None,
            file_name: str | None = None,
            command: str | None = None,
        ) -> StatusUpdate:
            return StatusUpdate(
                session_id=result.session_id,
                status=label,
                description=description,
                timestamp=now,
                file_name=file_name,
                command=command,
                terminal_output=output,
            )

        if not output.strip():
            return status(SessionStatus.IDLE, WAITING_FOR_INPUT)

        if activity is not None:
            if activity.is_error:
                return status(
                    SessionStatus.ERROR,
                    activity.description,
                    activity.file_name,
                    activity.command,
                )
            error_text = self._monitor.detector.find_error(output)
            if error_text is not None:
                return status(SessionStatus.ERROR, f"Error detected: {error_text}")
            label = (
                SessionStatus.IDLE
                if activity.category is ActivityCategory.IDLE
                else SessionStatus.WORKING
            )
            return status(
                label, activity.description, activity.file_name, activity.command
            )

        if prior is not None and prior.status in (
            SessionStatus.WORKING,
            SessionStatus.IDLE,
        ):
            last_activity = self._monitor.last_activity(result.session_id)
            if not self._monitor.detector.timed_out(last_activity, now):
                return prior
            return status(SessionStatus.IDLE, WAITING_FOR_INPUT)

        if result.is_idle:
            return status(SessionStatus.IDLE, WAITING_FOR_INPUT)
        return status(SessionStatus.WORKING, PROCESSING)

    def _on_failure(
        self,
        state: SessionMonitoringState,
        session_id: str,
        message: str,
        now: datetime,
    ) -> StatusUpdate | None:
        state.consecutive_failures += 1
        self._stats.capture_failures += 1
        logger.warning(
            "session_check_failed",
            session_id=session_id,
            consecutive_failures=state.consecutive_failures,
            error=message,
        )
        if state.consecutive_failures < self._config.max_retries:
            return None
        return self._mark_offline(state, session_id, message, now)

    def _mark_offline(
        self,
        state: SessionMonitoringState,
        session_id: str,
        message: str,
        now: datetime,
    ) -> StatusUpdate:
        state.is_active = False
        description = (
            f"Session unreachable after {state.consecutive_failures} "
            f"consecutive failures: {message}"
        )
        error = state.error_state
        if not error.has_error:
            error.timestamp = now
        error.has_error = True
        error.message = description
        return StatusUpdate(
            session_id=session_id,
            status=SessionStatus.OFFLINE,
            description=description,
            timestamp=now,
        )

    def _apply_fallback(
        self, failure: AggregateCaptureFailure, now: datetime
    ) -> list[StatusUpdate]:
        self._stats.fallback_activations += 1
        grace = timedelta(seconds=self._config.fallback_grace_seconds)

        updates: list[StatusUpdate] = []
        for target in self._targets:
            session_id = target.session_id
            state = self._state_for(session_id)
            state.last_check_time = now
            state.fallback_mode = True
            state.consecutive_failures += 1
            self._stats.capture_failures += 1

            error = failure.failures.get(session_id)
            message = error.message if error is not None else failure.message

            if state.consecutive_failures >= self._config.max_retries:
                update = self._mark_offline(state, session_id, message, now)
            elif not self._config.graceful_degradation:
                continue
            elif (
                state.last_known_status is not None
                and state.last_successful_check is not None
                and now - state.last_successful_check <= grace
            ):
                update = replace(
                    state.last_known_status,
                    description=FALLBACK_DESCRIPTION,
                    timestamp=now,
                )
            else:
                state.is_active = False
                update = StatusUpdate(
                    session_id=session_id,
                    status=SessionStatus.OFFLINE,
                    description=MONITORING_UNAVAILABLE,
                    timestamp=now,
                )
            state.last_known_status = update
            updates.append(update)
        return updates

    def _broadcast(self, updates: Sequence[StatusUpdate]) -> None:
        for update in updates:
            logger.debug(
                "status_changed",
                session_id=update.session_id,
                status=update.status.value,
                description=update.description,
            )
            for listener in list(self._listeners):
                try:
                    listener(update.session_id, update)
                except Exception:
                    logger.exception(
                        "status_listener_failed", session_id=update.session_id
                    )

    def stats(self) -> MonitoringStats:
        """Current monitoring counters."""
        return self._stats.snapshot(
            active_sessions=sum(1 for s in self._states.values() if s.is_active),
            error_states=sum(
                1 for s in self._states.values() if s.error_state.has_error
            ),
        )

    def session_states(self) -> dict[str, SessionMonitoringState]:
        """Copies of the per-session monitoring state."""
        return {
            session_id: state.snapshot() for session_id, state in self._states.items()
        }

    def prune_error_states(self, now: datetime | None = None) -> list[str]:
        """Clear error states older than the maximum error age.

        Returns:
            Ids of the sessions whose error state was cleared.
        """
        current = now or self._clock()
        max_age = timedelta(seconds=self._config.max_error_age_seconds)
        pruned: list[str] = []
        for session_id, state in self._states.items():
            error = state.error_state
            if (
                error.has_error
                and error.timestamp is not None
                and current - error.timestamp > max_age
            ):
                error.has_error = False
                error.message = None
                error.timestamp = None
                state.consecutive_failures = 0
                pruned.append(session_id)
        if pruned:
            logger.info("error_states_pruned", sessions=pruned)
        return pruned

    def optimize_performance(self, now: datetime | None = None) -> None:
        """Retune intervals from recent tick durations and prune stale state."""
        cfg = self._config
        if self._stats.sample_count:
            average = self._stats.average_duration_ms()
            if average > cfg.slow_check_ms:
                factor = cfg.interval_scale_up
            elif average < cfg.fast_check_ms:
                factor = cfg.interval_scale_down
            else:
                factor = 1.0
            if factor != 1.0:
                self._active_interval = _clamp(
                    self._active_interval * factor,
                    cfg.active_interval_floor_seconds,
                    cfg.active_interval_ceiling_seconds,
                )
                self._idle_interval = _clamp(
                    self._idle_interval * factor,
                    cfg.idle_interval_floor_seconds,
                    cfg.idle_interval_ceiling_seconds,
                )
                logger.info(
                    "monitoring_intervals_tuned",
                    average_check_ms=round(average, 1),
                    active_interval=self._active_interval,
                    idle_interval=self._idle_interval,
                )

        current = now or self._clock()
        self.prune_error_states(current)
        self._monitor.prune(
            current, keep_sessions=[target.session_id for target in self._targets]
        )


def _clamp(value: float, floor: float, ceiling: float) -> float:
    return max(floor, min(ceiling, value))
