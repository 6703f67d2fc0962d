"""Process-wide monitoring counters with a rolling duration window."""

from __future__ import annotations

import time
from collections import deque
from datetime import datetime

from shepherd import constants
from shepherd.models import MonitoringStats

__all__ = ["MonitoringStatsCollector"]


class MonitoringStatsCollector:
    """Collect tick counters and durations for :class:`MonitoringStats`.

    Durations are kept in a fixed-size rolling window, so the average reflects
    recent ticks only.
    """

    def __init__(self, window: int = constants.DURATION_WINDOW) -> None:
        self._durations: deque[float] = deque(maxlen=window)
        self._started = time.monotonic()
        self.total_checks = 0
        self.successful_checks = 0
        self.failed_checks = 0
        self.recovered_errors = 0
        self.capture_failures = 0
        self.fallback_activations = 0
        self.last_check_at: datetime | None = None

    @property
    def sample_count(self) -> int:
        return len(self._durations)

    def record_check(self, duration_ms: float, *, success: bool, at: datetime) -> None:
        """Record one finished tick."""
        self.total_checks += 1
        if success:
            self.successful_checks += 1
        else:
            self.failed_checks += 1
        self._durations.append(duration_ms)
        self.last_check_at = at

    def average_duration_ms(self) -> float:
        if not self._durations:
            return 0.0
        return sum(self._durations) / len(self._durations)

    def percentile_ms(self, percentile: int) -> float:
        """Linear-interpolated percentile (0-100) of the window."""
        values = sorted(self._durations)
        if not values:
            return 0.0
        k = (len(values) - 1) * percentile / 100
        floor = int(k)
        fraction = k - floor
        if floor + 1 < len(values):
            return values[floor] * (1 - fraction) + values[floor + 1] * fraction
        return values[floor]

    def snapshot(self, *, active_sessions: int, error_states: int) -> MonitoringStats:
        return MonitoringStats(
            total_checks=self.total_checks,
            successful_checks=self.successful_checks,
            failed_checks=self.failed_checks,
            average_check_duration_ms=self.average_duration_ms(),
            active_sessions=active_sessions,
            error_states=error_states,
            recovered_errors=self.recovered_errors,
            capture_failures=self.capture_failures,
            fallback_activations=self.fallback_activations,
            last_check_at=self.last_check_at,
            uptime_seconds=time.monotonic() - self._started,
        )
