"""Unit tests for time helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from shepherd.utils.clock import utc_now
from tests.fixtures.clock import START, ManualClock


def test_utc_now_is_aware() -> None:
    now = utc_now()

    assert now.tzinfo is UTC
    assert abs(datetime.now(UTC) - now) < timedelta(seconds=5)


def test_manual_clock_advances(clock: ManualClock) -> None:
    assert clock() == START

    clock.advance(minutes=5)

    assert clock() == START + timedelta(minutes=5)
