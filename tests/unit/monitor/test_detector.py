"""Tests for IdleErrorDetector."""

from __future__ import annotations

from datetime import timedelta

import pytest

from shepherd.monitor.detector import IdleErrorDetector
from tests.fixtures.clock import START, ManualClock


@pytest.fixture
def detector(clock: ManualClock) -> IdleErrorDetector:
    return IdleErrorDetector(idle_timeout=timedelta(seconds=300), clock=clock)


class TestIsIdle:
    """Tests for idle detection."""

    @pytest.mark.parametrize("output", ["", "   \n\t"])
    def test_blank_output_is_idle(
        self, detector: IdleErrorDetector, output: str
    ) -> None:
        assert detector.is_idle(output)

    def test_prompt_marker_is_idle(self, detector: IdleErrorDetector) -> None:
        assert detector.is_idle("> \n? for shortcuts")

    def test_active_output_is_not_idle(self, detector: IdleErrorDetector) -> None:
        assert not detector.is_idle("$ npm test", last_activity=START)

    def test_idle_after_timeout(
        self, detector: IdleErrorDetector, clock: ManualClock
    ) -> None:
        clock.advance(seconds=301)

        assert detector.is_idle("$ npm test", last_activity=START)

    def test_not_timed_out_before_timeout(
        self, detector: IdleErrorDetector, clock: ManualClock
    ) -> None:
        clock.advance(seconds=299)

        assert not detector.timed_out(START)

    def test_unknown_last_activity_never_times_out(
        self, detector: IdleErrorDetector
    ) -> None:
        assert not detector.timed_out(None, START + timedelta(days=1))


class TestFindError:
    """Tests for error text detection."""

    @pytest.mark.parametrize(
        ("output", "expected"),
        [
            ("Error: ENOENT no such file", "Error: ENOENT no such file"),
            ("step 3\nBuild failed\n", "Build failed"),
            ("upstream said 502 Bad Gateway", "502 Bad Gateway"),
        ],
    )
    def test_finds_error_excerpt(
        self, detector: IdleErrorDetector, output: str, expected: str
    ) -> None:
        assert detector.find_error(output) == expected
        assert detector.has_error(output)

    @pytest.mark.parametrize("output", ["", "All tests passed", "$ ls"])
    def test_clean_output(self, detector: IdleErrorDetector, output: str) -> None:
        assert detector.find_error(output) is None

    def test_custom_patterns(self, clock: ManualClock) -> None:
        detector = IdleErrorDetector(error_patterns=[r"oops"], clock=clock)

        assert detector.find_error("OOPS happened") == "OOPS"
        assert detector.find_error("Error: ENOENT no such file") is None
