"""Tests for RateLimitDetector."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from shepherd.tasks import RateLimitDetector
from tests.fixtures.clock import START

TOKYO_MESSAGE = "Claude usage limit reached. Your limit will reset at 7am (Asia/Tokyo)"


@pytest.fixture
def detector() -> RateLimitDetector:
    return RateLimitDetector()


class TestDetect:
    """Tests for recognizing rate-limit messages."""

    def test_returns_matching_line(self, detector: RateLimitDetector) -> None:
        text = f"$ claude\n{TOKYO_MESSAGE}\n> "

        assert detector.detect(text) == TOKYO_MESSAGE

    @pytest.mark.parametrize(
        "text",
        [
            "Rate limit exceeded, slow down",
            "usage limit reached. Your limit will reset",
        ],
    )
    def test_other_signatures(self, detector: RateLimitDetector, text: str) -> None:
        assert detector.detect(text) is not None

    def test_ordinary_output(self, detector: RateLimitDetector) -> None:
        assert detector.detect("Creating file: app.ts") is None

    def test_custom_signatures(self) -> None:
        detector = RateLimitDetector([r"quota\s+exhausted"])

        assert detector.detect("Quota exhausted for today") is not None
        assert detector.detect(TOKYO_MESSAGE) is None


class TestParseResetTime:
    """Tests for resolving "reset at" times to their next occurrence."""

    def test_tokyo_reset_is_next_morning(self, detector: RateLimitDetector) -> None:
        # 12:00 UTC is 21:00 in Tokyo, so 7am is tomorrow there
        reset = detector.parse_reset_time(TOKYO_MESSAGE, START)

        assert reset == datetime(2026, 1, 15, 22, 0, tzinfo=UTC)

    def test_reset_later_today(self, detector: RateLimitDetector) -> None:
        # 20:00 UTC on the 14th is 05:00 on the 15th in Tokyo
        now = datetime(2026, 1, 14, 20, 0, tzinfo=UTC)

        assert detector.parse_reset_time(TOKYO_MESSAGE, now) == datetime(
            2026, 1, 14, 22, 0, tzinfo=UTC
        )

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("reset at 3pm", datetime(2026, 1, 15, 15, 0, tzinfo=UTC)),
            ("reset at 3:30pm (UTC)", datetime(2026, 1, 15, 15, 30, tzinfo=UTC)),
            ("reset at 12am", datetime(2026, 1, 16, 0, 0, tzinfo=UTC)),
            ("reset at 18:45", datetime(2026, 1, 15, 18, 45, tzinfo=UTC)),
            ("reset at 12:00", datetime(2026, 1, 16, 12, 0, tzinfo=UTC)),
        ],
    )
    def test_default_zone(
        self, detector: RateLimitDetector, text: str, expected: datetime
    ) -> None:
        assert detector.parse_reset_time(text, START) == expected

    def test_unknown_zone_uses_default(self, detector: RateLimitDetector) -> None:
        reset = detector.parse_reset_time("reset at 7am (Mars/Olympus)", START)

        assert reset == datetime(2026, 1, 16, 7, 0, tzinfo=UTC)

    def test_configured_default_zone(self) -> None:
        detector = RateLimitDetector(default_timezone="Asia/Tokyo")

        reset = detector.parse_reset_time("limit will reset at 7am", START)

        assert reset == datetime(2026, 1, 15, 22, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "text", ["reset at 13pm", "reset at 25:00", "reset at 7:75", "no time here"]
    )
    def test_invalid_or_missing_time(
        self, detector: RateLimitDetector, text: str
    ) -> None:
        assert detector.parse_reset_time(text, START) is None


class TestComputeResumeTime:
    """Tests for the resume time fallback chain."""

    def test_prefers_reset_time(self, detector: RateLimitDetector) -> None:
        text = f"{TOKYO_MESSAGE}, or try again in 5 minutes"

        assert detector.compute_resume_time(text, START) == datetime(
            2026, 1, 15, 22, 0, tzinfo=UTC
        )

    @pytest.mark.parametrize(
        ("text", "delay"),
        [
            ("Rate limit exceeded. Try again in 30 minutes", timedelta(minutes=30)),
            ("rate limit reached, try again in 2 hours", timedelta(hours=2)),
            ("try again in 45 secs", timedelta(seconds=45)),
        ],
    )
    def test_relative_delay(
        self, detector: RateLimitDetector, text: str, delay: timedelta
    ) -> None:
        assert detector.compute_resume_time(text, START) == START + delay

    def test_fallback_delay(self) -> None:
        detector = RateLimitDetector(fallback_delay=timedelta(minutes=90))

        resume = detector.compute_resume_time("Claude usage limit reached", START)

        assert resume == START + timedelta(minutes=90)
