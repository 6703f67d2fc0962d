"""Rate-limit detection and resume-time computation.

Agents print a usage-limit message when they run out of quota. The message
usually carries a reset time of day with a zone, e.g.
``"Your limit will reset at 7am (Asia/Tokyo)"``, and sometimes a relative
phrase such as ``"try again in 30 minutes"``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shepherd import constants
from shepherd.logging import get_logger

__all__ = ["RateLimitDetector", "DEFAULT_SIGNATURES"]

logger = get_logger(__name__)

DEFAULT_SIGNATURES: tuple[str, ...] = constants.RATE_LIMIT_SIGNATURES

_RESET_AT = re.compile(
    r"reset\s*at\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*(?:\(([\w/+\-]+)\))?",
    re.IGNORECASE,
)
_TRY_AGAIN_IN = re.compile(
    r"try\s*again\s*in\s*(\d+)\s*(minutes?|mins?|hours?|hrs?|seconds?|secs?)",
    re.IGNORECASE,
)

_MAX_MESSAGE_LENGTH = 300


class RateLimitDetector:
    """Recognize rate-limit messages and work out when to resume.

    Example:
        ```python
        detector = RateLimitDetector()
        text = "Claude usage limit reached. Your limit will reset at 7am (Asia/Tokyo)"
        if detector.detect(text):
            resume_at = detector.compute_resume_time(text, utc_now())
        ```
    """

    def __init__(
        self,
        signatures: Iterable[str] = DEFAULT_SIGNATURES,
        *,
        default_timezone: str = "UTC",
        fallback_delay: timedelta = timedelta(
            seconds=constants.RATE_LIMIT_FALLBACK_SECONDS
        ),
    ) -> None:
        """Initialize the detector.

        Args:
            signatures: Regexes (case-insensitive) that identify a limit message.
            default_timezone: Zone for reset times that name none, or an
                unknown one.
            fallback_delay: Delay used when no resume time can be parsed.
        """
        self._signatures = tuple(re.compile(s, re.IGNORECASE) for s in signatures)
        self._default_zone = _zone(default_timezone) or timezone.utc
        self._fallback_delay = fallback_delay

    def detect(self, text: str) -> str | None:
        """Return the matching excerpt if ``text`` contains a rate-limit message."""
        for signature in self._signatures:
            match = signature.search(text)
            if match:
                line_start = text.rfind("\n", 0, match.start()) + 1
                line_end = text.find("\n", match.end())
                line = text[line_start : line_end if line_end != -1 else None]
                return line.strip()[:_MAX_MESSAGE_LENGTH]
        return None

    def parse_reset_time(self, text: str, now: datetime) -> datetime | None:
        """Resolve an embedded "reset at <time> (<zone>)" to its next occurrence.

        Args:
            text: Text containing the reset phrase.
            now: Current time (aware).

        Returns:
            The reset instant in UTC, or None if ``text`` has no valid reset time.
        """
        match = _RESET_AT.search(text)
        if not match:
            return None

        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        meridiem = (match.group(3) or "").lower()
        if meridiem:
            if not 1 <= hour <= 12:
                return None
            hour = hour % 12 + (12 if meridiem == "pm" else 0)
        if hour > 23 or minute > 59:
            return None

        zone_name = match.group(4)
        zone = self._default_zone
        if zone_name:
            resolved = _zone(zone_name)
            if resolved is None:
                logger.warning("rate_limit_zone_unknown", zone=zone_name)
            else:
                zone = resolved

        local_now = now.astimezone(zone)
        candidate = datetime.combine(local_now.date(), time(hour, minute), zone)
        if candidate <= local_now:
            candidate = datetime.combine(
                local_now.date() + timedelta(days=1), time(hour, minute), zone
            )
        return candidate.astimezone(timezone.utc)

    def parse_relative_delay(self, text: str) -> timedelta | None:
        """Parse "try again in N minutes|hours|seconds"."""
        match = _TRY_AGAIN_IN.search(text)
        if not match:
            return None
        amount = int(match.group(1))
        unit = match.group(2).lower()
        if unit.startswith("h"):
            return timedelta(hours=amount)
        if unit.startswith("s"):
            return timedelta(seconds=amount)
        return timedelta(minutes=amount)

    def compute_resume_time(self, text: str, now: datetime) -> datetime:
        """When dispatch may resume after the limit in ``text``.

        Tries the reset time of day, then a relative delay, then the fallback
        delay.
        """
        reset_at = self.parse_reset_time(text, now)
        if reset_at is not None:
            return reset_at
        delay = self.parse_relative_delay(text)
        if delay is not None:
            return now + delay
        logger.info(
            "rate_limit_reset_unparsed",
            fallback_seconds=self._fallback_delay.total_seconds(),
        )
        return now + self._fallback_delay


def _zone(name: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None
