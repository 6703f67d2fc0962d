"""Idle and error detection over whole captures.

Unlike the classifier, which looks only at new output, the detector inspects
the full visible text and the time since the last detected activity.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timedelta

from shepherd import constants
from shepherd.logging import get_logger
from shepherd.monitor.patterns import PatternLibrary
from shepherd.utils.clock import Clock, utc_now

__all__ = ["IdleErrorDetector", "DEFAULT_ERROR_PATTERNS"]

logger = get_logger(__name__)

#: Error signatures checked against the full capture
DEFAULT_ERROR_PATTERNS: tuple[str, ...] = (
    r"(?:Error|Exception|Failed|Failure)(?::\s*[\w\s]+|\s+to\s+\w+)",
    r"(?:SyntaxError|TypeError|ReferenceError|RuntimeError|CompileError|"
    r"ImportError|AttributeError)",
    r"\b(?:ENOENT|EACCES|EPERM|ECONNREFUSED|ETIMEDOUT|EADDRINUSE|EMFILE)\b",
    r"\b(?:404|500|502|503|504)\s+(?:Error|Not Found|Internal Server Error|"
    r"Bad Gateway|Service Unavailable|Gateway Timeout)",
    r"\b(?:Fatal|Panic|Segmentation fault|Core dumped)\b",
    r"(?:Build failed|Compilation error|Link error|Make error)",
    r"(?:Connection refused|Database error|SQL error|Query failed)",
    r"(?:Network error|Connection timeout|DNS resolution failed|SSL error)",
)


class IdleErrorDetector:
    """Decide whether a session is idle and whether its output shows an error.

    Example:
        ```python
        detector = IdleErrorDetector(PatternLibrary())
        assert detector.is_idle("")
        assert detector.has_error("Error: ENOENT no such file")
        ```
    """

    def __init__(
        self,
        library: PatternLibrary | None = None,
        *,
        idle_timeout: timedelta = timedelta(seconds=constants.IDLE_TIMEOUT_SECONDS),
        error_patterns: Iterable[str] = DEFAULT_ERROR_PATTERNS,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the detector.

        Args:
            library: Source of the idle prompt markers.
            idle_timeout: Inactivity after which a session counts as idle.
            error_patterns: Regexes (case-insensitive) flagging error text.
            clock: Time source.
        """
        self._library = library or PatternLibrary()
        self._idle_timeout = idle_timeout
        self._error_patterns = tuple(
            re.compile(pattern, re.IGNORECASE) for pattern in error_patterns
        )
        self._clock = clock

    @property
    def idle_timeout(self) -> timedelta:
        return self._idle_timeout

    def is_idle(
        self,
        output: str,
        last_activity: datetime | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Whether the session looks idle.

        True for blank output, when a prompt marker is visible, or when the
        last activity is older than the idle timeout.
        """
        if not output.strip():
            return True
        if any(marker.matches(output) for marker in self._library.idle_markers):
            return True
        return self.timed_out(last_activity, now)

    def timed_out(
        self, last_activity: datetime | None, now: datetime | None = None
    ) -> bool:
        """Whether ``last_activity`` is older than the idle timeout."""
        if last_activity is None:
            return False
        current = now or self._clock()
        return current - last_activity > self._idle_timeout

    def has_error(self, output: str) -> bool:
        return self.find_error(output) is not None

    def find_error(self, output: str) -> str | None:
        """Return the first error excerpt found in ``output``, if any."""
        if not output:
            return None
        for pattern in self._error_patterns:
            match = pattern.search(output)
            if match:
                logger.debug("error_text_detected", pattern=pattern.pattern)
                return match.group(0).strip()
        return None
