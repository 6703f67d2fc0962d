"""Activity classification of new session output.

The classifier works on the difference between two consecutive captures. It
asks the pattern library for the best match, extracts a file name and command
where it can, and renders a short description.
"""

from __future__ import annotations

import re

from shepherd import constants
from shepherd.exceptions import ClassificationError
from shepherd.models import ActivityCategory, ActivityResult
from shepherd.monitor.patterns import PatternLibrary
from shepherd.utils.clock import Clock, utc_now

__all__ = [
    "ActivityClassifier",
    "extract_file_name",
    "extract_command",
]

_SOURCE_SUFFIX = (
    r"(?:tsx?|jsx?|py|go|java|cpp|c|rs|php|rb|swift|kt|html|css|json|ya?ml|xml|md)"
)

# Narrow to broad; the first hit wins
_FILE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"Working with\s*[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"\b(?:Write|Edit|MultiEdit|Update|Read)\(([^)\s]+)\)"),
    re.compile(
        r"(?:fsWrite|strReplace|fsAppend).*?[\"']([^\"']+\."
        + _SOURCE_SUFFIX
        + r")[\"']",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:Creating|Writing to|Editing|Reading|Modifying)\s+"
        r"(?:file|script|component):\s*([\w\-./]+)",
        re.IGNORECASE,
    ),
    re.compile(r"touch\s+([\w\-./]+\." + _SOURCE_SUFFIX + r")\b", re.IGNORECASE),
    re.compile(r"\b([\w\-./]+\." + _SOURCE_SUFFIX + r")\b", re.IGNORECASE),
)

_COMMAND_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bBash\(([^)\n]+)\)"),
    re.compile(r"executeBash.*?command\s*[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"(?:Running|Executing|Starting):\s*([^\n\r]+)", re.IGNORECASE),
    re.compile(r"^\s*[$#>]\s+([\w\-./][^\n\r]*)", re.MULTILINE),
)

_MAX_COMMAND_LENGTH = 200

_DESCRIPTION_PREFIX = {
    ActivityCategory.CODING: "Writing code",
    ActivityCategory.FILE_OPERATION: "File operation",
    ActivityCategory.COMMAND_EXECUTION: "Executing command",
    ActivityCategory.THINKING: "Analyzing",
}


def extract_file_name(text: str) -> str | None:
    """Return the file name ``text`` refers to, if any."""
    for pattern in _FILE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1).rstrip(".")
    return None


def extract_command(text: str) -> str | None:
    """Return the shell command ``text`` shows being run, if any."""
    for pattern in _COMMAND_PATTERNS:
        match = pattern.search(text)
        if match:
            command = match.group(1).strip()
            if command:
                return command[:_MAX_COMMAND_LENGTH]
    return None


class ActivityClassifier:
    """Turn consecutive captures into :class:`~shepherd.models.ActivityResult`s.

    Example:
        ```python
        classifier = ActivityClassifier(PatternLibrary())
        result = classifier.classify("$ npm test\\n", previous="")
        assert result.category is ActivityCategory.COMMAND_EXECUTION
        assert result.command == "npm test"
        ```
    """

    def __init__(
        self,
        library: PatternLibrary | None = None,
        *,
        recent_lines: int = constants.RECENT_LINES,
        description_length: int = constants.DESCRIPTION_LENGTH,
        clock: Clock = utc_now,
    ) -> None:
        self._library = library or PatternLibrary()
        self._recent_lines = recent_lines
        self._description_length = description_length
        self._clock = clock

    @property
    def library(self) -> PatternLibrary:
        return self._library

    def extract_new_content(self, current: str, previous: str) -> str:
        """Return the part of ``current`` that was not in ``previous``.

        Appended output yields the appended suffix. A redraw, where
        ``previous`` is not a prefix of ``current``, yields the last
        ``recent_lines`` lines of ``current``.
        """
        if current.startswith(previous):
            return current[len(previous) :]
        lines = current.split("\n")
        return "\n".join(lines[-self._recent_lines :])

    def classify(
        self,
        current: str,
        previous: str = "",
        *,
        session_id: str | None = None,
    ) -> ActivityResult | None:
        """Classify what changed between two captures.

        Args:
            current: Latest captured text.
            previous: Capture before it ("" for the first observation).
            session_id: Session name for error context.

        Returns:
            None when nothing new appeared, otherwise the classification.

        Raises:
            ClassificationError: If a pattern matcher raised.
        """
        if current == previous:
            return None
        content = self.extract_new_content(current, previous)
        if not content.strip():
            return None
        return self.classify_text(content, session_id=session_id)

    def classify_text(
        self, content: str, *, session_id: str | None = None
    ) -> ActivityResult:
        """Classify ``content`` on its own, without diffing."""
        try:
            pattern = self._library.find_best_match(content)
        except Exception as e:
            raise ClassificationError(
                f"Pattern matching failed: {e}", session_id=session_id
            ) from e

        now = self._clock()
        if pattern is None:
            return ActivityResult(
                category=ActivityCategory.THINKING,
                description="Processing...",
                timestamp=now,
            )

        return ActivityResult(
            category=pattern.category,
            description=self.describe(pattern.category, content, pattern.is_error),
            timestamp=now,
            file_name=extract_file_name(content),
            command=extract_command(content),
            is_error=pattern.is_error,
        )

    def describe(
        self, category: ActivityCategory, content: str, is_error: bool = False
    ) -> str:
        """Render a one-line description for ``content``."""
        excerpt = " ".join(content.split())[: self._description_length].strip()
        if is_error:
            return f"Error detected: {excerpt}"
        prefix = _DESCRIPTION_PREFIX.get(category)
        if prefix is None:
            return "Waiting for input"
        return f"{prefix}: {excerpt}"
