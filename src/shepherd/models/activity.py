"""Activity classification models.

Frozen dataclasses describing how a fragment of terminal text is classified:
the pattern table entries and the result produced for new output.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

__all__ = [
    "ActivityCategory",
    "ActivityPattern",
    "ActivityResult",
    "Matcher",
]

#: Predicate deciding whether a pattern applies to a piece of text
Matcher = Callable[[str], bool]


class ActivityCategory(str, Enum):
    """Coarse classification of what a session is doing.

    Attributes:
        CODING: Writing or editing source code.
        FILE_OPERATION: Reading, copying, moving or deleting files.
        COMMAND_EXECUTION: Running shell commands, builds or tests.
        THINKING: Analysing or planning without visible side effects.
        IDLE: Waiting at a prompt. Error matches also land here.
    """

    CODING = "coding"
    FILE_OPERATION = "file_operation"
    COMMAND_EXECUTION = "command_execution"
    THINKING = "thinking"
    IDLE = "idle"


@dataclass(frozen=True, slots=True)
class ActivityPattern:
    """One row of the pattern table.

    Attributes:
        matcher: Predicate applied to candidate text.
        category: Category assigned when the matcher hits.
        priority: Higher priority wins; ties keep registration order.
        name: Short identifier used in logs and statistics.
        is_error: Error patterns are consulted before all others.
    """

    matcher: Matcher
    category: ActivityCategory
    priority: int
    name: str = ""
    is_error: bool = False

    def matches(self, text: str) -> bool:
        return self.matcher(text)


@dataclass(frozen=True, slots=True)
class ActivityResult:
    """Classification of newly observed session output.

    Only produced when the captured text differs from the previous capture.

    Attributes:
        category: Detected activity category.
        description: Human-readable summary, e.g. "Writing code: def main()".
        timestamp: When the activity was observed (UTC).
        file_name: File the session appears to be working on.
        command: Shell command the session appears to be running.
        is_error: True when an error pattern produced this result.
    """

    category: ActivityCategory
    description: str
    timestamp: datetime
    file_name: str | None = None
    command: str | None = None
    is_error: bool = False
