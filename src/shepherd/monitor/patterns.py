"""Ordered pattern table for activity classification.

Each :class:`~shepherd.models.ActivityPattern` pairs a predicate with an
activity category and a priority. The library answers "which pattern best
describes this text" by scanning the table in order:

1. Error patterns, always first regardless of their priority
2. Everything else by descending priority
3. Registration order among equal priorities

Default priority tiers (high to low):

==========  ===========================================
100-98      error markers (classified as idle, ``is_error``)
90-89       explicit file creation / modification phrasing
80-78       other file operations
62-58       source-syntax tokens
42-39       shell and command execution
33-30       analysing / planning phrasing
10-9        prompt and idle markers
==========  ===========================================
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from shepherd.models import ActivityCategory, ActivityPattern, Matcher

__all__ = [
    "PatternLibrary",
    "regex_matcher",
    "default_patterns",
]


def regex_matcher(
    pattern: str | re.Pattern[str], flags: int = re.IGNORECASE
) -> Matcher:
    """Build a matcher predicate from a regular expression.

    Args:
        pattern: Regex source or an already compiled pattern.
        flags: Flags used when ``pattern`` is a string.

    Returns:
        A predicate that is true when the regex matches anywhere in the text.
    """
    if isinstance(pattern, re.Pattern):
        compiled = pattern
    else:
        compiled = re.compile(pattern, flags)

    def matches(text: str) -> bool:
        return compiled.search(text) is not None

    return matches


def _pattern(
    name: str,
    regex: str,
    category: ActivityCategory,
    priority: int,
    *,
    flags: int = re.IGNORECASE,
    is_error: bool = False,
) -> ActivityPattern:
    return ActivityPattern(
        matcher=regex_matcher(regex, flags),
        category=category,
        priority=priority,
        name=name,
        is_error=is_error,
    )


def default_patterns() -> list[ActivityPattern]:
    """Return the built-in pattern table in registration order."""
    coding = ActivityCategory.CODING
    file_op = ActivityCategory.FILE_OPERATION
    command = ActivityCategory.COMMAND_EXECUTION
    thinking = ActivityCategory.THINKING
    idle = ActivityCategory.IDLE
    multiline = re.IGNORECASE | re.MULTILINE

    return [
        # Errors
        _pattern(
            "error_message",
            r"(?:Error|Exception|Failed|Failure)(?::\s*[\w\s]+|\s+to\s+\w+)",
            idle,
            100,
            is_error=True,
        ),
        _pattern(
            "error_type",
            r"(?:SyntaxError|TypeError|ReferenceError|RuntimeError|CompileError)",
            idle,
            99,
            is_error=True,
        ),
        _pattern(
            "error_errno",
            r"\b(?:ENOENT|EACCES|EPERM|ECONNREFUSED|ETIMEDOUT)\b",
            idle,
            98,
            is_error=True,
        ),
        # Authoring files
        _pattern(
            "file_authoring",
            r"(?:Creating|Writing\s+to|Editing|Modifying)\s+"
            r"(?:file|script|component):\s*[\w\-./]+",
            coding,
            90,
        ),
        _pattern(
            "write_tool",
            r"\b(?:fsWrite|strReplace|fsAppend|Write|Edit|MultiEdit|Update)\(\s*"
            r"[\w\-./]*\.(?:tsx?|jsx?|py|go|java|cpp|c|rs|php|rb|swift|kt)\b",
            coding,
            89,
            flags=0,
        ),
        # Other file operations
        _pattern(
            "file_changed",
            r"\b(?:File|Directory)\s+(?:created|updated|deleted|moved|copied)",
            file_op,
            80,
        ),
        _pattern(
            "file_moving",
            r"(?:Creating|Deleting|Moving|Copying)\s+"
            r"(?:file|directory|folder|temporary\s+files)",
            file_op,
            80,
        ),
        _pattern(
            "file_tool",
            r"\b(?:listDirectory|readFile|deleteFile|fileSearch|Read|Glob|LS)\(",
            file_op,
            79,
            flags=0,
        ),
        _pattern(
            "file_shell",
            r"(?:^|[\s$>])(?:mkdir|touch|cp|mv|rm|chmod|chown)\s+[\w\-./]+",
            file_op,
            78,
            flags=multiline,
        ),
        # Source syntax
        _pattern(
            "code_fence_language",
            r"```(?:typescript|javascript|python|go|java|cpp|rust|php|ruby|swift|"
            r"kotlin|html|css|sql|json|yaml|xml)",
            coding,
            62,
        ),
        _pattern(
            "code_fence", r"```[\w]*\n(?:.*\n)*?```", coding, 61, flags=re.DOTALL
        ),
        _pattern(
            "declaration",
            r"\b(?:function|def|class|interface|type|enum|struct|impl|trait)\s+\w+",
            coding,
            60,
        ),
        _pattern(
            "import",
            r"^\s*(?:import|from|require|include|using|package)\s+[\w.\-/@'\"]+",
            coding,
            59,
            flags=multiline,
        ),
        _pattern(
            "modifier",
            r"\b(?:export|public|private|protected|static|async|await|const|let|var)"
            r"\s+(?!me\b|us\b)[A-Za-z_$][\w$]*",
            coding,
            58,
        ),
        # Commands
        _pattern(
            "tool_command",
            r"\b(?:npm|yarn|pnpm|pip|python|node|java|mvn|gradle|cargo|composer|"
            r"git|docker|kubectl|terraform|ansible-playbook|ansible|pytest|make)"
            r"\s+[\w\-.]+",
            command,
            42,
        ),
        _pattern(
            "running",
            r"(?:Running|Executing|Starting):\s*[\w\-./]+",
            command,
            41,
        ),
        _pattern(
            "shell_prompt",
            r"^\s*(?:\$|#|>)\s+[\w\-./]+",
            command,
            40,
            flags=multiline,
        ),
        _pattern("bash_tool", r"(?:executeBash|Bash\()", command, 39, flags=0),
        # Thinking
        _pattern(
            "intent",
            r"(?:Let me|I'll|I need to|I should|I will)\s+"
            r"(?:analyze|check|review|examine|investigate)",
            thinking,
            33,
        ),
        _pattern(
            "analysing",
            r"^\s*(?:Analyzing|Checking|Reviewing|Examining|Investigating|Looking at)",
            thinking,
            32,
            flags=multiline,
        ),
        _pattern(
            "sequencing",
            r"(?:First|Next|Then|Now|Finally),?\s+(?:I'll|let me|we need to)",
            thinking,
            31,
        ),
        _pattern(
            "planning",
            r"(?:Understanding|Considering|Planning|Designing|Thinking about)",
            thinking,
            30,
        ),
        # Prompts
        _pattern("human_prompt", r"Human:\s*$", idle, 10, flags=multiline),
        _pattern("waiting", r"Waiting for (?:input|response|user)", idle, 10),
        _pattern("shortcuts_hint", r"\?\s+for\s+shortcuts", idle, 9),
        _pattern("press_key", r"Press\s+(?:Enter|any key|Ctrl\+C)", idle, 9),
    ]


class PatternLibrary:
    """Priority-ordered table of activity patterns.

    Example:
        ```python
        library = PatternLibrary()
        best = library.find_best_match("Running: npm test")
        assert best is not None and best.category is ActivityCategory.COMMAND_EXECUTION
        ```
    """

    def __init__(self, patterns: Iterable[ActivityPattern] | None = None) -> None:
        """Initialize the library.

        Args:
            patterns: Initial table. Defaults to :func:`default_patterns`.
        """
        self._registered: list[ActivityPattern] = list(
            default_patterns() if patterns is None else patterns
        )
        self._ordered: tuple[ActivityPattern, ...] | None = None

    @property
    def patterns(self) -> tuple[ActivityPattern, ...]:
        """All patterns in matching order."""
        if self._ordered is None:
            # sorted() is stable, so equal keys keep registration order
            self._ordered = tuple(
                sorted(
                    self._registered,
                    key=lambda p: (0 if p.is_error else 1, -p.priority),
                )
            )
        return self._ordered

    @property
    def error_patterns(self) -> tuple[ActivityPattern, ...]:
        return tuple(p for p in self.patterns if p.is_error)

    @property
    def idle_markers(self) -> tuple[ActivityPattern, ...]:
        """Non-error patterns of the idle category (prompts, waiting hints)."""
        return tuple(
            p
            for p in self.patterns
            if p.category is ActivityCategory.IDLE and not p.is_error
        )

    def register(self, pattern: ActivityPattern) -> None:
        """Append a pattern to the table."""
        self._registered.append(pattern)
        self._ordered = None

    def remove_category(self, category: ActivityCategory) -> int:
        """Remove every pattern of ``category``.

        Returns:
            Number of patterns removed.
        """
        before = len(self._registered)
        self._registered = [p for p in self._registered if p.category is not category]
        self._ordered = None
        return before - len(self._registered)

    def patterns_for(self, category: ActivityCategory) -> list[ActivityPattern]:
        """Patterns of one category, in matching order."""
        return [p for p in self.patterns if p.category is category]

    def find_best_match(self, text: str) -> ActivityPattern | None:
        """Return the first pattern in matching order that matches ``text``."""
        for pattern in self.patterns:
            if pattern.matches(text):
                return pattern
        return None

    def stats(self) -> dict[ActivityCategory, int]:
        """Count of registered patterns per category."""
        counts = {category: 0 for category in ActivityCategory}
        for pattern in self._registered:
            counts[pattern.category] += 1
        return counts

    def __len__(self) -> int:
        return len(self._registered)
