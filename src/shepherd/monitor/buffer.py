"""Bounded storage for captured session output.

Each session gets one :class:`CircularOutputBuffer`. Large items are compressed
by an :class:`OutputCompressor` before they are stored, so memory per buffer is
bounded by ``capacity * compression_threshold`` characters.

Raw captured text is additionally passed through :func:`truncate_output`
before it reaches the classifier.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from shepherd import constants

__all__ = [
    "BufferStats",
    "OutputCompressor",
    "CircularOutputBuffer",
    "importance_pattern",
    "truncate_output",
    "shrink_output",
]

_BLANK_LINES = re.compile(r"\n\s*\n")
_INLINE_WHITESPACE = re.compile(r"[ \t]+")


def importance_pattern(keywords: Iterable[str]) -> re.Pattern[str]:
    """Compile a case-insensitive pattern matching any of ``keywords``."""
    alternatives = "|".join(re.escape(word) for word in keywords if word)
    if not alternatives:
        # Matches nothing
        return re.compile(r"(?!x)x")
    return re.compile(f"(?:{alternatives})", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class BufferStats:
    """Usage statistics of one buffer.

    Attributes:
        capacity: Maximum number of entries.
        size: Entries currently stored.
        memory_usage: Sum of stored entry lengths in characters.
        reads: Calls to ``get_recent``.
        writes: Calls to ``add``.
        efficiency: reads / (reads + writes), 0.0 before any access.
        compressions: Entries that were compressed on the way in.
        compression_ratio: Average compressed/original length of those entries.
    """

    capacity: int
    size: int
    memory_usage: int
    reads: int
    writes: int
    efficiency: float
    compressions: int
    compression_ratio: float


class OutputCompressor:
    """Reduce long terminal output to its informative lines.

    Compression steps, applied to items longer than ``threshold``:

    1. Drop blank lines, collapse runs of spaces and tabs, and drop exact
       consecutive duplicate lines.
    2. If the result is still above ``keep_ratio * threshold``, keep only the
       lines matching the importance keywords, provided some match and they
       make up less than ``important_fraction`` of all lines. Otherwise keep
       the last ``threshold // 50`` lines.
    3. Cap the result at its last ``threshold`` characters.
    """

    def __init__(
        self,
        threshold: int = constants.COMPRESSION_THRESHOLD,
        *,
        keep_ratio: float = constants.COMPRESSION_KEEP_RATIO,
        important_fraction: float = constants.IMPORTANT_LINE_FRACTION,
        importance_keywords: Iterable[str] = constants.IMPORTANCE_KEYWORDS,
    ) -> None:
        self.threshold = threshold
        self.keep_ratio = keep_ratio
        self.important_fraction = important_fraction
        self._important = importance_pattern(importance_keywords)

    def should_compress(self, text: str) -> bool:
        return len(text) > self.threshold

    def compress(self, text: str) -> str:
        collapsed = _BLANK_LINES.sub("\n", text)
        lines: list[str] = []
        for raw_line in collapsed.split("\n"):
            line = _INLINE_WHITESPACE.sub(" ", raw_line)
            if lines and lines[-1] == line:
                continue
            lines.append(line)

        result = "\n".join(lines)
        if len(result) > self.threshold * self.keep_ratio:
            important = [line for line in lines if self._important.search(line)]
            if important and len(important) < len(lines) * self.important_fraction:
                result = "\n".join(important)
            else:
                keep = max(1, self.threshold // 50)
                result = "\n".join(lines[-keep:])

        if len(result) > self.threshold:
            result = result[-self.threshold :]
        return result


class CircularOutputBuffer:
    """Fixed-capacity ring of output snapshots.

    Adding to a full buffer overwrites the oldest entry.

    Example:
        ```python
        buffer = CircularOutputBuffer(capacity=3)
        for text in ("a", "b", "c", "d"):
            buffer.add(text)
        assert buffer.get_recent(3) == ["b", "c", "d"]
        ```
    """

    def __init__(
        self,
        capacity: int = constants.BUFFER_CAPACITY,
        *,
        compressor: OutputCompressor | None = None,
    ) -> None:
        """Initialize the buffer.

        Args:
            capacity: Maximum number of entries (at least 1).
            compressor: Compressor for oversized entries, or None to store
                entries unchanged.

        Raises:
            ValueError: If ``capacity`` is below 1.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._compressor = compressor
        self._slots: list[str | None] = [None] * capacity
        self._head = 0
        self._size = 0
        self._memory = 0
        self._reads = 0
        self._writes = 0
        self._compressions = 0
        self._ratio_total = 0.0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def memory_usage(self) -> int:
        """Sum of the lengths of stored entries, in characters."""
        return self._memory

    @property
    def efficiency(self) -> float:
        accesses = self._reads + self._writes
        return self._reads / accesses if accesses else 0.0

    def add(self, item: str) -> None:
        """Store ``item``, evicting the oldest entry when full."""
        if self._compressor is not None and self._compressor.should_compress(item):
            compressed = self._compressor.compress(item)
            self._compressions += 1
            self._ratio_total += len(compressed) / len(item)
            item = compressed

        evicted = self._slots[self._head]
        if evicted is not None:
            self._memory -= len(evicted)
        self._slots[self._head] = item
        self._memory += len(item)
        self._head = (self._head + 1) % self._capacity
        self._size = min(self._size + 1, self._capacity)
        self._writes += 1

    def get_recent(self, count: int | None = None) -> list[str]:
        """Return up to ``count`` newest entries, oldest first."""
        self._reads += 1
        wanted = self._size if count is None else min(max(count, 0), self._size)
        start = (self._head - wanted) % self._capacity
        entries: list[str] = []
        for offset in range(wanted):
            entry = self._slots[(start + offset) % self._capacity]
            assert entry is not None
            entries.append(entry)
        return entries

    def latest(self) -> str | None:
        if self._size == 0:
            return None
        return self._slots[(self._head - 1) % self._capacity]

    def clear(self) -> None:
        """Drop all entries. Statistics are kept."""
        self._slots = [None] * self._capacity
        self._head = 0
        self._size = 0
        self._memory = 0

    def stats(self) -> BufferStats:
        return BufferStats(
            capacity=self._capacity,
            size=self._size,
            memory_usage=self._memory,
            reads=self._reads,
            writes=self._writes,
            efficiency=self.efficiency,
            compressions=self._compressions,
            compression_ratio=(
                self._ratio_total / self._compressions if self._compressions else 1.0
            ),
        )

    def __len__(self) -> int:
        return self._size


def truncate_output(
    output: str,
    max_lines: int = constants.MAX_OUTPUT_LINES,
    chars_per_line: int = constants.CHARS_PER_LINE,
) -> str:
    """Bound raw captured text by line count and character budget.

    Keeps the last ``max_lines`` lines. If the remainder is still longer than
    ``max_lines * chars_per_line`` characters (very long single lines), only
    the tail of that size is kept, prefixed by a truncation marker.
    """
    lines = output.split("\n")
    if len(lines) > max_lines:
        output = "\n".join(lines[-max_lines:])

    budget = max_lines * chars_per_line
    if len(output) > budget:
        output = f"{constants.TRUNCATION_MARKER}\n{output[-budget:]}"
    return output


def shrink_output(output: str, ratio: float, important: re.Pattern[str]) -> str:
    """Keep roughly ``ratio`` of the lines of ``output``.

    Half of the kept lines are the most recent ones; the rest are the latest
    earlier lines matching ``important``. Line order is preserved.
    """
    lines = output.split("\n")
    target = max(1, int(len(lines) * ratio))
    if target >= len(lines):
        return output

    keep_recent = max(1, target // 2)
    recent_start = len(lines) - keep_recent
    room = target - keep_recent
    important_indexes = [
        index for index in range(recent_start) if important.search(lines[index])
    ]
    kept = (important_indexes[-room:] if room > 0 else []) + list(
        range(recent_start, len(lines))
    )
    return "\n".join(lines[index] for index in kept)
