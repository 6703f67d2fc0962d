"""Tests for output buffers, compression and truncation."""

from __future__ import annotations

import pytest

from shepherd import constants
from shepherd.monitor.buffer import (
    CircularOutputBuffer,
    OutputCompressor,
    importance_pattern,
    shrink_output,
    truncate_output,
)


class TestCircularOutputBuffer:
    """Tests for CircularOutputBuffer."""

    def test_evicts_oldest_when_full(self) -> None:
        buffer = CircularOutputBuffer(capacity=3)
        for text in ("a", "b", "c", "d"):
            buffer.add(text)

        assert buffer.get_recent(3) == ["b", "c", "d"]
        assert len(buffer) == 3
        assert buffer.memory_usage == 3

    def test_get_recent_caps_count(self) -> None:
        buffer = CircularOutputBuffer(capacity=5)
        buffer.add("one")
        buffer.add("two")

        assert buffer.get_recent(10) == ["one", "two"]
        assert buffer.get_recent(1) == ["two"]
        assert buffer.get_recent(0) == []
        assert buffer.get_recent() == ["one", "two"]

    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError, match="capacity"):
            CircularOutputBuffer(capacity=0)

    def test_latest(self) -> None:
        buffer = CircularOutputBuffer(capacity=2)
        assert buffer.latest() is None

        buffer.add("x")
        buffer.add("y")
        buffer.add("z")

        assert buffer.latest() == "z"

    def test_clear_keeps_statistics(self) -> None:
        buffer = CircularOutputBuffer(capacity=2)
        buffer.add("abc")
        buffer.get_recent()

        buffer.clear()
        stats = buffer.stats()

        assert len(buffer) == 0
        assert stats.memory_usage == 0
        assert stats.writes == 1
        assert stats.reads == 1
        assert stats.efficiency == 0.5

    def test_compresses_large_items(self) -> None:
        buffer = CircularOutputBuffer(
            capacity=2, compressor=OutputCompressor(threshold=100)
        )
        noisy = "\n".join(f"noise line {i:03d} padding" for i in range(40))

        buffer.add(noisy)
        stats = buffer.stats()

        assert stats.compressions == 1
        assert stats.compression_ratio < 1.0
        assert buffer.memory_usage <= 100


class TestOutputCompressor:
    """Tests for OutputCompressor."""

    def test_collapses_blank_lines_whitespace_and_duplicates(self) -> None:
        compressor = OutputCompressor(threshold=100)

        assert compressor.compress("a\n\n\nb\nb\n  c   d") == "a\nb\n c d"

    def test_keeps_important_lines(self) -> None:
        compressor = OutputCompressor(threshold=100)
        lines = [f"noise {i:03d} xxxxxxxxxx" for i in range(30)]
        lines.insert(15, "error: boom")

        assert compressor.compress("\n".join(lines)) == "error: boom"

    def test_keeps_recent_lines_without_important_ones(self) -> None:
        compressor = OutputCompressor(threshold=100)
        lines = [f"noise {i:03d} xxxxxxxxxx" for i in range(30)]

        result = compressor.compress("\n".join(lines))

        assert result == "noise 028 xxxxxxxxxx\nnoise 029 xxxxxxxxxx"

    def test_should_compress(self) -> None:
        compressor = OutputCompressor(threshold=100)

        assert compressor.should_compress("x" * 101)
        assert not compressor.should_compress("x" * 100)


class TestTruncateOutput:
    """Tests for truncate_output."""

    def test_keeps_last_lines(self) -> None:
        output = "\n".join(str(i) for i in range(300))

        result = truncate_output(output, max_lines=200)

        assert result.split("\n") == [str(i) for i in range(100, 300)]

    def test_long_single_line_is_cut_with_marker(self) -> None:
        result = truncate_output("x" * 50_000, max_lines=10, chars_per_line=100)

        assert result.startswith(constants.TRUNCATION_MARKER)
        assert len(result) == len(constants.TRUNCATION_MARKER) + 1 + 1000

    def test_short_output_unchanged(self) -> None:
        assert truncate_output("$ ls\nfile.txt") == "$ ls\nfile.txt"


class TestShrinkOutput:
    """Tests for shrink_output and importance_pattern."""

    def test_keeps_recent_and_important_lines_in_order(self) -> None:
        lines = ["l0", "error a", "l2", "l3", "error b", "l5", "l6", "l7", "l8", "l9"]

        result = shrink_output("\n".join(lines), 0.5, importance_pattern(["error"]))

        assert result == "error a\nerror b\nl8\nl9"

    def test_single_line_unchanged(self) -> None:
        assert shrink_output("only", 0.5, importance_pattern(["error"])) == "only"

    def test_empty_keyword_list_matches_nothing(self) -> None:
        pattern = importance_pattern([])

        assert pattern.search("error") is None
        assert pattern.search("") is None
