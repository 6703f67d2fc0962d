"""Tests for isolating fresh session output."""

from __future__ import annotations

import pytest

from shepherd.tasks.observation import appended_text, strip_echo


class TestAppendedText:
    """Tests for appended_text."""

    @pytest.mark.parametrize(
        ("previous", "current", "expected"),
        [
            ("$ make\n", "$ make\nbuilding\n", "building\n"),
            ("", "first screen", "first screen"),
            ("a\nb\nc\n", "b\nc\nd\ne\n", "d\ne"),
            ("a\nb\nc\n", "c\nd\n", "d"),
        ],
    )
    def test_new_lines(self, previous: str, current: str, expected: str) -> None:
        assert appended_text(previous, current) == expected

    def test_unrelated_redraw_yields_nothing(self) -> None:
        assert appended_text("a\nb\n", "Task completed\nx\n") == ""

    def test_pane_padding_is_ignored(self) -> None:
        previous = "a\nb\n\n\n\n"
        current = "a\nb\nc\n\n\n"

        assert appended_text(previous, current) == "c"

    def test_longest_overlap_wins(self) -> None:
        previous = "x\ndone\ny\ndone\n"
        current = "y\ndone\nnext\n"

        assert appended_text(previous, current) == "next"

    def test_grown_prompt_line_contributes_its_tail(self) -> None:
        previous = "log 1\nlog 2\n>"
        current = "log 2\n> deploy\nok\n"

        assert appended_text(previous, current) == " deploy\nok"

    def test_single_grown_line_is_not_an_overlap(self) -> None:
        assert appended_text("a\n>", "> all tasks done\n") == ""


class TestStripEcho:
    """Tests for strip_echo."""

    MESSAGE = "\n".join(
        [
            "Start the following new project.",
            "",
            "Details:",
            "Make sure the application is running on port 3000",
        ]
    )

    def test_without_message_returns_text(self) -> None:
        assert strip_echo("anything", None) == "anything"

    def test_prompt_decorated_echo_is_removed(self) -> None:
        text = (
            "> Start the following new project.\n"
            "  Details:\n"
            "  Make sure the application is running on port 3000\n"
            "Reading files"
        )

        assert strip_echo(text, self.MESSAGE) == "Reading files"

    def test_wrapped_echo_lines_are_removed(self) -> None:
        text = "│ Make sure the application │\n│ is running on port 3000 │\nok"

        assert strip_echo(text, self.MESSAGE) == "ok"

    def test_short_fragments_must_match_whole_lines(self) -> None:
        text = "Details:\nport\nDone ✅"

        assert strip_echo(text, self.MESSAGE) == "port\nDone ✅"
