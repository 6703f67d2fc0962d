"""Unit tests for atomic file write utilities."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from shepherd.utils.atomic import atomic_write_json, atomic_write_text


class TestAtomicWriteText:
    """Tests for atomic_write_text function."""

    def test_creates_file(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"

        atomic_write_text(file_path, "Hello, world!")

        assert file_path.read_text() == "Hello, world!"

    def test_overwrites_existing(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"
        file_path.write_text("original content")

        atomic_write_text(file_path, "new content")

        assert file_path.read_text() == "new content"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        file_path = tmp_path / ".shepherd" / "nested" / "tasks.json"

        atomic_write_text(file_path, "nested content")

        assert file_path.read_text() == "nested content"

    def test_fails_without_mkdir_if_parent_missing(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            atomic_write_text(tmp_path / "missing" / "f.txt", "x", mkdir=False)

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        file_path = str(tmp_path / "test.txt")

        atomic_write_text(file_path, "string path content")

        assert Path(file_path).read_text() == "string path content"

    def test_only_target_file_remains(self, tmp_path: Path) -> None:
        atomic_write_text(tmp_path / "test.txt", "Line 1\n\tLine 2\n☃")

        assert [p.name for p in tmp_path.iterdir()] == ["test.txt"]

    def test_failed_write_leaves_original(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"
        file_path.write_text("original")

        with (
            patch("atomicwrites.replace_atomic", side_effect=OSError("disk full")),
            pytest.raises(OSError, match="disk full"),
        ):
            atomic_write_text(file_path, "replacement")

        assert file_path.read_text() == "original"


class TestAtomicWriteJson:
    """Tests for atomic_write_json function."""

    def test_creates_file(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"
        data = {"version": 1, "tasks": []}

        atomic_write_json(file_path, data)

        assert json.loads(file_path.read_text()) == data

    def test_two_space_indentation(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"

        atomic_write_json(file_path, {"key": "value"})

        assert file_path.read_text() == '{\n  "key": "value"\n}'

    def test_preserves_unicode(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"

        atomic_write_json(file_path, {"title": "All tasks completed ✅"})

        assert "✅" in file_path.read_text(encoding="utf-8")

    def test_datetimes_written_as_strings(self, tmp_path: Path) -> None:
        file_path = tmp_path / "tasks.json"
        moment = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

        atomic_write_json(file_path, {"paused_at": moment})

        assert json.loads(file_path.read_text()) == {"paused_at": str(moment)}
