"""Completion signals for in-progress tasks.

A task is finished when its session prints a completion phrase in new output,
or, when marker files are configured, when every worker has dropped its marker
file for the task.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from shepherd import constants

__all__ = ["CompletionDetector", "MarkerFileCheck"]


class CompletionDetector:
    """Match completion phrases and project names in session output.

    Example:
        ```python
        detector = CompletionDetector()
        assert detector.find_completion("All tasks done ✅") is not None
        assert detector.find_project_name("Project name: todo-app") == "todo-app"
        ```
    """

    def __init__(
        self,
        patterns: Iterable[str] | None = None,
        *,
        project_patterns: Iterable[str] = constants.PROJECT_NAME_PATTERNS,
    ) -> None:
        self._patterns = tuple(
            re.compile(p, re.IGNORECASE)
            for p in (constants.COMPLETION_PATTERNS if patterns is None else patterns)
        )
        self._project_patterns = tuple(
            re.compile(p, re.IGNORECASE) for p in project_patterns
        )

    def find_completion(self, text: str) -> str | None:
        """Return the matching completion phrase, if ``text`` has one."""
        for pattern in self._patterns:
            match = pattern.search(text)
            if match:
                return match.group(0).strip()
        return None

    def find_project_name(self, text: str) -> str | None:
        """Return the project directory name announced in ``text``, if any."""
        for pattern in self._project_patterns:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None


class MarkerFileCheck:
    """Completion check based on marker files.

    A task counts as complete when every required marker exists under
    ``<marker_root>/<task_id>/``.
    """

    def __init__(
        self,
        marker_root: Path,
        required_markers: Iterable[str] = constants.REQUIRED_MARKERS,
    ) -> None:
        self.marker_root = marker_root
        self.required_markers = tuple(required_markers)

    def missing(self, task_id: str) -> list[str]:
        task_dir = self.marker_root / task_id
        return [m for m in self.required_markers if not (task_dir / m).exists()]

    def is_complete(self, task_id: str) -> bool:
        if not self.required_markers:
            return False
        return not self.missing(task_id)
