"""Delivering task assignments to the dispatch session."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable
from pathlib import Path

from shepherd import constants
from shepherd.exceptions import SessionInputError
from shepherd.logging import get_logger
from shepherd.models import SessionTarget, Task
from shepherd.sessions import SessionDriver

__all__ = [
    "TaskDispatcher",
    "build_assignment_message",
    "build_resume_message",
    "collect_artifacts",
    "project_name_for",
    "project_slug",
]

logger = get_logger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


def project_slug(title: str, max_length: int = constants.PROJECT_SLUG_LENGTH) -> str:
    """Derive a workspace directory name from a task title.

    Example:
        >>> project_slug("Build a TODO app!")
        'build-a-todo-app'
    """
    slug = _SLUG_INVALID.sub("", title.lower().replace(" ", "-"))[:max_length]
    return slug or "project"


def project_name_for(task: Task) -> str:
    return task.project_name or project_slug(task.title)


def build_assignment_message(task: Task, workspace_root: Path) -> str:
    project = project_name_for(task)
    lines = [
        "Start the following new project.",
        "",
        f"Task ID: {task.id}",
        f"Title: {task.title}",
        f"Project name: {project}",
        f"Working directory: {workspace_root / project}",
    ]
    if task.description:
        lines += ["", "Details:", task.description]
    lines += [
        "",
        f"Create every deliverable inside {workspace_root / project}.",
    ]
    return "\n".join(lines)


def build_resume_message(
    task: Task, workspace_root: Path, artifacts: Iterable[Path]
) -> str:
    project = project_name_for(task)
    lines = [
        "Resume the following task. Do not start over.",
        "",
        f"Task ID: {task.id}",
        f"Title: {task.title}",
        f"Project name: {project}",
        f"Working directory: {workspace_root / project}",
    ]
    if task.paused_reason:
        lines.append(f"Paused because: {task.paused_reason}")
    existing = list(artifacts)
    if existing:
        lines += ["", "Files already produced:"]
        lines += [f"- {path}" for path in existing]
        lines += ["", "Continue from these files instead of recreating them."]
    else:
        lines += ["", "No files were produced yet. Continue from the beginning."]
    if task.description:
        lines += ["", "Details:", task.description]
    return "\n".join(lines)


def collect_artifacts(
    project_dir: Path,
    suffixes: Iterable[str] = constants.ARTIFACT_SUFFIXES,
    limit: int = constants.MAX_RESUME_ARTIFACTS,
) -> list[Path]:
    """List up to ``limit`` files under ``project_dir`` with one of ``suffixes``.

    Paths are relative to ``project_dir`` and sorted.
    """
    if not project_dir.is_dir():
        return []
    wanted = {suffix.lower() for suffix in suffixes}
    found = sorted(
        path.relative_to(project_dir)
        for path in project_dir.rglob("*")
        if path.is_file() and path.suffix.lower() in wanted
    )
    return found[:limit]


class TaskDispatcher:
    """Send assignment and resume messages to the dispatch session.

    An assignment first sends the optional reset command and waits
    ``settle_delay`` seconds. A resume sends only its message so the session
    keeps its context. Failures are logged and reported as False, never
    raised. The text of the last delivered message is kept in
    :attr:`last_message`.
    """

    def __init__(
        self,
        driver: SessionDriver,
        target: SessionTarget,
        workspace_root: Path,
        *,
        reset_command: str | None = constants.RESET_COMMAND,
        settle_delay: float = 0.5,
        artifact_suffixes: Iterable[str] = constants.ARTIFACT_SUFFIXES,
    ) -> None:
        self._driver = driver
        self._target = target
        self._workspace_root = workspace_root
        self._reset_command = reset_command
        self._settle_delay = settle_delay
        self._artifact_suffixes = tuple(artifact_suffixes)
        self._last_message: str | None = None

    @property
    def target(self) -> SessionTarget:
        return self._target

    @property
    def last_message(self) -> str | None:
        """Message text of the most recent successful delivery."""
        return self._last_message

    async def assign(self, task: Task) -> bool:
        """Deliver a new task. Returns True on success."""
        message = build_assignment_message(task, self._workspace_root)
        return await self._deliver(task, message, kind="assign")

    async def resume(self, task: Task) -> bool:
        """Deliver a resume message listing existing artifacts."""
        artifacts = collect_artifacts(
            self._workspace_root / project_name_for(task), self._artifact_suffixes
        )
        message = build_resume_message(task, self._workspace_root, artifacts)
        return await self._deliver(task, message, kind="resume")

    async def _deliver(self, task: Task, message: str, *, kind: str) -> bool:
        try:
            if kind == "assign" and self._reset_command:
                await self._driver.send_input(self._target, self._reset_command)
                if self._settle_delay > 0:
                    await asyncio.sleep(self._settle_delay)
            await self._driver.send_input(self._target, message)
        except SessionInputError as e:
            logger.warning(
                "task_dispatch_failed",
                task_id=task.id,
                kind=kind,
                session_id=self._target.session_id,
                error=e.message,
            )
            return False
        self._last_message = message
        logger.info(
            "task_dispatched",
            task_id=task.id,
            kind=kind,
            session_id=self._target.session_id,
        )
        return True
