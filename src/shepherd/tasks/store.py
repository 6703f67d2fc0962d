"""Task store protocol and implementations.

The store owns the durable copy of every task and of the rate-limit state.
Updates are applied by id and return the stored record, which is the only
value callers may cache.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from shepherd.exceptions import PersistenceError
from shepherd.logging import get_logger
from shepherd.models import RateLimitState, Task, TaskStatus
from shepherd.utils.atomic import atomic_write_json

__all__ = ["TaskStore", "InMemoryTaskStore", "JsonFileTaskStore"]

logger = get_logger(__name__)

STORE_FORMAT_VERSION = 1


@runtime_checkable
class TaskStore(Protocol):
    """Protocol for task persistence.

    All methods are async. Implementations raise ``PersistenceError`` for
    I/O or validation faults.
    """

    async def create_task(self, task: Task) -> Task:
        """Store a new task and return the stored record."""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """Return the task with ``task_id``, or None."""
        ...

    async def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        """Return tasks ordered by creation time, optionally by status."""
        ...

    async def update_task(
        self, task_id: str, changes: Mapping[str, Any]
    ) -> Task | None:
        """Apply ``changes`` to a task atomically.

        Returns:
            The updated record, or None if no such task exists.
        """
        ...

    async def delete_task(self, task_id: str) -> bool:
        """Remove a task. Returns False if it did not exist."""
        ...

    async def get_rate_limit_state(self) -> RateLimitState:
        """Return the current rate-limit state."""
        ...

    async def save_rate_limit_state(self, state: RateLimitState) -> RateLimitState:
        """Replace the rate-limit state and return the stored value."""
        ...


class InMemoryTaskStore:
    """Task store held in memory.

    Suitable for tests and ephemeral runs. Data is lost on process exit.
    Subclasses persist by overriding :meth:`_load` and :meth:`_commit`.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._rate_limit = RateLimitState()
        self._lock = asyncio.Lock()
        self._loaded = False

    async def _load(self) -> tuple[dict[str, Task], RateLimitState]:
        return {}, RateLimitState()

    async def _commit(self, tasks: dict[str, Task], rate_limit: RateLimitState) -> None:
        """Persist a new table before it replaces the current one."""

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._tasks, self._rate_limit = await self._load()
            self._loaded = True

    async def create_task(self, task: Task) -> Task:
        async with self._lock:
            await self._ensure_loaded()
            if task.id in self._tasks:
                raise PersistenceError(f"Task already exists: {task.id}")
            tasks = {**self._tasks, task.id: task}
            await self._commit(tasks, self._rate_limit)
            self._tasks = tasks
        return task

    async def get_task(self, task_id: str) -> Task | None:
        async with self._lock:
            await self._ensure_loaded()
            return self._tasks.get(task_id)

    async def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        async with self._lock:
            await self._ensure_loaded()
            tasks = [
                t for t in self._tasks.values() if status is None or t.status is status
            ]
        return sorted(tasks, key=lambda t: t.created_at)

    async def update_task(
        self, task_id: str, changes: Mapping[str, Any]
    ) -> Task | None:
        async with self._lock:
            await self._ensure_loaded()
            current = self._tasks.get(task_id)
            if current is None:
                return None
            try:
                updated = Task.model_validate(
                    {**current.model_dump(), **changes, "id": task_id}
                )
            except ValidationError as e:
                raise PersistenceError(f"Invalid update for task {task_id}: {e}") from e
            tasks = {**self._tasks, task_id: updated}
            await self._commit(tasks, self._rate_limit)
            self._tasks = tasks
        return updated

    async def delete_task(self, task_id: str) -> bool:
        async with self._lock:
            await self._ensure_loaded()
            if task_id not in self._tasks:
                return False
            tasks = {k: v for k, v in self._tasks.items() if k != task_id}
            await self._commit(tasks, self._rate_limit)
            self._tasks = tasks
        return True

    async def get_rate_limit_state(self) -> RateLimitState:
        async with self._lock:
            await self._ensure_loaded()
            return self._rate_limit

    async def save_rate_limit_state(self, state: RateLimitState) -> RateLimitState:
        async with self._lock:
            await self._ensure_loaded()
            await self._commit(self._tasks, state)
            self._rate_limit = state
        return state


class JsonFileTaskStore(InMemoryTaskStore):
    """Task store persisted to a single JSON document.

    The document is read on first access, re-read whenever its modification
    time, size or inode changes (another process wrote it), and rewritten
    atomically on every change. A failed write leaves both the file and the
    in-memory table unchanged.

    Document layout::

        {"version": 1, "tasks": [...], "rate_limit": {...}}
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize the store.

        Args:
            path: JSON file to read and write. Created on first write.
        """
        super().__init__()
        self.path = Path(path)
        self._signature: tuple[int, int, int] | None = None

    def _disk_signature(self) -> tuple[int, int, int] | None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size, stat.st_ino

    async def _ensure_loaded(self) -> None:
        if self._loaded and self._disk_signature() != self._signature:
            logger.debug("task_store_reloaded", path=str(self.path))
            self._loaded = False
        if not self._loaded:
            await super()._ensure_loaded()
            self._signature = self._disk_signature()

    async def _load(self) -> tuple[dict[str, Task], RateLimitState]:
        if not self.path.exists():
            logger.debug("task_store_created", path=str(self.path))
            return {}, RateLimitState()
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
            tasks = [Task.model_validate(item) for item in document.get("tasks", [])]
            rate_limit = RateLimitState.model_validate(document.get("rate_limit") or {})
        except OSError as e:
            raise PersistenceError(
                f"Cannot read task store: {e}", path=self.path
            ) from e
        except (ValueError, AttributeError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            raise PersistenceError(
                f"Corrupt task store {self.path}: {e}", path=self.path
            ) from e
        logger.debug("task_store_loaded", path=str(self.path), tasks=len(tasks))
        return {task.id: task for task in tasks}, rate_limit

    async def _commit(self, tasks: dict[str, Task], rate_limit: RateLimitState) -> None:
        document = {
            "version": STORE_FORMAT_VERSION,
            "tasks": [task.model_dump(mode="json") for task in tasks.values()],
            "rate_limit": rate_limit.model_dump(mode="json"),
        }
        try:
            atomic_write_json(self.path, document)
        except OSError as e:
            raise PersistenceError(
                f"Cannot write task store: {e}", path=self.path
            ) from e
        self._signature = self._disk_signature()
