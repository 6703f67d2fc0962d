"""Tests for the in-memory and JSON-file task stores."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from shepherd.exceptions import PersistenceError
from shepherd.models import RateLimitState, Task, TaskStatus
from shepherd.tasks import InMemoryTaskStore, JsonFileTaskStore, TaskStore
from tests.fixtures.clock import START


@pytest.fixture
def store_path(temp_dir: Path) -> Path:
    return temp_dir / "state" / "tasks.json"


class TestInMemoryTaskStore:
    """Tests for InMemoryTaskStore."""

    def test_satisfies_protocol(self, memory_store: InMemoryTaskStore) -> None:
        assert isinstance(memory_store, TaskStore)

    @pytest.mark.asyncio
    async def test_create_and_get(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        task = make_task()

        stored = await memory_store.create_task(task)

        assert stored == task
        assert await memory_store.get_task("task-1") == task
        assert await memory_store.get_task("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        await memory_store.create_task(make_task())

        with pytest.raises(PersistenceError, match="already exists"):
            await memory_store.create_task(make_task())

    @pytest.mark.asyncio
    async def test_list_is_ordered_by_creation_and_filterable(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        await memory_store.create_task(
            make_task("late", created_at=START + timedelta(minutes=5))
        )
        await memory_store.create_task(
            make_task("early", status=TaskStatus.IN_PROGRESS)
        )

        everything = await memory_store.list_tasks()
        running = await memory_store.list_tasks(TaskStatus.IN_PROGRESS)

        assert [t.id for t in everything] == ["early", "late"]
        assert [t.id for t in running] == ["early"]

    @pytest.mark.asyncio
    async def test_update_returns_new_record(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        original = await memory_store.create_task(make_task())

        updated = await memory_store.update_task(
            "task-1", {"status": TaskStatus.IN_PROGRESS, "assigned_to": "president"}
        )

        assert updated is not None
        assert updated.status is TaskStatus.IN_PROGRESS
        assert updated.assigned_to == "president"
        assert original.status is TaskStatus.PENDING
        assert await memory_store.get_task("task-1") == updated

    @pytest.mark.asyncio
    async def test_update_cannot_change_id(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        await memory_store.create_task(make_task())

        updated = await memory_store.update_task("task-1", {"id": "other"})

        assert updated is not None
        assert updated.id == "task-1"

    @pytest.mark.asyncio
    async def test_update_missing_task(self, memory_store: InMemoryTaskStore) -> None:
        assert await memory_store.update_task("missing", {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_invalid_update_rejected(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        await memory_store.create_task(make_task())

        with pytest.raises(PersistenceError, match="Invalid update"):
            await memory_store.update_task("task-1", {"status": "bogus"})

        stored = await memory_store.get_task("task-1")
        assert stored is not None
        assert stored.status is TaskStatus.PENDING

    @pytest.mark.asyncio
    async def test_delete(
        self, memory_store: InMemoryTaskStore, make_task: Callable[..., Task]
    ) -> None:
        await memory_store.create_task(make_task())

        assert await memory_store.delete_task("task-1")
        assert not await memory_store.delete_task("task-1")
        assert await memory_store.list_tasks() == []

    @pytest.mark.asyncio
    async def test_rate_limit_state(self, memory_store: InMemoryTaskStore) -> None:
        assert await memory_store.get_rate_limit_state() == RateLimitState()
        state = RateLimitState(
            is_limited=True,
            paused_at=START,
            next_retry_at=START + timedelta(hours=1),
            retry_count=1,
        )

        await memory_store.save_rate_limit_state(state)

        assert await memory_store.get_rate_limit_state() == state


class TestJsonFileTaskStore:
    """Tests for JsonFileTaskStore."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, store_path: Path) -> None:
        store = JsonFileTaskStore(store_path)

        assert await store.list_tasks() == []
        assert not store_path.exists()

    @pytest.mark.asyncio
    async def test_persists_across_instances(
        self, store_path: Path, make_task: Callable[..., Task]
    ) -> None:
        first = JsonFileTaskStore(store_path)
        await first.create_task(make_task(description="Single page"))
        await first.save_rate_limit_state(
            RateLimitState(
                is_limited=True,
                paused_at=START,
                next_retry_at=START + timedelta(hours=1),
                retry_count=2,
            )
        )

        second = JsonFileTaskStore(store_path)
        task = await second.get_task("task-1")
        rate_limit = await second.get_rate_limit_state()

        assert task is not None
        assert task.description == "Single page"
        assert task.created_at == START
        assert rate_limit.retry_count == 2
        assert rate_limit.next_retry_at == START + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_document_layout(
        self, store_path: Path, make_task: Callable[..., Task]
    ) -> None:
        await JsonFileTaskStore(store_path).create_task(make_task())

        document = json.loads(store_path.read_text())

        assert document["version"] == 1
        assert [t["id"] for t in document["tasks"]] == ["task-1"]
        assert document["tasks"][0]["status"] == "pending"
        assert document["rate_limit"]["is_limited"] is False

    @pytest.mark.asyncio
    async def test_sees_writes_from_other_instances(
        self, store_path: Path, make_task: Callable[..., Task]
    ) -> None:
        reader = JsonFileTaskStore(store_path)
        writer = JsonFileTaskStore(store_path)
        await reader.create_task(make_task("first"))

        await writer.create_task(make_task("second"))

        assert [t.id for t in await reader.list_tasks()] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_corrupt_file(self, store_path: Path) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text("{not json")

        with pytest.raises(PersistenceError, match="Corrupt task store"):
            await JsonFileTaskStore(store_path).list_tasks()

    @pytest.mark.asyncio
    async def test_invalid_task_record(self, store_path: Path) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps({"version": 1, "tasks": [{"id": ""}]}))

        with pytest.raises(PersistenceError) as exc_info:
            await JsonFileTaskStore(store_path).list_tasks()

        assert exc_info.value.path == store_path

    @pytest.mark.asyncio
    async def test_failed_write_leaves_state_unchanged(
        self, store_path: Path, make_task: Callable[..., Task]
    ) -> None:
        store = JsonFileTaskStore(store_path)
        await store.create_task(make_task("kept"))

        with (
            patch(
                "shepherd.tasks.store.atomic_write_json",
                side_effect=OSError("disk full"),
            ),
            pytest.raises(PersistenceError, match="disk full"),
        ):
            await store.create_task(make_task("lost"))

        assert await store.get_task("lost") is None
        assert [t["id"] for t in json.loads(store_path.read_text())["tasks"]] == [
            "kept"
        ]
