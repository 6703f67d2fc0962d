"""Task lifecycle engine.

The engine moves tasks through their lifecycle::

    pending -> in_progress -> completed
                    |  ^
                    v  |
                   paused          (rate limit, then resume)

    any non-terminal -> failed -> pending (retry)
    any non-terminal -> cancelled

Only one task is worked on at a time. Each queue pass finalizes completed
work, checks whether a rate limit has expired, and then advances at most one
task, preferring to resume a paused task over starting a new one.

Every change goes through the :class:`~shepherd.tasks.store.TaskStore`; the
engine caches only records the store returned.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from shepherd import constants
from shepherd.exceptions import TaskError, TaskNotFoundError, TaskTransitionError
from shepherd.logging import get_logger
from shepherd.models import FailureRecord, RateLimitState, Task, TaskStatus
from shepherd.tasks.completion import CompletionDetector, MarkerFileCheck
from shepherd.tasks.dispatch import TaskDispatcher, project_name_for
from shepherd.tasks.observation import appended_text, strip_echo
from shepherd.tasks.ratelimit import RateLimitDetector
from shepherd.tasks.store import TaskStore
from shepherd.utils.clock import Clock, utc_now

__all__ = [
    "TaskEngine",
    "TaskEvent",
    "TaskEventKind",
    "TaskListener",
]

logger = get_logger(__name__)

_ACTIVE = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.PAUSED})
_NON_TERMINAL = _ACTIVE | {TaskStatus.FAILED}


def _limit_pause_reason(next_retry_at: datetime) -> str:
    return f"Waiting for the usage window to reopen at {next_retry_at.isoformat()}"


class TaskEventKind(str, Enum):
    """What happened to a task or to the rate-limit state."""

    SUBMITTED = "submitted"
    ASSIGNED = "assigned"
    RESUMED = "resumed"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRIED = "retried"
    CANCELLED = "cancelled"
    OVERRIDDEN = "overridden"
    STUCK = "stuck"
    RATE_LIMITED = "rate_limited"
    RATE_LIMIT_RESOLVED = "rate_limit_resolved"


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """Notification delivered to engine subscribers.

    Attributes:
        kind: What happened.
        task: Task record after the change, for task events.
        rate_limit: Rate-limit state after the change, for rate-limit events.
        message: Reason or extra detail.
    """

    kind: TaskEventKind
    task: Task | None = None
    rate_limit: RateLimitState | None = None
    message: str | None = None


TaskListener = Callable[[TaskEvent], None]


def _new_task_id() -> str:
    return uuid.uuid4().hex[:12]


class TaskEngine:
    """Owns task state transitions, dispatch and rate-limit handling.

    Example:
        ```python
        engine = TaskEngine(JsonFileTaskStore(path), dispatcher)
        task = await engine.submit("Build a TODO app", "Single page, no backend")
        await engine.process_queue()
        ```
    """

    def __init__(
        self,
        store: TaskStore,
        dispatcher: TaskDispatcher,
        *,
        rate_limits: RateLimitDetector | None = None,
        completion: CompletionDetector | None = None,
        marker_check: MarkerFileCheck | None = None,
        stuck_after: timedelta = timedelta(seconds=constants.STUCK_AFTER_SECONDS),
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_task_id,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Durable task and rate-limit storage.
            dispatcher: Delivers assignment and resume messages.
            rate_limits: Rate-limit detector for observed output.
            completion: Completion phrase detector for observed output.
            marker_check: Optional marker-file completion check.
            stuck_after: In-progress tasks untouched this long are reported.
            clock: Time source.
            id_factory: Generates ids for new tasks.
        """
        self._store = store
        self._dispatcher = dispatcher
        self._rate_limits = rate_limits or RateLimitDetector()
        self._completion = completion or CompletionDetector()
        self._marker_check = marker_check
        self._stuck_after = stuck_after
        self._clock = clock
        self._id_factory = id_factory

        self._queue_lock = asyncio.Lock()
        self._transition_lock = asyncio.Lock()
        self._rate_limit_lock = asyncio.Lock()

        self._cache: dict[str, Task] = {}
        self._last_outputs: dict[str, str] = {}
        self._sent_messages: dict[str, str | None] = {}
        self._completion_signals: dict[str, str] = {}
        self._reported_stuck: set[tuple[str, datetime]] = set()
        self._listeners: list[TaskListener] = []

    @property
    def store(self) -> TaskStore:
        return self._store

    def cached_tasks(self) -> dict[str, Task]:
        """Last known record of every task this engine has touched."""
        return dict(self._cache)

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        """Register ``listener`` for task events.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: TaskEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("task_listener_failed", kind=event.kind.value)

    def _remember(self, task: Task) -> Task:
        self._cache[task.id] = task
        return task

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_task(self, task_id: str) -> Task:
        """Return the stored task.

        Raises:
            TaskNotFoundError: If no task has ``task_id``.
        """
        task = await self._store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return self._remember(task)

    async def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        tasks = await self._store.list_tasks(status)
        for task in tasks:
            self._remember(task)
        return tasks

    async def counts(self) -> dict[TaskStatus, int]:
        """Number of tasks per status, including zero counts."""
        counts = dict.fromkeys(TaskStatus, 0)
        for task in await self._store.list_tasks():
            counts[task.status] += 1
        return counts

    async def rate_limit_state(self) -> RateLimitState:
        return await self._store.get_rate_limit_state()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit(
        self,
        title: str,
        description: str = "",
        project_name: str | None = None,
    ) -> Task:
        """Create a pending task.

        Raises:
            PersistenceError: If the store rejects the task.
        """
        now = self._clock()
        task = Task(
            id=self._id_factory(),
            title=title,
            description=description,
            project_name=project_name,
            created_at=now,
            updated_at=now,
        )
        stored = self._remember(await self._store.create_task(task))
        logger.info("task_submitted", task_id=stored.id, title=stored.title)
        self._emit(TaskEvent(TaskEventKind.SUBMITTED, task=stored))
        return stored

    async def _transition(
        self,
        task_id: str,
        target: TaskStatus,
        allowed: Iterable[TaskStatus] | None,
        changes: Callable[[Task], Mapping[str, Any]] | None = None,
    ) -> Task:
        """Re-read a task and move it to ``target``.

        Args:
            task_id: Task to change.
            target: New status.
            allowed: Statuses the move is allowed from, or None for any.
            changes: Builds extra field changes from the current record.

        Raises:
            TaskNotFoundError: If the task does not exist.
            TaskTransitionError: If the current status does not allow it.
            PersistenceError: If the store update fails.
        """
        async with self._transition_lock:
            current = await self._store.get_task(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)
            if allowed is not None and current.status not in set(allowed):
                raise TaskTransitionError(
                    task_id, current.status.value, target.value
                )
            update: dict[str, Any] = {"status": target, "updated_at": self._clock()}
            if changes is not None:
                update.update(changes(current))
            updated = await self._store.update_task(task_id, update)
            if updated is None:
                raise TaskNotFoundError(task_id)
            return self._remember(updated)

    async def complete_task(self, task_id: str, reason: str | None = None) -> Task:
        """Mark an in-progress task completed."""
        task = await self._transition(
            task_id,
            TaskStatus.COMPLETED,
            {TaskStatus.IN_PROGRESS},
            lambda _: {"completed_at": self._clock()},
        )
        self._completion_signals.pop(task_id, None)
        logger.info("task_completed", task_id=task_id, reason=reason)
        self._emit(TaskEvent(TaskEventKind.COMPLETED, task=task, message=reason))
        return task

    async def fail_task(self, task_id: str, reason: str) -> Task:
        """Mark a task failed, appending to its failure history.

        Allowed from any non-terminal status, including failed.
        """

        def record_failure(current: Task) -> dict[str, Any]:
            record = FailureRecord(
                timestamp=self._clock(),
                reason=reason,
                retry_count_at_failure=current.retry_count,
            )
            return {
                "failure_reason": reason,
                "error_history": (*current.error_history, record),
            }

        task = await self._transition(
            task_id, TaskStatus.FAILED, _NON_TERMINAL, record_failure
        )
        logger.warning(
            "task_failed",
            task_id=task_id,
            reason=reason,
            failures=len(task.error_history),
        )
        self._emit(TaskEvent(TaskEventKind.FAILED, task=task, message=reason))
        return task

    async def retry_task(self, task_id: str) -> Task:
        """Return a failed task to pending."""
        task = await self._transition(
            task_id,
            TaskStatus.PENDING,
            {TaskStatus.FAILED},
            lambda current: {
                "retry_count": current.retry_count + 1,
                "failure_reason": None,
                "assigned_to": None,
                "paused_reason": None,
            },
        )
        logger.info("task_retried", task_id=task_id, retry_count=task.retry_count)
        self._emit(TaskEvent(TaskEventKind.RETRIED, task=task))
        return task

    async def cancel_task(self, task_id: str, reason: str | None = None) -> Task:
        """Cancel a task that has not completed."""
        task = await self._transition(
            task_id,
            TaskStatus.CANCELLED,
            _NON_TERMINAL,
            lambda _: {"cancelled_at": self._clock()},
        )
        self._completion_signals.pop(task_id, None)
        logger.info("task_cancelled", task_id=task_id, reason=reason)
        self._emit(TaskEvent(TaskEventKind.CANCELLED, task=task, message=reason))
        return task

    async def pause_task(self, task_id: str, reason: str) -> Task:
        """Pause an in-progress task so it is resumed later."""
        task = await self._transition(
            task_id,
            TaskStatus.PAUSED,
            {TaskStatus.IN_PROGRESS},
            lambda _: {"paused_reason": reason},
        )
        logger.info("task_paused", task_id=task_id, reason=reason)
        self._emit(TaskEvent(TaskEventKind.PAUSED, task=task, message=reason))
        return task

    async def override_status(
        self, task_id: str, status: TaskStatus, reason: str | None = None
    ) -> Task:
        """Set any status, bypassing transition rules."""

        def timestamps(current: Task) -> dict[str, Any]:
            now = self._clock()
            changes: dict[str, Any] = {}
            if status is TaskStatus.COMPLETED:
                changes["completed_at"] = now
            elif status is TaskStatus.CANCELLED:
                changes["cancelled_at"] = now
            elif status is TaskStatus.PAUSED and reason:
                changes["paused_reason"] = reason
            return changes

        previous = await self.get_task(task_id)
        task = await self._transition(task_id, status, None, timestamps)
        logger.warning(
            "task_status_overridden",
            task_id=task_id,
            previous=previous.status.value,
            status=status.value,
            reason=reason,
        )
        self._emit(TaskEvent(TaskEventKind.OVERRIDDEN, task=task, message=reason))
        return task

    # ------------------------------------------------------------------
    # Queue processing
    # ------------------------------------------------------------------

    async def process_queue(self) -> Task | None:
        """Run one queue pass.

        Returns immediately with None if another pass is in progress.

        Returns:
            The task that was assigned or resumed, if any.
        """
        if self._queue_lock.locked():
            logger.debug("queue_pass_skipped")
            return None
        async with self._queue_lock:
            await self._finalize_completions()
            if not await self.check_rate_limit_resolution():
                return None
            if await self._store.list_tasks(TaskStatus.IN_PROGRESS):
                return None
            paused = await self._store.list_tasks(TaskStatus.PAUSED)
            if paused:
                return await self._resume(paused[0])
            pending = await self._store.list_tasks(TaskStatus.PENDING)
            if pending:
                return await self._assign(pending[0])
            return None

    async def _finalize_completions(self) -> None:
        signals, self._completion_signals = self._completion_signals, {}
        for task in await self._store.list_tasks(TaskStatus.IN_PROGRESS):
            reason = signals.get(task.id)
            if (
                reason is None
                and self._marker_check is not None
                and self._marker_check.is_complete(task.id)
            ):
                reason = "completion markers present"
            if reason is None:
                continue
            try:
                await self.complete_task(task.id, reason=reason)
            except TaskError as e:
                logger.warning(
                    "task_completion_skipped", task_id=task.id, error=e.message
                )

    async def _assign(self, candidate: Task) -> Task | None:
        current = await self._store.get_task(candidate.id)
        if current is None or current.status is not TaskStatus.PENDING:
            return None
        if not await self._dispatcher.assign(current):
            return None
        session_id = self._dispatcher.target.session_id
        self._sent_messages[session_id] = self._dispatcher.last_message
        try:
            task = await self._transition(
                current.id,
                TaskStatus.IN_PROGRESS,
                {TaskStatus.PENDING},
                lambda _: {
                    "assigned_to": session_id,
                    "project_name": project_name_for(current),
                    "last_attempt_at": self._clock(),
                },
            )
        except TaskTransitionError as e:
            logger.warning(
                "task_assign_superseded", task_id=current.id, error=e.message
            )
            return None
        logger.info("task_assigned", task_id=task.id, session_id=session_id)
        self._emit(TaskEvent(TaskEventKind.ASSIGNED, task=task))
        return await self._hold_if_limited(task)

    async def _resume(self, candidate: Task) -> Task | None:
        current = await self._store.get_task(candidate.id)
        if current is None or current.status is not TaskStatus.PAUSED:
            return None
        if not await self._dispatcher.resume(current):
            return None
        session_id = self._dispatcher.target.session_id
        self._sent_messages[session_id] = self._dispatcher.last_message
        try:
            task = await self._transition(
                current.id,
                TaskStatus.IN_PROGRESS,
                {TaskStatus.PAUSED},
                lambda _: {
                    "assigned_to": session_id,
                    "paused_reason": None,
                    "last_attempt_at": self._clock(),
                },
            )
        except TaskTransitionError as e:
            logger.warning(
                "task_resume_superseded", task_id=current.id, error=e.message
            )
            return None
        logger.info("task_resumed", task_id=task.id, session_id=session_id)
        self._emit(TaskEvent(TaskEventKind.RESUMED, task=task))
        return await self._hold_if_limited(task)

    async def _hold_if_limited(self, task: Task) -> Task:
        """Pause a just-dispatched task if a rate limit began during delivery."""
        state = await self._store.get_rate_limit_state()
        if not state.is_limited or state.next_retry_at is None:
            return task
        try:
            return await self.pause_task(
                task.id, _limit_pause_reason(state.next_retry_at)
            )
        except TaskError as e:
            logger.warning("task_pause_skipped", task_id=task.id, error=e.message)
            return task

    async def find_stuck_tasks(self, now: datetime | None = None) -> list[Task]:
        """Report in-progress tasks untouched for longer than ``stuck_after``.

        Each task is reported once per attempt. Stuck tasks are never
        cancelled.
        """
        current = now or self._clock()
        stuck: list[Task] = []
        for task in await self._store.list_tasks(TaskStatus.IN_PROGRESS):
            last_touched = task.last_attempt_at or task.updated_at
            if current - last_touched <= self._stuck_after:
                continue
            stuck.append(task)
            key = (task.id, last_touched)
            if key in self._reported_stuck:
                continue
            self._reported_stuck.add(key)
            logger.warning(
                "task_stuck",
                task_id=task.id,
                assigned_to=task.assigned_to,
                idle_seconds=int((current - last_touched).total_seconds()),
            )
            self._emit(TaskEvent(TaskEventKind.STUCK, task=task))
        return stuck

    # ------------------------------------------------------------------
    # Rate limits
    # ------------------------------------------------------------------

    async def handle_rate_limit(self, text: str) -> RateLimitState:
        """Enter the rate-limited state and pause in-progress tasks.

        A no-op while already limited, so an earlier resume estimate is never
        overwritten.
        """
        async with self._rate_limit_lock:
            current = await self._store.get_rate_limit_state()
            if current.is_limited:
                logger.debug(
                    "rate_limit_already_active",
                    next_retry_at=current.next_retry_at,
                )
                return current

            now = self._clock()
            next_retry_at = self._rate_limits.compute_resume_time(text, now)
            state = await self._store.save_rate_limit_state(
                RateLimitState(
                    is_limited=True,
                    paused_at=now,
                    next_retry_at=next_retry_at,
                    retry_count=current.retry_count + 1,
                    last_error_message=self._rate_limits.detect(text) or text.strip(),
                )
            )
            logger.warning(
                "rate_limit_detected",
                next_retry_at=next_retry_at.isoformat(),
                retry_count=state.retry_count,
            )

        reason = _limit_pause_reason(next_retry_at)
        for task in await self._store.list_tasks(TaskStatus.IN_PROGRESS):
            try:
                await self.pause_task(task.id, reason)
            except TaskError as e:
                logger.warning("task_pause_skipped", task_id=task.id, error=e.message)
        self._emit(TaskEvent(TaskEventKind.RATE_LIMITED, rate_limit=state))
        return state

    async def check_rate_limit_resolution(self, now: datetime | None = None) -> bool:
        """Clear an expired rate limit.

        Returns:
            True if dispatch may proceed, False while still limited.
        """
        async with self._rate_limit_lock:
            state = await self._store.get_rate_limit_state()
            if not state.is_limited:
                return True
            current = now or self._clock()
            if not state.is_resolved(current):
                return False
            cleared = await self._store.save_rate_limit_state(
                RateLimitState(retry_count=state.retry_count)
            )
        logger.info(
            "rate_limit_resolved",
            paused_at=state.paused_at.isoformat() if state.paused_at else None,
        )
        self._emit(TaskEvent(TaskEventKind.RATE_LIMIT_RESOLVED, rate_limit=cleared))
        return True

    # ------------------------------------------------------------------
    # Output observation
    # ------------------------------------------------------------------

    async def observe_output(self, session_id: str, output: str) -> None:
        """Scan newly appended session output for rate limits and completion.

        The first output seen for a session only sets the baseline. Text that
        was already on screen, including lines scrolled up since the last
        capture, and echoes of messages dispatched to the session are ignored.
        """
        previous = self._last_outputs.get(session_id)
        self._last_outputs[session_id] = output
        if previous is None or output == previous:
            return
        new = strip_echo(
            appended_text(previous, output), self._sent_messages.get(session_id)
        )
        if not new.strip():
            return

        if self._rate_limits.detect(new) is not None:
            await self.handle_rate_limit(new)
            return

        phrase = self._completion.find_completion(new)
        project = self._completion.find_project_name(new)
        if phrase is None and project is None:
            return
        for task in await self._store.list_tasks(TaskStatus.IN_PROGRESS):
            if task.assigned_to != session_id:
                continue
            if phrase is not None and task.id not in self._completion_signals:
                self._completion_signals[task.id] = phrase
                logger.info("task_completion_signal", task_id=task.id, phrase=phrase)
            if project is not None and task.project_name is None:
                updated = await self._store.update_task(
                    task.id, {"project_name": project, "updated_at": self._clock()}
                )
                if updated is not None:
                    self._remember(updated)
                    logger.info(
                        "task_project_detected", task_id=task.id, project=project
                    )
