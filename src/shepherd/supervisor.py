"""Component wiring and the supervisor's cooperative loops.

The :class:`Supervisor` builds every component once from a
:class:`~shepherd.config.ShepherdConfig` and runs three loops on one event
loop:

- ``monitoring``: scheduler ticks at the adaptive interval.
- ``queue``: one task-queue pass plus stuck-task detection.
- ``maintenance``: interval self-tuning and pruning of stale state.
"""

from __future__ import annotations

from datetime import timedelta

from shepherd.config import ShepherdConfig
from shepherd.exceptions import ConfigError
from shepherd.logging import get_logger
from shepherd.models import MonitoringStats, SessionTarget, StatusUpdate, Task
from shepherd.monitor import (
    ActivityClassifier,
    IdleErrorDetector,
    MonitoringScheduler,
    OutputCapture,
    OutputCompressor,
    PatternLibrary,
    TerminalMonitor,
)
from shepherd.sessions import SessionDriver, TmuxSessionDriver
from shepherd.tasks import (
    CompletionDetector,
    JsonFileTaskStore,
    MarkerFileCheck,
    RateLimitDetector,
    TaskDispatcher,
    TaskEngine,
    TaskStore,
)
from shepherd.utils.clock import Clock, utc_now
from shepherd.utils.loops import RepeatingTask

__all__ = ["Supervisor"]

logger = get_logger(__name__)


class Supervisor:
    """Explicit context object owning all runtime components.

    Example:
        ```python
        supervisor = Supervisor.from_config(load_config())
        supervisor.scheduler.subscribe(print_status)
        await supervisor.start()
        ...
        await supervisor.stop()
        ```
    """

    def __init__(
        self,
        config: ShepherdConfig,
        *,
        monitor: TerminalMonitor,
        scheduler: MonitoringScheduler,
        engine: TaskEngine,
    ) -> None:
        self.config = config
        self.monitor = monitor
        self.scheduler = scheduler
        self.engine = engine
        self._loops: list[RepeatingTask] = []

    @classmethod
    def from_config(
        cls,
        config: ShepherdConfig,
        *,
        driver: SessionDriver | None = None,
        store: TaskStore | None = None,
        clock: Clock = utc_now,
    ) -> Supervisor:
        """Construct and wire all components.

        Args:
            config: Loaded configuration.
            driver: Session driver; defaults to a tmux driver.
            store: Task store; defaults to the configured JSON file.
            clock: Time source shared by every component.

        Raises:
            ConfigError: If the dispatch session is not a configured session.
        """
        driver = driver or TmuxSessionDriver(
            scrollback_lines=config.capture.scrollback_lines,
            timeout=config.capture.timeout_seconds,
        )

        library = PatternLibrary()
        buffer_cfg = config.buffer
        compressor = (
            OutputCompressor(
                buffer_cfg.compression_threshold,
                keep_ratio=buffer_cfg.compression_keep_ratio,
                important_fraction=buffer_cfg.important_line_fraction,
                importance_keywords=buffer_cfg.importance_keywords,
            )
            if buffer_cfg.compression_enabled
            else None
        )
        monitor = TerminalMonitor(
            OutputCapture(
                driver,
                timeout=config.capture.timeout_seconds,
                retries=config.capture.retries,
                backoff=config.capture.backoff_seconds,
            ),
            ActivityClassifier(
                library,
                recent_lines=config.detection.recent_lines,
                description_length=config.detection.description_length,
                clock=clock,
            ),
            IdleErrorDetector(
                library,
                idle_timeout=timedelta(seconds=config.detection.idle_timeout_seconds),
                clock=clock,
            ),
            buffer_capacity=buffer_cfg.capacity,
            compressor=compressor,
            max_lines=buffer_cfg.max_lines,
            chars_per_line=buffer_cfg.chars_per_line,
            importance_keywords=buffer_cfg.importance_keywords,
            max_activity_age=timedelta(seconds=buffer_cfg.max_activity_age_seconds),
            high_memory_bytes=buffer_cfg.high_memory_bytes,
            critical_memory_bytes=buffer_cfg.critical_memory_bytes,
            clock=clock,
        )
        scheduler = MonitoringScheduler(
            monitor,
            config.session_targets(),
            config=config.monitoring,
            clock=clock,
        )

        task_cfg = config.tasks
        dispatcher = TaskDispatcher(
            driver,
            _dispatch_target(config),
            task_cfg.workspace_root,
            reset_command=task_cfg.reset_command,
            settle_delay=task_cfg.settle_seconds,
            artifact_suffixes=task_cfg.artifact_suffixes,
        )
        engine = TaskEngine(
            store or JsonFileTaskStore(config.store.path),
            dispatcher,
            rate_limits=RateLimitDetector(
                config.rate_limit.signatures,
                default_timezone=config.rate_limit.default_timezone,
                fallback_delay=timedelta(
                    seconds=config.rate_limit.fallback_delay_seconds
                ),
            ),
            completion=CompletionDetector(task_cfg.completion_patterns),
            marker_check=(
                MarkerFileCheck(task_cfg.marker_root, task_cfg.required_markers)
                if task_cfg.marker_root is not None
                else None
            ),
            stuck_after=timedelta(seconds=task_cfg.stuck_after_seconds),
            clock=clock,
        )
        monitor.add_observer(engine)

        return cls(config, monitor=monitor, scheduler=scheduler, engine=engine)

    @property
    def is_running(self) -> bool:
        return any(loop.is_running for loop in self._loops)

    async def start(self) -> None:
        """Start the monitoring, queue and maintenance loops."""
        if self.is_running:
            return
        self.scheduler.start()
        self._loops = [
            RepeatingTask(
                "queue",
                self.process_queue,
                lambda: self.config.tasks.queue_interval_seconds,
            ),
            RepeatingTask(
                "maintenance",
                self.maintain,
                lambda: self.config.monitoring.optimize_interval_seconds,
                run_immediately=False,
            ),
        ]
        for loop in self._loops:
            loop.start()
        logger.info(
            "supervisor_started",
            sessions=[t.session_id for t in self.scheduler.targets],
            dispatch_session=self.config.tasks.dispatch_session,
        )

    async def stop(self) -> None:
        """Stop every loop, letting in-flight work finish."""
        await self.scheduler.stop()
        loops, self._loops = self._loops, []
        for loop in loops:
            await loop.stop()
        logger.info("supervisor_stopped")

    async def process_queue(self) -> Task | None:
        """One queue pass followed by stuck-task detection."""
        advanced = await self.engine.process_queue()
        await self.engine.find_stuck_tasks()
        return advanced

    async def maintain(self) -> None:
        self.scheduler.optimize_performance()

    async def run_once(self) -> tuple[list[StatusUpdate], Task | None]:
        """Run a single monitoring tick and a single queue pass.

        Returns:
            The broadcast status updates and the task advanced, if any.
        """
        updates = await self.scheduler.run_tick()
        advanced = await self.process_queue()
        return updates, advanced

    def stats(self) -> MonitoringStats:
        return self.scheduler.stats()


def _dispatch_target(config: ShepherdConfig) -> SessionTarget:
    wanted = config.tasks.dispatch_session
    for target in config.session_targets():
        if target.session_id == wanted:
            return target
    raise ConfigError(
        message=f"Dispatch session {wanted!r} is not a configured session",
        field="tasks.dispatch_session",
        value=wanted,
    )
