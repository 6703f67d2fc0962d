from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from shepherd import constants
from shepherd.exceptions import ConfigError
from shepherd.logging import get_logger
from shepherd.models import SessionTarget

__all__ = [
    "ShepherdConfig",
    "SessionTargetConfig",
    "CaptureConfig",
    "BufferConfig",
    "DetectionConfig",
    "MonitoringConfig",
    "RateLimitConfig",
    "TaskConfig",
    "StoreConfig",
    "load_config",
    "get_user_config_path",
]

logger = get_logger(__name__)

PROJECT_CONFIG_NAME = "shepherd.yaml"

# Set by load_config() while an explicit --config path is being loaded
_project_config_override: ContextVar[Path | None] = ContextVar(
    "project_config_override", default=None
)


class SessionTargetConfig(BaseModel):
    """One monitored session.

    Attributes:
        session_id: Name used in logs, tasks and broadcasts.
        target: tmux target, e.g. ``"multiagent:0.1"`` or ``"president"``.
        role: Optional role label.
    """

    session_id: str = Field(min_length=1)
    target: str = Field(min_length=1)
    role: str | None = None

    def to_target(self) -> SessionTarget:
        return SessionTarget(
            session_id=self.session_id, target=self.target, role=self.role
        )


def _default_sessions() -> list[SessionTargetConfig]:
    layout = [
        ("president", "president", "president"),
        ("boss1", "multiagent:0.0", "boss"),
        ("worker1", "multiagent:0.1", "worker"),
        ("worker2", "multiagent:0.2", "worker"),
        ("worker3", "multiagent:0.3", "worker"),
    ]
    return [
        SessionTargetConfig(session_id=session_id, target=target, role=role)
        for session_id, target, role in layout
    ]


class CaptureConfig(BaseModel):
    """Settings for capturing session output.

    Attributes:
        timeout_seconds: Time allowed per capture attempt.
        retries: Retries after the first failed attempt (at most 2).
        backoff_seconds: Fixed delay between attempts.
        scrollback_lines: Extra history lines to include, or None for the
            visible pane only.
    """

    timeout_seconds: float = Field(
        default=constants.CAPTURE_TIMEOUT_SECONDS, gt=0.0, le=30.0
    )
    retries: int = Field(default=constants.CAPTURE_RETRIES, ge=0, le=2)
    backoff_seconds: float = Field(
        default=constants.CAPTURE_BACKOFF_SECONDS, ge=0.0, le=10.0
    )
    scrollback_lines: int | None = Field(default=None, ge=0)


class BufferConfig(BaseModel):
    """Settings for per-session output buffers and truncation.

    Attributes:
        capacity: Entries kept per session.
        compression_enabled: Compress items longer than the threshold.
        compression_threshold: Item length (characters) that triggers compression.
        compression_keep_ratio: Fraction of the threshold above which
            compressed text is reduced to important or recent lines.
        important_line_fraction: Important-line filtering applies only when
            matching lines are under this fraction of all lines.
        importance_keywords: Words that mark a line as important.
        max_lines: Line cap for raw captured text.
        chars_per_line: Per-line character budget for pathological output.
        max_activity_age_seconds: Activity records older than this are pruned.
        high_memory_bytes: Buffer usage that tightens pruning.
        critical_memory_bytes: Buffer usage that resets buffers.
    """

    capacity: int = Field(default=constants.BUFFER_CAPACITY, ge=1, le=10000)
    compression_enabled: bool = True
    compression_threshold: int = Field(default=constants.COMPRESSION_THRESHOLD, ge=100)
    compression_keep_ratio: float = Field(
        default=constants.COMPRESSION_KEEP_RATIO, gt=0.0, le=1.0
    )
    important_line_fraction: float = Field(
        default=constants.IMPORTANT_LINE_FRACTION, gt=0.0, le=1.0
    )
    importance_keywords: list[str] = Field(
        default_factory=lambda: list(constants.IMPORTANCE_KEYWORDS)
    )
    max_lines: int = Field(default=constants.MAX_OUTPUT_LINES, ge=1)
    chars_per_line: int = Field(default=constants.CHARS_PER_LINE, ge=1)
    max_activity_age_seconds: float = Field(
        default=constants.MAX_ACTIVITY_AGE_SECONDS, gt=0.0
    )
    high_memory_bytes: int = Field(default=constants.HIGH_MEMORY_BYTES, gt=0)
    critical_memory_bytes: int = Field(default=constants.CRITICAL_MEMORY_BYTES, gt=0)

    @model_validator(mode="after")
    def check_memory_thresholds(self) -> Self:
        if self.critical_memory_bytes < self.high_memory_bytes:
            raise ValueError("critical_memory_bytes must be >= high_memory_bytes")
        return self


class DetectionConfig(BaseModel):
    """Settings for activity and idle detection."""

    idle_timeout_seconds: float = Field(default=constants.IDLE_TIMEOUT_SECONDS, gt=0.0)
    recent_lines: int = Field(default=constants.RECENT_LINES, ge=1)
    description_length: int = Field(default=constants.DESCRIPTION_LENGTH, ge=10)


class MonitoringConfig(BaseModel):
    """Settings for the monitoring scheduler.

    Example shepherd.yaml:
        monitoring:
          active_interval_seconds: 10
          idle_interval_seconds: 30
          max_retries: 3
          graceful_degradation: true
    """

    active_interval_seconds: float = Field(
        default=constants.ACTIVE_INTERVAL_SECONDS, gt=0.0
    )
    idle_interval_seconds: float = Field(
        default=constants.IDLE_INTERVAL_SECONDS, gt=0.0
    )
    max_retries: int = Field(default=constants.MAX_RETRIES, ge=1, le=20)
    graceful_degradation: bool = True
    fallback_grace_seconds: float = Field(
        default=constants.FALLBACK_GRACE_SECONDS, ge=0.0
    )
    degraded_interval_ceiling_seconds: float = Field(
        default=constants.DEGRADED_INTERVAL_CEILING_SECONDS, gt=0.0
    )
    slow_check_ms: float = Field(default=constants.SLOW_CHECK_MS, gt=0.0)
    fast_check_ms: float = Field(default=constants.FAST_CHECK_MS, ge=0.0)
    interval_scale_up: float = Field(default=constants.INTERVAL_SCALE_UP, ge=1.0)
    interval_scale_down: float = Field(
        default=constants.INTERVAL_SCALE_DOWN, gt=0.0, le=1.0
    )
    active_interval_floor_seconds: float = Field(
        default=constants.ACTIVE_INTERVAL_FLOOR_SECONDS, gt=0.0
    )
    active_interval_ceiling_seconds: float = Field(
        default=constants.ACTIVE_INTERVAL_CEILING_SECONDS, gt=0.0
    )
    idle_interval_floor_seconds: float = Field(
        default=constants.IDLE_INTERVAL_FLOOR_SECONDS, gt=0.0
    )
    idle_interval_ceiling_seconds: float = Field(
        default=constants.IDLE_INTERVAL_CEILING_SECONDS, gt=0.0
    )
    max_error_age_seconds: float = Field(
        default=constants.MAX_ERROR_AGE_SECONDS, gt=0.0
    )
    duration_window: int = Field(default=constants.DURATION_WINDOW, ge=1, le=10000)
    optimize_interval_seconds: float = Field(default=300.0, gt=0.0)

    @model_validator(mode="after")
    def check_bounds(self) -> Self:
        if self.fast_check_ms >= self.slow_check_ms:
            raise ValueError("fast_check_ms must be below slow_check_ms")
        if self.active_interval_floor_seconds > self.active_interval_ceiling_seconds:
            raise ValueError("active interval floor exceeds its ceiling")
        if self.idle_interval_floor_seconds > self.idle_interval_ceiling_seconds:
            raise ValueError("idle interval floor exceeds its ceiling")
        return self


class RateLimitConfig(BaseModel):
    """Settings for rate-limit detection.

    Attributes:
        signatures: Regular expressions (case-insensitive) that identify a
            rate-limit message in captured output.
        default_timezone: Zone used when a reset time names none, or an
            unknown one.
        fallback_delay_seconds: Delay used when no reset time can be parsed.
    """

    signatures: list[str] = Field(
        default_factory=lambda: list(constants.RATE_LIMIT_SIGNATURES)
    )
    default_timezone: str = "UTC"
    fallback_delay_seconds: float = Field(
        default=constants.RATE_LIMIT_FALLBACK_SECONDS, gt=0.0
    )


class TaskConfig(BaseModel):
    """Settings for dispatching and tracking tasks.

    Attributes:
        dispatch_session: Session id that receives task assignments.
        reset_command: Sent before each assignment to clear the session, or
            None to skip.
        settle_seconds: Pause between the reset command and the assignment.
        queue_interval_seconds: How often the queue is processed.
        stuck_after_seconds: In-progress tasks untouched this long are reported.
        completion_patterns: Regexes marking a task as finished in output.
        workspace_root: Directory holding one sub-directory per project.
        artifact_suffixes: File suffixes listed when resuming a task.
        marker_root: Directory with per-task completion marker files, or None.
        required_markers: Marker files that must all exist for completion.
    """

    dispatch_session: str = constants.DISPATCH_SESSION
    reset_command: str | None = constants.RESET_COMMAND
    settle_seconds: float = Field(default=0.5, ge=0.0)
    queue_interval_seconds: float = Field(
        default=constants.QUEUE_INTERVAL_SECONDS, gt=0.0
    )
    stuck_after_seconds: float = Field(default=constants.STUCK_AFTER_SECONDS, gt=0.0)
    completion_patterns: list[str] | None = None
    workspace_root: Path = Field(default_factory=lambda: Path("workspace"))
    artifact_suffixes: list[str] = Field(
        default_factory=lambda: list(constants.ARTIFACT_SUFFIXES)
    )
    marker_root: Path | None = None
    required_markers: list[str] = Field(
        default_factory=lambda: list(constants.REQUIRED_MARKERS)
    )


class StoreConfig(BaseModel):
    """Settings for the task store."""

    path: Path = Field(default_factory=lambda: Path(".shepherd/tasks.json"))


class YamlConfigSource(PydanticBaseSettingsSource):
    """Settings source that reads one YAML file."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | None = None,
    ):
        super().__init__(settings_cls)
        self.yaml_file = yaml_file
        self._config_data: dict[str, Any] = {}
        if yaml_file and yaml_file.exists():
            try:
                with open(yaml_file) as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(
                    message=f"Invalid YAML in {yaml_file}: {e}",
                    field=None,
                    value=None,
                ) from e
            if loaded is None:
                logger.warning("config_file_empty", path=str(yaml_file))
            elif not isinstance(loaded, dict):
                raise ConfigError(
                    message=f"Top level of {yaml_file} must be a mapping",
                    field=None,
                    value=type(loaded).__name__,
                )
            else:
                self._config_data = loaded

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        if field_name in self._config_data:
            return self._config_data[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._config_data


class ShepherdConfig(BaseSettings):
    """Root configuration object containing all Shepherd settings."""

    model_config = SettingsConfigDict(
        env_prefix="SHEPHERD_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    sessions: list[SessionTargetConfig] = Field(default_factory=_default_sessions)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    tasks: TaskConfig = Field(default_factory=TaskConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    verbosity: Literal["error", "warning", "info", "debug"] = "warning"

    @model_validator(mode="after")
    def check_unique_sessions(self) -> Self:
        seen: set[str] = set()
        for session in self.sessions:
            if session.session_id in seen:
                raise ValueError(f"Duplicate session_id: {session.session_id}")
            seen.add(session.session_id)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Order settings sources, highest priority first.

        1. Init arguments
        2. Environment variables (SHEPHERD_*)
        3. Project YAML config (./shepherd.yaml or the --config path)
        4. User YAML config (~/.config/shepherd/config.yaml)
        """
        project_config_path = (
            _project_config_override.get() or Path.cwd() / PROJECT_CONFIG_NAME
        )
        return (
            init_settings,
            env_settings,
            YamlConfigSource(settings_cls, project_config_path),
            YamlConfigSource(settings_cls, get_user_config_path()),
        )

    def session_targets(self) -> list[SessionTarget]:
        return [session.to_target() for session in self.sessions]


def get_user_config_path() -> Path:
    """Get the path to the user configuration file.

    Returns:
        Path to ~/.config/shepherd/config.yaml
    """
    return Path.home() / ".config" / "shepherd" / "config.yaml"


def load_config(config_path: Path | None = None) -> ShepherdConfig:
    """Load configuration with hierarchy: defaults -> user -> project -> env.

    Args:
        config_path: Optional project config file. Defaults to ./shepherd.yaml.

    Returns:
        ShepherdConfig instance with merged configuration.

    Raises:
        ConfigError: If a config file is malformed or a value is invalid.
    """
    if config_path is not None and not config_path.exists():
        raise ConfigError(
            message=f"Config file not found: {config_path}",
            field=None,
            value=str(config_path),
        )
    if config_path is None and not (Path.cwd() / PROJECT_CONFIG_NAME).exists():
        logger.info("project_config_missing", using="defaults")

    token = _project_config_override.set(config_path)
    try:
        return ShepherdConfig()
    except ValidationError as e:
        first_error = e.errors()[0]
        field = ".".join(str(loc) for loc in first_error["loc"])
        raise ConfigError(
            message=f"Invalid configuration: {first_error['msg']}",
            field=field or None,
            value=first_error.get("input"),
        ) from e
    finally:
        _project_config_override.reset(token)
