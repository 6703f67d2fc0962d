"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from shepherd.config import ShepherdConfig, get_user_config_path, load_config
from shepherd.exceptions import ConfigError
from shepherd.models import SessionTarget


@pytest.fixture
def project_dir(
    clean_env: None,
    temp_dir: Path,
    isolated_home: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Path:
    monkeypatch.chdir(temp_dir)
    return temp_dir


def test_load_defaults_when_no_config(project_dir: Path) -> None:
    """Defaults describe the five-pane president/boss/worker layout."""
    config = load_config()

    assert isinstance(config, ShepherdConfig)
    assert [s.session_id for s in config.sessions] == [
        "president",
        "boss1",
        "worker1",
        "worker2",
        "worker3",
    ]
    assert config.monitoring.active_interval_seconds == 10.0
    assert config.monitoring.idle_interval_seconds == 30.0
    assert config.monitoring.max_retries == 3
    assert config.tasks.dispatch_session == "president"
    assert config.rate_limit.default_timezone == "UTC"
    assert config.verbosity == "warning"


def test_load_project_config(sample_config: ShepherdConfig) -> None:
    assert [s.session_id for s in sample_config.sessions] == [
        "president",
        "worker1",
        "worker2",
    ]
    assert sample_config.capture.retries == 0
    assert sample_config.tasks.settle_seconds == 0
    assert sample_config.store.path == Path(".shepherd/tasks.json")


def test_session_targets(sample_config: ShepherdConfig) -> None:
    targets = sample_config.session_targets()

    assert targets[1] == SessionTarget("worker1", "multiagent:0.1", role="worker")


def test_env_var_overrides(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """SHEPHERD_* variables override YAML values without replacing sections."""
    (project_dir / "shepherd.yaml").write_text(
        "monitoring:\n  active_interval_seconds: 12\n  max_retries: 3\n"
    )
    monkeypatch.setenv("SHEPHERD_MONITORING__MAX_RETRIES", "5")

    config = load_config()

    assert config.monitoring.max_retries == 5
    assert config.monitoring.active_interval_seconds == 12


def test_project_config_overrides_user_config(
    project_dir: Path, isolated_home: Path
) -> None:
    user_config = get_user_config_path()
    user_config.parent.mkdir(parents=True)
    user_config.write_text("verbosity: debug\ncapture:\n  retries: 2\n")
    (project_dir / "shepherd.yaml").write_text("verbosity: info\n")

    config = load_config()

    assert user_config.is_relative_to(isolated_home)
    assert config.verbosity == "info"
    assert config.capture.retries == 2


def test_explicit_config_path(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("verbosity: info\n")
    custom = project_dir / "custom.yaml"
    custom.write_text("verbosity: error\n")

    assert load_config(custom).verbosity == "error"
    assert load_config().verbosity == "info"


def test_missing_explicit_path_raises(project_dir: Path) -> None:
    with pytest.raises(ConfigError, match="not found") as exc_info:
        load_config(project_dir / "absent.yaml")

    assert exc_info.value.value == str(project_dir / "absent.yaml")


def test_empty_config_file_uses_defaults(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("")

    assert load_config().monitoring.max_retries == 3


def test_invalid_value_raises_config_error(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("monitoring:\n  max_retries: 0\n")

    with pytest.raises(ConfigError) as exc_info:
        load_config()

    assert exc_info.value.field == "monitoring.max_retries"
    assert exc_info.value.value == 0


def test_invalid_yaml_raises_config_error(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("sessions: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config()


def test_non_mapping_yaml_raises_config_error(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("- just\n- a list\n")

    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config()


def test_duplicate_session_ids_rejected(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text(
        "sessions:\n"
        "  - {session_id: worker1, target: 'multiagent:0.1'}\n"
        "  - {session_id: worker1, target: 'multiagent:0.2'}\n"
    )

    with pytest.raises(ConfigError, match="Duplicate session_id"):
        load_config()


def test_fast_threshold_must_be_below_slow(project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text(
        "monitoring:\n  fast_check_ms: 900\n  slow_check_ms: 800\n"
    )

    with pytest.raises(ConfigError) as exc_info:
        load_config()

    assert exc_info.value.field == "monitoring"
    assert "fast_check_ms" in exc_info.value.message
