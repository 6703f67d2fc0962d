"""Tests for the ``shepherd status`` command."""

from __future__ import annotations

import json
from datetime import UTC, datetime

from click.testing import CliRunner

from shepherd.config import ShepherdConfig
from shepherd.main import cli
from shepherd.models import RateLimitState
from shepherd.utils.atomic import atomic_write_json


def test_text_status_without_tasks(
    cli_runner: CliRunner, sample_config: ShepherdConfig
) -> None:
    result = cli_runner.invoke(cli, ["status"])

    assert result.exit_code == 0, result.output
    assert "Not rate limited" in result.output
    assert "No tasks." in result.output


def test_json_status_counts_tasks(
    cli_runner: CliRunner, sample_config: ShepherdConfig
) -> None:
    for title in ("one", "two"):
        assert cli_runner.invoke(cli, ["tasks", "submit", title]).exit_code == 0

    result = cli_runner.invoke(cli, ["status", "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["tasks"] == {"pending": 2}
    assert payload["rate_limit"]["is_limited"] is False
    assert payload["store"] == str(sample_config.store.path)


def test_rate_limited_status(
    cli_runner: CliRunner, sample_config: ShepherdConfig
) -> None:
    state = RateLimitState(
        is_limited=True,
        paused_at=datetime(2026, 1, 15, 12, 0, tzinfo=UTC),
        next_retry_at=datetime(2026, 1, 15, 22, 0, tzinfo=UTC),
        retry_count=1,
        last_error_message="Claude usage limit reached",
    )
    atomic_write_json(
        sample_config.store.path,
        {"version": 1, "tasks": [], "rate_limit": state.model_dump(mode="json")},
    )

    result = cli_runner.invoke(cli, ["status"])

    assert result.exit_code == 0, result.output
    assert "Rate limited until 2026-01-15 22:00:00+00:00" in result.output
    assert "Claude usage limit reached" in result.output


def test_corrupt_store(cli_runner: CliRunner, sample_config: ShepherdConfig) -> None:
    sample_config.store.path.parent.mkdir(parents=True, exist_ok=True)
    sample_config.store.path.write_text("{not json")

    result = cli_runner.invoke(cli, ["status"])

    assert result.exit_code == 1
    assert "Corrupt task store" in result.output
