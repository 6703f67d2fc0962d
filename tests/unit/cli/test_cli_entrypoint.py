"""Tests for the root ``shepherd`` command group."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from shepherd import __version__
from shepherd.config import ShepherdConfig
from shepherd.main import cli


@pytest.fixture
def project_dir(
    clean_env: None,
    temp_dir: Path,
    isolated_home: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Path:
    monkeypatch.chdir(temp_dir)
    return temp_dir


def test_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert f"shepherd, version {__version__}" in result.output


def test_no_subcommand_prints_help(
    cli_runner: CliRunner, sample_config: ShepherdConfig
) -> None:
    result = cli_runner.invoke(cli, [])

    assert result.exit_code == 0
    for command in ("run", "status", "tasks"):
        assert command in result.output


def test_missing_config_file(cli_runner: CliRunner, project_dir: Path) -> None:
    result = cli_runner.invoke(cli, ["--config", "absent.yaml", "status"])

    assert result.exit_code == 1
    assert "Config file not found: absent.yaml" in result.output


def test_invalid_config_value(cli_runner: CliRunner, project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("capture:\n  retries: 9\n")

    result = cli_runner.invoke(cli, ["status"])

    assert result.exit_code == 1
    assert "Field: capture.retries" in result.output
    assert "Value: 9" in result.output


@pytest.mark.parametrize(
    ("args", "level"),
    [
        ([], logging.WARNING),
        (["-v"], logging.INFO),
        (["-vv"], logging.DEBUG),
        (["-q", "-vv"], logging.ERROR),
    ],
)
def test_verbosity_flags(
    cli_runner: CliRunner,
    sample_config: ShepherdConfig,
    args: list[str],
    level: int,
) -> None:
    result = cli_runner.invoke(cli, [*args])

    assert result.exit_code == 0
    assert logging.getLogger().level == level


def test_verbosity_from_config(cli_runner: CliRunner, project_dir: Path) -> None:
    (project_dir / "shepherd.yaml").write_text("verbosity: debug\n")

    result = cli_runner.invoke(cli, [])

    assert result.exit_code == 0
    assert logging.getLogger().level == logging.DEBUG
