"""Shared fixtures for CLI command tests.

Fixtures from the parent conftest.py used here:
- cli_runner: Click CLI test runner
- sample_config: shepherd.yaml loaded from a temp working directory
"""

from __future__ import annotations

import pytest
from rich.console import Console


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> Console:
    """Replace the shared Rich console with a wide one so tables never wrap."""
    wide = Console(width=200)
    for module in ("run", "status", "tasks"):
        monkeypatch.setattr(f"shepherd.cli.commands.{module}.console", wide)
    return wide
