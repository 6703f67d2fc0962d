"""Shared test fixtures for the Shepherd test suite.

Available Fixtures
==================

Time (from tests/fixtures/clock.py)
-----------------------------------

Classes:
    ManualClock: Callable clock that only moves on ``advance()``.

Fixtures:
    clock: ManualClock starting at 2026-01-15 12:00 UTC.

Sessions (from tests/fixtures/sessions.py)
------------------------------------------

Classes:
    FakeSessionDriver: SessionDriver with scripted output and failures per
        session id. Records input sent with ``send_input``.

Fixtures:
    fake_driver: Fresh FakeSessionDriver.
    session_targets: Three worker SessionTargets (worker1-worker3).

Tasks (from tests/fixtures/tasks.py)
------------------------------------

Fixtures:
    memory_store: Empty InMemoryTaskStore.
    mock_dispatcher: MagicMock dispatcher with AsyncMock assign/resume.
    make_task: Factory for Task records.

Configuration (from tests/fixtures/config.py)
---------------------------------------------

Fixtures:
    isolated_home: HOME pointed at a temp directory.
    sample_config: ShepherdConfig loaded from a temp shepherd.yaml.

Example:
    >>> @pytest.mark.asyncio
    ... async def test_offline(fake_driver, session_targets, clock):
    ...     fake_driver.fail("worker1")
    ...     ...
"""

from __future__ import annotations

from tests.fixtures.clock import START, ManualClock, clock
from tests.fixtures.config import isolated_home, sample_config
from tests.fixtures.sessions import FakeSessionDriver, fake_driver, session_targets
from tests.fixtures.tasks import make_task, memory_store, mock_dispatcher

__all__ = [
    # Time
    "START",
    "ManualClock",
    "clock",
    # Sessions
    "FakeSessionDriver",
    "fake_driver",
    "session_targets",
    # Tasks
    "make_task",
    "memory_store",
    "mock_dispatcher",
    # Configuration
    "isolated_home",
    "sample_config",
]
