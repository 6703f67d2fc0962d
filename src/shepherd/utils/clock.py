"""Time helpers.

Components take a ``clock`` callable instead of calling ``datetime.now``
directly, so tests can drive time explicitly.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

__all__ = ["Clock", "utc_now"]

#: Zero-argument callable returning the current aware UTC time
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)
