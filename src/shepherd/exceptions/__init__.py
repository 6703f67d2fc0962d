"""Shepherd exception hierarchy.

All exceptions can be imported from this package:
    from shepherd.exceptions import CaptureError, PersistenceError
"""

from __future__ import annotations

from shepherd.exceptions.base import ShepherdError
from shepherd.exceptions.classification import ClassificationError
from shepherd.exceptions.config import ConfigError
from shepherd.exceptions.persistence import PersistenceError
from shepherd.exceptions.sessions import (
    AggregateCaptureFailure,
    CaptureError,
    CaptureTimeoutError,
    SessionInputError,
    SessionNotFoundError,
)
from shepherd.exceptions.tasks import (
    TaskError,
    TaskNotFoundError,
    TaskTransitionError,
)

__all__ = [
    # Base
    "ShepherdError",
    # Sessions
    "CaptureError",
    "CaptureTimeoutError",
    "SessionNotFoundError",
    "SessionInputError",
    "AggregateCaptureFailure",
    # Classification
    "ClassificationError",
    # Config
    "ConfigError",
    # Persistence
    "PersistenceError",
    # Tasks
    "TaskError",
    "TaskNotFoundError",
    "TaskTransitionError",
]
