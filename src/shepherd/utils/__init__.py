"""Shared helpers: clocks, atomic writes, concurrency and loops."""

from __future__ import annotations

from shepherd.utils.async_utils import run_parallel
from shepherd.utils.atomic import atomic_write_json, atomic_write_text
from shepherd.utils.clock import Clock, utc_now
from shepherd.utils.loops import RepeatingTask

__all__ = [
    "Clock",
    "RepeatingTask",
    "atomic_write_json",
    "atomic_write_text",
    "run_parallel",
    "utc_now",
]
