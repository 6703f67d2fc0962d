"""Structured-concurrency helpers built on anyio."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import anyio

__all__ = ["run_parallel"]

T = TypeVar("T")


async def run_parallel(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    *,
    limit: int | None = None,
) -> list[T | Exception]:
    """Run zero-argument coroutine functions concurrently and settle them all.

    Every task runs to completion inside one anyio task group. A task that
    raises an ``Exception`` does not cancel its siblings; the exception takes
    its place in the result list. Cancellation and other ``BaseException``s
    propagate.

    Args:
        tasks: Coroutine functions to run.
        limit: Maximum number running at once, or None for no limit.

    Returns:
        Results (or raised exceptions) in the same order as ``tasks``.

    Example:
        ```python
        results = await run_parallel(
            [functools.partial(capture.capture, t) for t in targets], limit=4
        )
        failures = [r for r in results if isinstance(r, Exception)]
        ```
    """
    if not tasks:
        return []

    results: list[T | Exception | None] = [None] * len(tasks)
    limiter = anyio.CapacityLimiter(limit) if limit else None

    async def settle(index: int, task_fn: Callable[[], Awaitable[T]]) -> None:
        try:
            if limiter is None:
                results[index] = await task_fn()
            else:
                async with limiter:
                    results[index] = await task_fn()
        except Exception as exc:
            results[index] = exc

    async with anyio.create_task_group() as tg:
        for index, task_fn in enumerate(tasks):
            tg.start_soon(settle, index, task_fn)

    return results  # type: ignore[return-value]
