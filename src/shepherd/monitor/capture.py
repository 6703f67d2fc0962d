"""Bounded-latency capture of a session's visible text."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from shepherd import constants
from shepherd.exceptions import CaptureError, CaptureTimeoutError
from shepherd.logging import get_logger
from shepherd.models import SessionTarget
from shepherd.sessions import SessionDriver

__all__ = ["OutputCapture"]

logger = get_logger(__name__)


class OutputCapture:
    """Capture session output with a timeout and a small fixed retry budget.

    A single capture call takes at most about
    ``(retries + 1) * timeout + retries * backoff`` seconds.

    Example:
        ```python
        capture = OutputCapture(TmuxSessionDriver(), timeout=3.0, retries=2)
        text = await capture.capture(SessionTarget("worker1", "multiagent:0.1"))
        ```
    """

    def __init__(
        self,
        driver: SessionDriver,
        *,
        timeout: float = constants.CAPTURE_TIMEOUT_SECONDS,
        retries: int = constants.CAPTURE_RETRIES,
        backoff: float = constants.CAPTURE_BACKOFF_SECONDS,
    ) -> None:
        """Initialize the capture helper.

        Args:
            driver: Session driver that performs the actual capture.
            timeout: Seconds allowed per attempt.
            retries: Retries after the first failed attempt.
            backoff: Fixed delay in seconds between attempts.
        """
        self._driver = driver
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff

    @property
    def driver(self) -> SessionDriver:
        return self._driver

    async def capture(self, target: SessionTarget) -> str:
        """Return the visible text of ``target``.

        Raises:
            CaptureError: If every attempt failed. The last attempt's error
                is raised (``CaptureTimeoutError`` for a timeout).
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retries + 1),
            wait=wait_fixed(self._backoff),
            retry=retry_if_exception_type(CaptureError),
            before_sleep=self._log_retry(target),
            reraise=True,
        ):
            with attempt:
                return await self._capture_once(target)
        # AsyncRetrying either returns from the block above or re-raises
        raise CaptureError(
            f"Capture of {target.session_id} made no attempt",
            session_id=target.session_id,
        )

    async def _capture_once(self, target: SessionTarget) -> str:
        try:
            return await asyncio.wait_for(
                self._driver.capture(target), timeout=self._timeout
            )
        except TimeoutError as e:
            raise CaptureTimeoutError(
                f"Capture of {target.session_id} timed out after {self._timeout}s",
                session_id=target.session_id,
                timeout_seconds=self._timeout,
            ) from e

    @staticmethod
    def _log_retry(target: SessionTarget) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.debug(
                "capture_retry",
                session_id=target.session_id,
                attempt=retry_state.attempt_number,
                error=str(error) if error else None,
            )

        return before_sleep
