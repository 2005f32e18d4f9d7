"""Linear backoff for failed remote saves."""

import asyncio
import logging
from typing import Callable, Optional

from ..utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_BASE_DELAY_MS

logger = logging.getLogger(__name__)

RetryCallback = Callable[[int, int], None]


class RetryController:
    """Schedules retries after failed saves.

    The delay before retry ``n`` is ``base_delay * n``. The attempt counter
    counts consecutive failures and is reset only by a successful save;
    once it reaches ``max_retries`` no further retry is scheduled, and
    later failures (for example after a fresh mutation) keep the counter
    where it is instead of starting over.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: int = DEFAULT_RETRY_BASE_DELAY_MS,
    ):
        """Initialize the retry controller.

        Args:
            max_retries: Consecutive failures retried automatically
            base_delay: Backoff step in milliseconds
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.attempt_count = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._stopped = False

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_retries

    @property
    def retry_pending(self) -> bool:
        return self._handle is not None

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._stopped = False

    def delay_for(self, attempt: int) -> int:
        """Return the backoff in milliseconds before retry ``attempt`` (1-based)."""
        return self.base_delay * attempt

    def record_success(self) -> None:
        self.attempt_count = 0
        self.cancel()

    def record_failure(self, on_retry: RetryCallback) -> Optional[int]:
        """Schedule the next retry if the budget allows.

        Args:
            on_retry: Called as on_retry(attempt_number, delay_ms) when due

        Returns:
            Delay in milliseconds, or None if no retry was scheduled
        """
        if self._stopped or self._loop is None:
            return None

        if self.exhausted:
            logger.warning(
                "Auto-save failed %d time(s) in a row, not retrying automatically",
                self.attempt_count,
            )
            return None

        self.attempt_count += 1
        attempt = self.attempt_count
        delay = self.delay_for(attempt)

        self.cancel()
        self._handle = self._loop.call_later(
            delay / 1000, self._fire, on_retry, attempt, delay
        )
        logger.info(f"Retrying auto-save in {delay} ms (attempt {attempt})")
        return delay

    def _fire(self, on_retry: RetryCallback, attempt: int, delay: int) -> None:
        self._handle = None
        if self._stopped:
            return
        on_retry(attempt, delay)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def stop(self) -> None:
        self._stopped = True
        self.cancel()
