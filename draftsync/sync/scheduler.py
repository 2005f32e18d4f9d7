"""Timers deciding when a draft flush is attempted."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

FlushRequest = Callable[[str], None]


class SyncScheduler:
    """Owns the debounce and periodic flush timers.

    The debounce timer restarts on every mutation and fires once the draft
    has been quiet for ``debounce_delay`` ms. The periodic timer fires every
    ``save_interval`` ms and requests a flush only when ``should_flush()``
    allows it. Both are cancelled by :meth:`stop`; nothing fires after that.
    """

    def __init__(
        self,
        request_flush: FlushRequest,
        debounce_delay: int,
        save_interval: int,
        should_flush: Optional[Callable[[], bool]] = None,
    ):
        """Initialize the scheduler.

        Args:
            request_flush: Called with the trigger name ("debounce" or
                "periodic") when a flush is due
            debounce_delay: Trailing debounce window in milliseconds
            save_interval: Periodic cadence in milliseconds
            should_flush: Gate for periodic flushes (defaults to always)
        """
        self._request_flush = request_flush
        self.debounce_delay = debounce_delay
        self.save_interval = save_interval
        self._should_flush = should_flush or (lambda: True)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._periodic_handle: Optional[asyncio.TimerHandle] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._loop is not None and not self._stopped

    @property
    def debounce_pending(self) -> bool:
        return self._debounce_handle is not None

    @property
    def periodic_active(self) -> bool:
        return self._periodic_handle is not None

    def start(self, loop: asyncio.AbstractEventLoop, periodic: bool = True) -> None:
        """Bind to an event loop and optionally start the periodic timer."""
        self._loop = loop
        self._stopped = False
        if periodic:
            self.start_periodic()

    def start_periodic(self) -> None:
        if not self.running or self._periodic_handle is not None:
            return
        self._schedule_periodic()

    def _schedule_periodic(self) -> None:
        if self._loop is None:
            raise RuntimeError("Scheduler is not bound to an event loop")
        self._periodic_handle = self._loop.call_later(
            self.save_interval / 1000, self._on_periodic
        )

    def _on_periodic(self) -> None:
        self._periodic_handle = None
        if self._stopped:
            return
        self._schedule_periodic()
        if self._should_flush():
            logger.debug("Periodic timer fired, requesting flush")
            self._request_flush("periodic")
        else:
            logger.debug("Periodic timer fired, nothing to flush")

    def notify_mutation(self) -> None:
        """Restart the debounce window."""
        if self._loop is None or self._stopped:
            return
        self.cancel_debounce()
        self._debounce_handle = self._loop.call_later(
            self.debounce_delay / 1000, self._on_debounce
        )

    def _on_debounce(self) -> None:
        self._debounce_handle = None
        if self._stopped:
            return
        logger.debug("Debounce window elapsed, requesting flush")
        self._request_flush("debounce")

    def cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def stop(self) -> None:
        self._stopped = True
        self.cancel_debounce()
        if self._periodic_handle is not None:
            self._periodic_handle.cancel()
            self._periodic_handle = None
