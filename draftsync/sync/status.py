"""Publishes the synchronization state to the owning UI."""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..models import DraftStatus, StatusSnapshot

logger = logging.getLogger(__name__)

StatusListener = Callable[[StatusSnapshot], None]


class StatusPublisher:
    """Tracks the last published status and notifies listeners on change."""

    def __init__(self, status: DraftStatus = DraftStatus.DRAFT):
        self._snapshot = StatusSnapshot(status=status)
        self._listeners: list[StatusListener] = []

    @property
    def snapshot(self) -> StatusSnapshot:
        return self._snapshot

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(
        self, status: DraftStatus, last_saved: Optional[datetime] = None
    ) -> StatusSnapshot:
        """Publish a status, keeping the previous last_saved unless given."""
        if last_saved is None:
            last_saved = self._snapshot.last_saved
        snapshot = StatusSnapshot(status=status, last_saved=last_saved)
        if snapshot == self._snapshot:
            return snapshot

        logger.debug("Draft status %s -> %s", self._snapshot.status.value, status.value)
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot
