"""In-memory draft store with shallow-merge mutations."""

import logging
import time
from typing import Any, Callable, Optional

from ..models import CacheEntry, DraftRecord, DraftStatus
from ..utils import now_ms

logger = logging.getLogger(__name__)

MutationListener = Callable[[DraftRecord], None]


class DraftStore:
    """Holds the current draft record.

    Each mutation shallow-merges a partial into the record, stamps
    ``last_modified_at`` and resets the status to ``draft``. Listeners are
    called synchronously, in subscription order, after every mutation.
    """

    def __init__(
        self,
        encounter_id: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._record = DraftRecord.empty(encounter_id, now_ms(clock))
        self._listeners: list[MutationListener] = []

    @property
    def record(self) -> DraftRecord:
        """The live record. Treat as read-only; use snapshot() to keep a copy."""
        return self._record

    def snapshot(self) -> DraftRecord:
        return self._record.copy()

    def subscribe(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    def update(self, **partial: Any) -> None:
        """Merge a partial update into the record.

        Raises:
            ValueError: If a field name is not a mutable draft field
        """
        self._record = self._record.merged(partial, now_ms(self._clock))
        logger.debug("Draft updated: %s", ", ".join(sorted(partial)))
        for listener in self._listeners:
            listener(self._record)

    def save_transcription(self, text: str) -> None:
        self.update(transcription_text=text)

    def save_audio(self, blob: bytes) -> None:
        self.update(audio_payload=blob)

    def save_video(self, blob: bytes) -> None:
        self.update(video_payload=blob)

    def save_images(self, images: list[bytes]) -> None:
        self.update(images=images)

    def save_form_fields(self, form_fields: dict[str, Any]) -> None:
        self.update(form_fields=form_fields)

    def set_status(self, status: DraftStatus) -> None:
        self._record.status = status

    def set_encounter_id(self, encounter_id: Optional[int]) -> None:
        self._record.encounter_id = encounter_id

    def hydrate(
        self,
        partial: dict[str, Any],
        timestamp: Optional[int] = None,
        status: DraftStatus = DraftStatus.SAVED,
    ) -> None:
        """Merge persisted fields without notifying listeners.

        Args:
            partial: Cached or server-side fields
            timestamp: last_modified_at to keep (defaults to now)
            status: Status to mark the record with
        """
        if timestamp is None:
            timestamp = now_ms(self._clock)
        record = self._record.merged(partial, timestamp)
        record.status = status
        self._record = record

    def hydrate_from_cache(self, entry: CacheEntry) -> None:
        self.hydrate(entry.as_partial(), timestamp=entry.timestamp)

    def reset(self) -> None:
        """Replace the record with an empty draft stamped now."""
        self._record = DraftRecord.empty(self._record.encounter_id, now_ms(self._clock))
