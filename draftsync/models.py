"""Data models for encounter drafts."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

MUTABLE_FIELDS = (
    "patient_id",
    "transcription_text",
    "audio_payload",
    "video_payload",
    "images",
    "form_fields",
)
"""Record fields a mutation may set"""


class DraftStatus(str, Enum):
    """Synchronization state of a draft."""

    DRAFT = "draft"
    """Local changes not yet confirmed by the server"""

    SAVING = "saving"
    """A remote save is in flight"""

    SAVED = "saved"
    """The server holds the current content"""

    ERROR = "error"
    """The last remote save failed"""


@dataclass
class DraftRecord:
    """The in-progress encounter payload held in memory."""

    encounter_id: Optional[int] = None
    patient_id: Optional[str] = None
    transcription_text: Optional[str] = None
    audio_payload: Optional[bytes] = None
    video_payload: Optional[bytes] = None
    images: Optional[list[bytes]] = None
    form_fields: dict[str, Any] = field(default_factory=dict)
    last_modified_at: int = 0
    """Epoch milliseconds of the most recent mutation"""
    status: DraftStatus = DraftStatus.DRAFT

    @classmethod
    def empty(cls, encounter_id: Optional[int], timestamp: int) -> "DraftRecord":
        """Create an empty draft stamped with the given time."""
        return cls(encounter_id=encounter_id, last_modified_at=timestamp)

    def merged(self, partial: dict[str, Any], timestamp: int) -> "DraftRecord":
        """Shallow-merge a partial update, last write wins per field.

        Args:
            partial: Mapping of field name to new value
            timestamp: Epoch milliseconds to stamp as last_modified_at

        Returns:
            New DraftRecord with status reset to draft

        Raises:
            ValueError: If partial names a field that cannot be mutated
        """
        unknown = set(partial) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown draft field(s): {', '.join(sorted(unknown))}")

        updates = dict(partial)
        for name in ("audio_payload", "video_payload"):
            if updates.get(name) is not None:
                updates[name] = bytes(updates[name])
        if updates.get("images") is not None:
            updates["images"] = [bytes(image) for image in updates["images"]]
        if "form_fields" in updates:
            updates["form_fields"] = dict(updates["form_fields"] or {})

        return replace(
            self, **updates, last_modified_at=timestamp, status=DraftStatus.DRAFT
        )

    def copy(self) -> "DraftRecord":
        """Return a snapshot that shares no mutable containers with self."""
        return replace(
            self,
            images=list(self.images) if self.images is not None else None,
            form_fields=dict(self.form_fields),
        )

    @property
    def payload_size(self) -> int:
        """Total size of the binary payloads in bytes."""
        size = len(self.audio_payload or b"") + len(self.video_payload or b"")
        return size + sum(len(image) for image in self.images or [])


@dataclass
class CacheEntry:
    """Durable, binary-free projection of a DraftRecord."""

    key: str
    """Cache key ("autosave_<id>" or "autosave_temp")"""

    timestamp: int
    """Epoch milliseconds copied from DraftRecord.last_modified_at"""

    status: DraftStatus = DraftStatus.DRAFT
    patient_id: Optional[str] = None
    transcription_text: Optional[str] = None
    form_fields: Optional[dict[str, Any]] = None

    @classmethod
    def from_record(cls, key: str, record: DraftRecord) -> "CacheEntry":
        """Project a record, dropping every binary field."""
        return cls(
            key=key,
            timestamp=record.last_modified_at,
            status=record.status,
            patient_id=record.patient_id,
            transcription_text=record.transcription_text,
            form_fields=dict(record.form_fields) if record.form_fields else None,
        )

    def to_dict(self) -> dict:
        """Convert entry to the JSON object stored on disk."""
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "status": self.status.value,
        }
        if self.patient_id is not None:
            data["patientId"] = self.patient_id
        if self.transcription_text is not None:
            data["transcriptionText"] = self.transcription_text
        if self.form_fields is not None:
            data["formFields"] = self.form_fields
        return data

    @classmethod
    def from_dict(cls, key: str, data: dict) -> "CacheEntry":
        """Create CacheEntry from the stored JSON object.

        Raises:
            KeyError: If the timestamp is missing
            ValueError: If timestamp or status are malformed
        """
        timestamp = data["timestamp"]
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            raise ValueError(f"Invalid cache timestamp: {timestamp!r}")
        form_fields = data.get("formFields")
        if form_fields is not None and not isinstance(form_fields, dict):
            raise ValueError("Invalid cached formFields")
        return cls(
            key=key,
            timestamp=int(timestamp),
            status=DraftStatus(data.get("status", DraftStatus.DRAFT.value)),
            patient_id=data.get("patientId"),
            transcription_text=data.get("transcriptionText"),
            form_fields=form_fields,
        )

    def as_partial(self) -> dict[str, Any]:
        """Return the cached fields as a DraftRecord partial."""
        partial: dict[str, Any] = {}
        if self.patient_id is not None:
            partial["patient_id"] = self.patient_id
        if self.transcription_text is not None:
            partial["transcription_text"] = self.transcription_text
        if self.form_fields is not None:
            partial["form_fields"] = self.form_fields
        return partial


@dataclass
class SyncAttempt:
    """One flush of the draft to the server. Never persisted."""

    attempt_number: int
    """1-based count of consecutive attempts since the last success"""

    payload_snapshot: DraftRecord
    scheduled_delay: int = 0
    """Milliseconds waited before this attempt (0 unless it is a retry)"""

    generation: int = 0
    trigger: str = "manual"


@dataclass(frozen=True)
class StatusSnapshot:
    """Synchronization state exposed to the owning UI."""

    status: DraftStatus
    last_saved: Optional[datetime] = None

    @property
    def is_saving(self) -> bool:
        return self.status is DraftStatus.SAVING

    @property
    def has_unsaved_changes(self) -> bool:
        return self.status in (DraftStatus.DRAFT, DraftStatus.ERROR)

    @property
    def is_error(self) -> bool:
        return self.status is DraftStatus.ERROR

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "lastSaved": self.last_saved.isoformat() if self.last_saved else None,
            "isSaving": self.is_saving,
            "hasUnsavedChanges": self.has_unsaved_changes,
            "isError": self.is_error,
        }
