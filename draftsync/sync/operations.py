"""Wire payload building around the draft API client."""

import logging
from typing import Any, Optional

from ..api import Attachment, DraftClient
from ..models import DraftRecord
from ..utils import AUDIO_FILENAME, VIDEO_FILENAME, format_size, parse_timestamp_ms

logger = logging.getLogger(__name__)


def build_auto_save_data(record: DraftRecord) -> dict[str, Any]:
    """Build the JSON object sent in the ``autoSaveData`` part.

    Unset fields are omitted. Binary payloads never appear here.

    Args:
        record: Draft snapshot

    Returns:
        Dictionary with patientId, transcriptionText, formFields, timestamp
    """
    data: dict[str, Any] = {}
    if record.patient_id is not None:
        data["patientId"] = record.patient_id
    if record.transcription_text is not None:
        data["transcriptionText"] = record.transcription_text
    if record.form_fields:
        data["formFields"] = dict(record.form_fields)
    data["timestamp"] = record.last_modified_at
    return data


def build_attachments(record: DraftRecord) -> list[Attachment]:
    """Build the binary multipart parts for a record.

    Args:
        record: Draft snapshot

    Returns:
        Parts in wire order: audioBlob, videoBlob, then image_<index>
    """
    attachments: list[Attachment] = []
    if record.audio_payload:
        attachments.append(
            ("audioBlob", (AUDIO_FILENAME, record.audio_payload, "audio/wav"))
        )
    if record.video_payload:
        attachments.append(
            ("videoBlob", (VIDEO_FILENAME, record.video_payload, "video/webm"))
        )
    for index, image in enumerate(record.images or []):
        filename = f"image_{index}"
        attachments.append((filename, (filename, image, "application/octet-stream")))
    return attachments


def parse_remote_draft(data: dict[str, Any]) -> tuple[dict[str, Any], Optional[int]]:
    """Convert a server ``autoSaveData`` object into a record partial.

    Older servers send form fields as ``formData``; both keys are read.

    Args:
        data: autoSaveData object from the load endpoint

    Returns:
        Tuple of (record partial, timestamp in epoch ms or None)
    """
    partial: dict[str, Any] = {}
    if data.get("patientId") is not None:
        partial["patient_id"] = str(data["patientId"])
    if data.get("transcriptionText") is not None:
        partial["transcription_text"] = data["transcriptionText"]
    form_fields = data.get("formFields", data.get("formData"))
    if isinstance(form_fields, dict):
        partial["form_fields"] = form_fields
    return partial, parse_timestamp_ms(data.get("timestamp"))


class SyncOperations:
    """Save and load drafts through a DraftClient."""

    def __init__(self, client: DraftClient):
        """Initialize sync operations.

        Args:
            client: Draft API client
        """
        self.client = client

    async def push(self, encounter_id: int, record: DraftRecord) -> dict[str, Any]:
        """Send a draft snapshot to the server.

        Args:
            encounter_id: Numeric encounter identifier
            record: Draft snapshot to send

        Returns:
            Server acknowledgement

        Raises:
            DraftAPIError: If the save fails
        """
        attachments = build_attachments(record)
        if attachments:
            logger.debug(
                "Sending %d binary part(s), %s total",
                len(attachments),
                format_size(record.payload_size),
            )
        return await self.client.save_draft(
            encounter_id, build_auto_save_data(record), attachments
        )

    async def pull(
        self, encounter_id: int
    ) -> Optional[tuple[dict[str, Any], Optional[int]]]:
        """Fetch the server copy of a draft.

        Args:
            encounter_id: Numeric encounter identifier

        Returns:
            (record partial, timestamp) or None if the server has no draft

        Raises:
            DraftAPIError: If the request fails
        """
        data = await self.client.load_draft(encounter_id)
        if data is None:
            return None
        return parse_remote_draft(data)
