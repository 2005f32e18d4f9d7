"""draftsync - crash-safe auto-save and server sync for clinical encounter drafts."""

from .api import DraftClient
from .config import AutoSaveOptions
from .exceptions import (
    DraftAPIError,
    DraftAuthenticationError,
    DraftConfigError,
    DraftInvalidResponseError,
    DraftNetworkError,
    DraftNotFoundError,
    DraftPermissionError,
    DraftRateLimitError,
    DraftSerializationError,
)
from .models import CacheEntry, DraftRecord, DraftStatus, StatusSnapshot, SyncAttempt
from .sync import AutoSaveEngine, DraftCache

__all__ = [
    "AutoSaveEngine",
    "AutoSaveOptions",
    "CacheEntry",
    "DraftCache",
    "DraftClient",
    "DraftRecord",
    "DraftStatus",
    "StatusSnapshot",
    "SyncAttempt",
    "DraftAPIError",
    "DraftAuthenticationError",
    "DraftConfigError",
    "DraftInvalidResponseError",
    "DraftNetworkError",
    "DraftNotFoundError",
    "DraftPermissionError",
    "DraftRateLimitError",
    "DraftSerializationError",
]
