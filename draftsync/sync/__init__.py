"""Auto-save engine for draftsync - local durability and remote sync of drafts."""

from .engine import AutoSaveEngine
from .operations import (
    SyncOperations,
    build_attachments,
    build_auto_save_data,
    parse_remote_draft,
)
from .retry import RetryController
from .scheduler import SyncScheduler
from .state import DraftCache
from .status import StatusPublisher
from .store import DraftStore

__all__ = [
    "AutoSaveEngine",
    "DraftCache",
    "DraftStore",
    "RetryController",
    "StatusPublisher",
    "SyncOperations",
    "SyncScheduler",
    "build_attachments",
    "build_auto_save_data",
    "parse_remote_draft",
]
