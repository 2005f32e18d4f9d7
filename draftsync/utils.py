"""Utility functions and shared constants for draftsync."""

import time
from datetime import datetime
from typing import Any, Callable, Optional

# =============================================================================
# Constants for auto-save scheduling
# =============================================================================

# Periodic flush cadence (30 seconds)
DEFAULT_SAVE_INTERVAL_MS: int = 30_000

# Trailing debounce window after the last mutation (2 seconds)
DEFAULT_DEBOUNCE_DELAY_MS: int = 2_000

# Retry configuration for failed remote saves
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_BASE_DELAY_MS: int = 5_000  # linear: base * attempt

# Cached drafts older than this are never hydrated (24 hours)
CACHE_MAX_AGE_MS: int = 24 * 60 * 60 * 1000

# Local cache keys
CACHE_KEY_PREFIX: str = "autosave_"
TEMP_CACHE_KEY: str = f"{CACHE_KEY_PREFIX}temp"

# Suggested filenames for binary multipart parts
AUDIO_FILENAME: str = "autosave_audio.wav"
VIDEO_FILENAME: str = "autosave_video.webm"


# =============================================================================
# Timestamp utilities
# =============================================================================


def now_ms(clock: Callable[[], float] = time.time) -> int:
    """Return the current time as epoch milliseconds.

    Args:
        clock: Callable returning epoch seconds (defaults to time.time)

    Returns:
        Epoch milliseconds as an integer
    """
    return int(clock() * 1000)


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp returned by the draft server.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00.000Z")

    Returns:
        datetime object in local timezone or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        try:
            dt = datetime.fromisoformat(timestamp_str)
        except ValueError:
            # Older interpreters reject millisecond fractions, drop them
            if "." in timestamp_str:
                timestamp_str = timestamp_str.split(".")[0] + "+00:00"
            dt = datetime.fromisoformat(timestamp_str)

        if dt.tzinfo is not None:
            # Convert to local naive datetime
            return datetime.fromtimestamp(dt.timestamp())
        return dt
    except (ValueError, AttributeError):
        return None


def parse_timestamp_ms(value: Any) -> Optional[int]:
    """Normalize a wire timestamp to epoch milliseconds.

    The cache always stores epoch milliseconds, while the server answers
    with either epoch milliseconds or an ISO string.

    Args:
        value: Epoch milliseconds (int/float/digit string) or ISO string

    Returns:
        Epoch milliseconds or None if the value cannot be interpreted

    Examples:
        >>> parse_timestamp_ms(1700000000000)
        1700000000000
        >>> parse_timestamp_ms("1700000000000")
        1700000000000
        >>> parse_timestamp_ms(None) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        dt = parse_iso_timestamp(value)
        if dt is not None:
            return int(dt.timestamp() * 1000)
    return None


def format_timestamp_ms(value: Optional[int]) -> str:
    """Format epoch milliseconds for display.

    Args:
        value: Epoch milliseconds

    Returns:
        Local time as "YYYY-MM-DD HH:MM:SS", or "-" when unset
    """
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format payload size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def cache_key_for(encounter_id: Optional[int]) -> str:
    """Return the local cache key for a draft identity.

    Args:
        encounter_id: Server-assigned encounter id, or None for a local draft

    Returns:
        "autosave_<id>" or "autosave_temp"

    Examples:
        >>> cache_key_for(42)
        'autosave_42'
        >>> cache_key_for(None)
        'autosave_temp'
    """
    if encounter_id is None:
        return TEMP_CACHE_KEY
    return f"{CACHE_KEY_PREFIX}{encounter_id}"
