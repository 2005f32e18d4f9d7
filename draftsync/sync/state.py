"""Local durability for in-progress drafts.

Every mutation of a draft is written synchronously to a small JSON file
so the draft survives restarts and crashes without a server round-trip.
Binary payloads (audio, video, images) are never written: the cache holds
the :class:`~draftsync.models.CacheEntry` projection only.

Durability is best-effort. Storage and serialization failures are logged
and otherwise ignored so that they never block the caller.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from ..models import CacheEntry, DraftRecord
from ..utils import CACHE_KEY_PREFIX, CACHE_MAX_AGE_MS

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(rf"^{CACHE_KEY_PREFIX}[A-Za-z0-9_-]+$")


class DraftCache:
    """Stores one JSON file per draft key.

    The files live in the user's config directory. Two engines using the
    same key overwrite each other (last write wins); no locking is done.
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        max_age_ms: int = CACHE_MAX_AGE_MS,
    ):
        """Initialize the draft cache.

        Args:
            cache_dir: Directory to store cache files. Defaults to
                      ~/.config/draftsync/drafts/
            max_age_ms: Entries older than this are never loaded
        """
        if cache_dir is None:
            cache_dir = Path.home() / ".config" / "draftsync" / "drafts"
        self.cache_dir = cache_dir
        self.max_age_ms = max_age_ms

    def _get_cache_file(self, key: str) -> Path:
        """Get the cache file path for a key.

        Raises:
            ValueError: If the key is not a valid draft key
        """
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid draft cache key: {key!r}")
        return self.cache_dir / f"{key}.json"

    def save(self, key: str, record: DraftRecord) -> bool:
        """Write the binary-free projection of a record.

        Args:
            key: Cache key for the draft
            record: Current draft record

        Returns:
            True if the entry was written, False if writing failed
        """
        entry = CacheEntry.from_record(key, record)
        cache_file = self._get_cache_file(key)

        try:
            payload = json.dumps(entry.to_dict())
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(cache_file, "w", encoding="utf-8") as f:
                f.write(payload)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save draft to cache: {e}")
            return False

        logger.debug(f"Saved draft {key} to {cache_file}")
        return True

    def read(self, key: str) -> Optional[CacheEntry]:
        """Read an entry regardless of its age.

        Args:
            key: Cache key for the draft

        Returns:
            CacheEntry if found and readable, None otherwise
        """
        cache_file = self._get_cache_file(key)

        if not cache_file.exists():
            logger.debug(f"No cached draft found at {cache_file}")
            return None

        try:
            with open(cache_file, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("cache entry is not a JSON object")
            return CacheEntry.from_dict(key, data)
        except (OSError, KeyError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Failed to load draft from cache: {e}")
            return None

    def load(self, key: str, now_ms: int) -> Optional[CacheEntry]:
        """Read an entry if it is fresh enough to hydrate a draft.

        Args:
            key: Cache key for the draft
            now_ms: Current time in epoch milliseconds

        Returns:
            CacheEntry if present and younger than max_age_ms, None otherwise
        """
        entry = self.read(key)
        if entry is None:
            return None

        age = now_ms - entry.timestamp
        if age >= self.max_age_ms:
            logger.debug(f"Ignoring stale cached draft {key} ({age} ms old)")
            return None

        logger.info(f"Loaded draft {key} from cache")
        return entry

    def clear(self, key: str) -> bool:
        """Remove the entry for a key.

        Args:
            key: Cache key for the draft

        Returns:
            True if an entry was removed, False if none existed or removal failed
        """
        cache_file = self._get_cache_file(key)

        try:
            cache_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to clear cached draft {key}: {e}")
            return False

        logger.debug(f"Cleared cached draft at {cache_file}")
        return True

    def list_entries(self, now_ms: int) -> list[CacheEntry]:
        """List fresh cached drafts, newest first.

        Used to offer resuming work that never reached the server.

        Args:
            now_ms: Current time in epoch milliseconds

        Returns:
            Fresh entries sorted by timestamp descending
        """
        if not self.cache_dir.is_dir():
            return []

        entries = []
        for path in self.cache_dir.glob(f"{CACHE_KEY_PREFIX}*.json"):
            entry = self.load(path.stem, now_ms)
            if entry is not None:
                entries.append(entry)
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)
