"""Configuration for draftsync.

Client settings come from environment variables first, then from the
``~/.config/draftsync/config`` file written by ``draftsync init``.
Engine behaviour is configured per draft through :class:`AutoSaveOptions`.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .utils import (
    DEFAULT_DEBOUNCE_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_MS,
    DEFAULT_SAVE_INTERVAL_MS,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"

ENV_API_KEY = "DRAFTSYNC_API_KEY"
ENV_API_URL = "DRAFTSYNC_API_URL"
ENV_CACHE_DIR = "DRAFTSYNC_CACHE_DIR"


class Config:
    """Resolved client configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                       ~/.config/draftsync/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "draftsync"
        self.config_dir = config_dir
        self._file_values: Optional[dict[str, str]] = None

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / "config"

    def _load_file(self) -> dict[str, str]:
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        path = self.get_config_path()
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line or line.startswith("#") or "=" not in line:
                            continue
                        name, _, value = line.partition("=")
                        values[name.strip()] = value.strip()
            except OSError as e:
                logger.warning(f"Failed to read config file {path}: {e}")
        self._file_values = values
        return values

    def _get(self, name: str) -> Optional[str]:
        value = os.getenv(name)
        if value:
            return value
        return self._load_file().get(name) or None

    @property
    def api_key(self) -> Optional[str]:
        return self._get(ENV_API_KEY)

    @property
    def api_url(self) -> str:
        return self._get(ENV_API_URL) or DEFAULT_API_URL

    @property
    def cache_dir(self) -> Path:
        raw = self._get(ENV_CACHE_DIR)
        if raw:
            return Path(raw).expanduser()
        return self.config_dir / "drafts"

    def is_configured(self) -> bool:
        """Return True if an API key is available."""
        return bool(self.api_key)

    def save_api_key(self, api_key: str) -> None:
        """Persist an API key to the config file, keeping other settings."""
        values = dict(self._load_file())
        values[ENV_API_KEY] = api_key
        self._write_file(values)

    def save_api_url(self, api_url: str) -> None:
        """Persist the server URL to the config file, keeping other settings."""
        values = dict(self._load_file())
        values[ENV_API_URL] = api_url
        self._write_file(values)

    def _write_file(self, values: dict[str, str]) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            for name, value in sorted(values.items()):
                f.write(f"{name}={value}\n")
        path.chmod(0o600)
        self._file_values = values


config = Config()


@dataclass
class AutoSaveOptions:
    """Per-draft engine options.

    All durations are milliseconds.
    """

    encounter_id: Optional[int] = None
    """Server identity of the draft; None keeps the draft local-only"""

    save_interval: int = DEFAULT_SAVE_INTERVAL_MS
    """Periodic flush cadence"""

    debounce_delay: int = DEFAULT_DEBOUNCE_DELAY_MS
    """Trailing debounce window after the last mutation"""

    max_retries: int = DEFAULT_MAX_RETRIES
    """Consecutive failed saves retried automatically"""

    retry_base_delay: int = DEFAULT_RETRY_BASE_DELAY_MS
    """Linear backoff step; attempt n waits retry_base_delay * n"""

    def __post_init__(self) -> None:
        if self.encounter_id is not None:
            self.encounter_id = int(self.encounter_id)
            if self.encounter_id <= 0:
                raise ValueError(
                    f"encounter_id must be a positive integer, got {self.encounter_id}"
                )
        for name in ("save_interval", "debounce_delay", "retry_base_delay"):
            value = int(getattr(self, name))
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
            setattr(self, name, value)
        self.max_retries = int(self.max_retries)
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AutoSaveOptions":
        """Create options from a dictionary.

        Accepts both snake_case and the camelCase names used by the
        browser client (``encounterId``, ``saveInterval``,
        ``debounceDelay``, ``maxRetries``, ``retryBaseDelay``).

        Args:
            data: Option mapping; missing keys keep their defaults

        Returns:
            AutoSaveOptions instance
        """
        aliases = {
            "encounterId": "encounter_id",
            "saveInterval": "save_interval",
            "debounceDelay": "debounce_delay",
            "maxRetries": "max_retries",
            "retryBaseDelay": "retry_base_delay",
        }
        kwargs: dict[str, Any] = {}
        for name, value in data.items():
            target = aliases.get(name, name)
            if target not in cls.__dataclass_fields__:
                raise ValueError(f"Unknown auto-save option: {name}")
            kwargs[target] = value
        return cls(**kwargs)
