"""Auto-save engine that keeps an encounter draft durable and in sync."""

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Optional

from ..api import DraftClient
from ..config import AutoSaveOptions, config
from ..exceptions import DraftAPIError
from ..models import DraftRecord, DraftStatus, StatusSnapshot, SyncAttempt
from ..utils import TEMP_CACHE_KEY, cache_key_for, now_ms
from .operations import SyncOperations
from .retry import RetryController
from .scheduler import SyncScheduler
from .state import DraftCache
from .status import StatusListener, StatusPublisher
from .store import DraftStore

logger = logging.getLogger(__name__)


class AutoSaveEngine:
    """Accumulates an encounter draft and reconciles it with the server.

    Mutations update the in-memory draft, are written synchronously to the
    local cache and restart the debounce timer. Flushes run as tasks on the
    event loop; at most one result is applied per initiated flush, and
    results from flushes superseded by a newer one are discarded.

    Examples:
        >>> async with AutoSaveEngine(AutoSaveOptions(encounter_id=42)) as engine:
        ...     engine.save_transcription("chest pain")
        ...     await engine.force_save()
    """

    def __init__(
        self,
        options: Optional[AutoSaveOptions] = None,
        client: Optional[DraftClient] = None,
        cache: Optional[DraftCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the engine.

        Args:
            options: Per-draft options (defaults to a local-only draft). The
                engine works on its own copy.
            client: Draft API client; created from config on first flush
                if not provided
            cache: Local draft cache (defaults to the configured cache dir)
            clock: Callable returning epoch seconds
        """
        self.options = replace(options) if options is not None else AutoSaveOptions()
        self.cache = cache or DraftCache(config.cache_dir)
        self._clock = clock
        self._client = client
        self._owns_client = client is None
        self._operations: Optional[SyncOperations] = (
            SyncOperations(client) if client is not None else None
        )

        self.store = DraftStore(self.options.encounter_id, clock)
        self.store.subscribe(self._on_mutation)
        self.scheduler = SyncScheduler(
            self._on_flush_due,
            debounce_delay=self.options.debounce_delay,
            save_interval=self.options.save_interval,
            should_flush=self._has_unsynced_draft,
        )
        self.retry = RetryController(
            max_retries=self.options.max_retries,
            base_delay=self.options.retry_base_delay,
        )
        self.publisher = StatusPublisher(self.store.record.status)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0
        self._revision = 0
        self._hydrated = False

    # =========================
    # Lifecycle
    # =========================

    @property
    def cache_key(self) -> str:
        return cache_key_for(self.options.encounter_id)

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Hydrate from the local cache and start the timers.

        An engine can be started again after stop(). The cache is only read
        on the first start, so a restart keeps the in-memory draft.

        Args:
            loop: Event loop to schedule on (defaults to the running loop)
        """
        if self._loop is not None:
            return
        self._loop = loop or asyncio.get_running_loop()

        if not self._hydrated:
            self._hydrated = True
            entry = self.cache.load(self.cache_key, now_ms(self._clock))
            if entry is not None:
                self.store.hydrate_from_cache(entry)
                self.publisher.publish(self.store.record.status)

        self.retry.start(self._loop)
        self.scheduler.start(
            self._loop, periodic=self.options.encounter_id is not None
        )
        logger.debug(f"Auto-save engine started for {self.cache_key}")

    def stop(self) -> None:
        """Cancel all timers. In-flight requests finish but are ignored."""
        if self._loop is None:
            return
        self._loop = None
        self._generation += 1
        self.scheduler.stop()
        self.retry.stop()
        logger.debug(f"Auto-save engine stopped for {self.cache_key}")

    async def aclose(self) -> None:
        """Stop the engine and close the API client if the engine created it."""
        self.stop()
        if self._owns_client and self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "AutoSaveEngine":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # =========================
    # Draft mutations
    # =========================

    def save_data(self, **fields: Any) -> None:
        """Merge any combination of draft fields."""
        self.store.update(**fields)

    def save_transcription(self, text: str) -> None:
        self.store.save_transcription(text)

    def save_audio(self, blob: bytes) -> None:
        self.store.save_audio(blob)

    def save_video(self, blob: bytes) -> None:
        self.store.save_video(blob)

    def save_images(self, images: list[bytes]) -> None:
        self.store.save_images(images)

    def save_form_fields(self, form_fields: dict[str, Any]) -> None:
        self.store.save_form_fields(form_fields)

    def save_patient(self, patient_id: str) -> None:
        self.store.update(patient_id=patient_id)

    def _on_mutation(self, record: DraftRecord) -> None:
        self._revision += 1
        self.cache.save(self.cache_key, record)
        self.publisher.publish(DraftStatus.DRAFT)
        self.scheduler.notify_mutation()

    # =========================
    # Status
    # =========================

    @property
    def record(self) -> DraftRecord:
        """A copy of the current draft."""
        return self.store.snapshot()

    @property
    def status(self) -> StatusSnapshot:
        return self.publisher.snapshot

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        return self.publisher.subscribe(listener)

    def _set_status(
        self, status: DraftStatus, last_saved: Optional[datetime] = None
    ) -> None:
        self.store.set_status(status)
        self.publisher.publish(status, last_saved)

    def _has_unsynced_draft(self) -> bool:
        return self.store.record.status is DraftStatus.DRAFT

    # =========================
    # Flushing
    # =========================

    def _get_operations(self) -> SyncOperations:
        if self._operations is None:
            self._client = DraftClient()
            self._operations = SyncOperations(self._client)
        return self._operations

    def _on_flush_due(self, trigger: str) -> None:
        self._spawn_flush(trigger)

    def _on_retry_due(self, attempt: int, delay: int) -> None:
        logger.debug(f"Retry {attempt} due after {delay} ms")
        self._spawn_flush("retry", delay)

    def _spawn_flush(
        self, trigger: str, scheduled_delay: int = 0
    ) -> Optional["asyncio.Task[bool]"]:
        if self._loop is None:
            return None
        task = self._loop.create_task(self._flush(trigger, scheduled_delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def force_save(self) -> "asyncio.Task[bool]":
        """Flush now, dropping any pending debounce.

        Returns:
            Task resolving to True if the server accepted the draft

        Raises:
            RuntimeError: If the engine is not running
        """
        self.scheduler.cancel_debounce()
        task = self._spawn_flush("force")
        if task is None:
            raise RuntimeError("Auto-save engine is not running")
        return task

    async def _flush(self, trigger: str, scheduled_delay: int = 0) -> bool:
        """Send the current draft to the server.

        Args:
            trigger: What requested the flush (debounce, periodic, force, retry)
            scheduled_delay: Backoff waited before a retry, in milliseconds

        Returns:
            True if the server accepted the draft and the result was applied
        """
        encounter_id = self.options.encounter_id
        if encounter_id is None:
            logger.debug("Draft has no encounter id yet, keeping it local")
            return False

        self._generation += 1
        attempt = SyncAttempt(
            attempt_number=self.retry.attempt_count + 1,
            payload_snapshot=self.store.snapshot(),
            scheduled_delay=scheduled_delay,
            generation=self._generation,
            trigger=trigger,
        )
        revision = self._revision
        self._set_status(DraftStatus.SAVING)
        logger.debug(
            f"Flushing encounter {encounter_id} ({trigger}, "
            f"attempt {attempt.attempt_number}, generation {attempt.generation})"
        )

        try:
            await self._get_operations().push(encounter_id, attempt.payload_snapshot)
        except DraftAPIError as e:
            if not self._is_current(attempt):
                logger.debug(f"Discarding failed superseded flush {attempt.generation}")
                return False
            logger.error(f"Auto-save to backend failed: {e}")
            self._set_status(DraftStatus.ERROR)
            self.retry.record_failure(self._on_retry_due)
            return False

        if not self._is_current(attempt):
            logger.debug(f"Discarding result of superseded flush {attempt.generation}")
            return False

        self.retry.record_success()
        # Mutations that arrived while the request was in flight are still unsynced
        status = DraftStatus.SAVED if revision == self._revision else DraftStatus.DRAFT
        self._set_status(status, last_saved=datetime.fromtimestamp(self._clock()))
        logger.info(f"Draft for encounter {encounter_id} auto-saved")
        return True

    def _is_current(self, attempt: SyncAttempt) -> bool:
        return attempt.generation == self._generation

    # =========================
    # Cache and server hydration
    # =========================

    def clear_cache(self) -> None:
        """Forget the draft: remove the cache entry and reset to an empty draft."""
        self.cache.clear(self.cache_key)
        self._generation += 1
        self.scheduler.cancel_debounce()
        self.retry.cancel()
        self.store.reset()
        self.publisher.publish(DraftStatus.DRAFT)

    async def load_from_backend(self) -> bool:
        """Replace the draft's text fields with the server copy.

        Returns:
            True if a server draft was merged, False otherwise
        """
        encounter_id = self.options.encounter_id
        if encounter_id is None:
            return False

        try:
            result = await self._get_operations().pull(encounter_id)
        except DraftAPIError as e:
            logger.error(f"Failed to load draft from backend: {e}")
            return False

        if result is None:
            logger.debug(f"No server draft for encounter {encounter_id}")
            return False

        partial, timestamp = result
        self.store.hydrate(partial, timestamp=timestamp, status=DraftStatus.SAVED)
        self.publisher.publish(DraftStatus.SAVED)
        logger.info(f"Loaded draft for encounter {encounter_id} from backend")
        return True

    def assign_encounter(self, encounter_id: int) -> None:
        """Bind a local-only draft to its newly created server encounter.

        The temporary cache entry moves to the encounter's key, the periodic
        timer starts and unsynced content is scheduled for a flush.

        Args:
            encounter_id: Server-assigned encounter id

        Raises:
            ValueError: If the draft already belongs to another encounter
        """
        encounter_id = int(encounter_id)
        if encounter_id <= 0:
            raise ValueError(
                f"encounter_id must be a positive integer, got {encounter_id}"
            )
        current = self.options.encounter_id
        if current == encounter_id:
            return
        if current is not None:
            raise ValueError(f"Draft is already bound to encounter {current}")

        self.options.encounter_id = encounter_id
        self.store.set_encounter_id(encounter_id)
        self._generation += 1

        self.cache.clear(TEMP_CACHE_KEY)
        self.cache.save(self.cache_key, self.store.record)
        logger.info(f"Local draft assigned to encounter {encounter_id}")

        self.scheduler.start_periodic()
        if self._has_unsynced_draft():
            self.scheduler.notify_mutation()
