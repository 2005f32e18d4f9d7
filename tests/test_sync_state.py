"""Tests for the local draft cache."""

import json
from unittest.mock import patch

import pytest

from draftsync.models import DraftRecord, DraftStatus
from draftsync.sync.state import DraftCache
from draftsync.utils import CACHE_MAX_AGE_MS

NOW_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


def make_record(timestamp=NOW_MS, **fields):
    return DraftRecord.empty(42, 0).merged(fields, timestamp)


class TestDraftCacheSave:
    """Tests for writing cache entries."""

    def test_save_writes_json_file(self, cache):
        """Test that saving writes the projection under the draft key."""
        record = make_record(transcription_text="chest pain", patient_id="p-1")

        assert cache.save("autosave_42", record) is True

        data = json.loads((cache.cache_dir / "autosave_42.json").read_text())
        assert data == {
            "timestamp": NOW_MS,
            "status": "draft",
            "patientId": "p-1",
            "transcriptionText": "chest pain",
        }

    def test_save_never_writes_binary_fields(self, cache):
        """Test that audio, video and images stay out of the cache."""
        record = make_record(
            audio_payload=b"\x00" * 64,
            video_payload=b"\x01" * 64,
            images=[b"\x02" * 8],
            form_fields={"pulse": 80},
        )
        cache.save("autosave_42", record)

        raw = (cache.cache_dir / "autosave_42.json").read_text()
        data = json.loads(raw)
        assert set(data) == {"timestamp", "status", "formFields"}
        for name in ("audioBlob", "videoBlob", "images", "audio_payload"):
            assert name not in raw

    def test_save_creates_cache_dir(self, tmp_path):
        """Test that the cache directory is created on first write."""
        cache = DraftCache(tmp_path / "nested" / "drafts")
        assert cache.save("autosave_temp", make_record()) is True
        assert (tmp_path / "nested" / "drafts" / "autosave_temp.json").exists()

    def test_save_swallows_storage_errors(self, cache):
        """Test that a full disk is logged and reported, not raised."""
        with patch("builtins.open", side_effect=OSError(28, "No space left")):
            assert cache.save("autosave_42", make_record()) is False

    def test_save_swallows_serialization_errors(self, cache):
        """Test that unserializable form values are logged, not raised."""
        record = make_record(form_fields={"when": object()})
        assert cache.save("autosave_42", record) is False
        assert not (cache.cache_dir / "autosave_42.json").exists()

    def test_invalid_key_rejected(self, cache):
        """Test that keys outside the autosave namespace are refused."""
        with pytest.raises(ValueError, match="Invalid draft cache key"):
            cache.save("../etc/passwd", make_record())


class TestDraftCacheLoad:
    """Tests for reading cache entries."""

    def test_load_fresh_entry(self, cache):
        """Test that a recent entry is returned."""
        cache.save("autosave_42", make_record(NOW_MS - HOUR_MS, patient_id="p"))

        entry = cache.load("autosave_42", NOW_MS)

        assert entry is not None
        assert entry.patient_id == "p"
        assert entry.timestamp == NOW_MS - HOUR_MS

    def test_load_rejects_stale_entry(self, cache):
        """Test that an entry 25 hours old is treated as absent."""
        cache.save("autosave_42", make_record(NOW_MS - 25 * HOUR_MS))
        assert cache.load("autosave_42", NOW_MS) is None

    def test_load_rejects_entry_exactly_at_max_age(self, cache):
        """Test the freshness window is exclusive at 24 hours."""
        cache.save("autosave_42", make_record(NOW_MS - CACHE_MAX_AGE_MS))
        assert cache.load("autosave_42", NOW_MS) is None
        assert cache.read("autosave_42") is not None

    def test_load_missing_entry(self, cache):
        """Test that a missing file is a cache miss."""
        assert cache.load("autosave_42", NOW_MS) is None

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[1, 2, 3]", '{"status": "draft"}', '{"timestamp": "x"}'],
    )
    def test_load_corrupt_entry_is_a_miss(self, cache, content):
        """Test that unparseable entries are treated as absent."""
        cache.cache_dir.mkdir(parents=True)
        (cache.cache_dir / "autosave_42.json").write_text(content)
        assert cache.load("autosave_42", NOW_MS) is None

    def test_load_keeps_cached_status(self, cache):
        """Test that the cached status is read back as stored."""
        record = make_record()
        record.status = DraftStatus.ERROR
        cache.save("autosave_42", record)
        assert cache.read("autosave_42").status == DraftStatus.ERROR


class TestDraftCacheClear:
    """Tests for clearing and listing entries."""

    def test_clear_removes_entry(self, cache):
        """Test that clear deletes the file."""
        cache.save("autosave_42", make_record())
        assert cache.clear("autosave_42") is True
        assert cache.read("autosave_42") is None

    def test_clear_missing_entry(self, cache):
        """Test clearing a key with no entry."""
        assert cache.clear("autosave_42") is False

    def test_list_entries_skips_stale_and_sorts_newest_first(self, cache):
        """Test listing resumable drafts."""
        cache.save("autosave_1", make_record(NOW_MS - 2 * HOUR_MS))
        cache.save("autosave_2", make_record(NOW_MS - HOUR_MS))
        cache.save("autosave_3", make_record(NOW_MS - 30 * HOUR_MS))
        cache.save("autosave_temp", make_record(NOW_MS - 3 * HOUR_MS))

        keys = [entry.key for entry in cache.list_entries(NOW_MS)]

        assert keys == ["autosave_2", "autosave_1", "autosave_temp"]

    def test_list_entries_without_cache_dir(self, cache):
        """Test listing before anything was cached."""
        assert cache.list_entries(NOW_MS) == []
