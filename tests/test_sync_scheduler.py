"""Tests for the debounce and periodic flush timers."""

from unittest.mock import Mock

import pytest

from draftsync.sync.scheduler import SyncScheduler


class TestSyncScheduler:
    """Test SyncScheduler timing behaviour."""

    @pytest.fixture
    def request_flush(self):
        return Mock()

    @pytest.fixture
    def scheduler(self, request_flush, fake_loop):
        """Create a started scheduler (2 s debounce, 30 s interval)."""
        scheduler = SyncScheduler(
            request_flush, debounce_delay=2000, save_interval=30000
        )
        scheduler.start(fake_loop)
        return scheduler

    def test_debounce_fires_after_quiet_window(
        self, scheduler, request_flush, fake_loop
    ):
        """Test a single mutation flushes once the window elapses."""
        scheduler.notify_mutation()

        fake_loop.advance_sync(1.5)
        request_flush.assert_not_called()

        fake_loop.advance_sync(0.5)
        request_flush.assert_called_once_with("debounce")

    def test_debounce_coalesces_mutations(self, scheduler, request_flush, fake_loop):
        """Test N mutations within one window produce exactly one flush."""
        for _ in range(10):
            scheduler.notify_mutation()
            fake_loop.advance_sync(0.5)

        request_flush.assert_not_called()
        fake_loop.advance_sync(2.0)
        request_flush.assert_called_once_with("debounce")

    def test_periodic_fires_on_cadence(self, scheduler, request_flush, fake_loop):
        """Test the periodic timer keeps firing every interval."""
        fake_loop.advance_sync(90.0)
        assert request_flush.call_count == 3
        request_flush.assert_called_with("periodic")

    def test_periodic_gated_by_should_flush(self, request_flush, fake_loop):
        """Test periodic flushes are skipped while nothing is unsynced."""
        gate = Mock(return_value=False)
        scheduler = SyncScheduler(
            request_flush, debounce_delay=2000, save_interval=30000, should_flush=gate
        )
        scheduler.start(fake_loop)

        fake_loop.advance_sync(60.0)
        request_flush.assert_not_called()
        assert gate.call_count == 2

        gate.return_value = True
        fake_loop.advance_sync(30.0)
        request_flush.assert_called_once_with("periodic")

    def test_periodic_and_debounce_are_independent(
        self, scheduler, request_flush, fake_loop
    ):
        """Test a mutation does not delay the periodic timer."""
        fake_loop.advance_sync(29.0)
        scheduler.notify_mutation()
        fake_loop.advance_sync(1.0)

        request_flush.assert_called_once_with("periodic")
        fake_loop.advance_sync(1.0)
        assert request_flush.call_args_list[-1].args == ("debounce",)

    def test_start_without_periodic(self, request_flush, fake_loop):
        """Test that periodic flushing can be left off."""
        scheduler = SyncScheduler(request_flush, 2000, 30000)
        scheduler.start(fake_loop, periodic=False)

        assert not scheduler.periodic_active
        fake_loop.advance_sync(120.0)
        request_flush.assert_not_called()

        scheduler.start_periodic()
        assert scheduler.periodic_active

    def test_cancel_debounce(self, scheduler, request_flush, fake_loop):
        """Test a cancelled debounce never fires."""
        scheduler.notify_mutation()
        assert scheduler.debounce_pending
        scheduler.cancel_debounce()

        fake_loop.advance_sync(5.0)
        request_flush.assert_not_called()

    def test_mutation_before_start_is_ignored(self, request_flush, fake_loop):
        """Test an unbound scheduler schedules nothing."""
        scheduler = SyncScheduler(request_flush, 2000, 30000)
        scheduler.notify_mutation()
        assert fake_loop.pending == []

    def test_stop_cancels_everything(self, scheduler, request_flush, fake_loop):
        """Test that nothing fires after teardown."""
        scheduler.notify_mutation()
        scheduler.stop()

        assert fake_loop.pending == []
        scheduler.notify_mutation()
        fake_loop.advance_sync(300.0)
        request_flush.assert_not_called()
        assert not scheduler.running

    def test_restart_after_stop(self, scheduler, request_flush, fake_loop):
        """Test a stopped scheduler resumes both timers when started again."""
        scheduler.stop()
        scheduler.start(fake_loop)

        scheduler.notify_mutation()
        fake_loop.advance_sync(2.0)

        request_flush.assert_called_once_with("debounce")
        assert scheduler.periodic_active
