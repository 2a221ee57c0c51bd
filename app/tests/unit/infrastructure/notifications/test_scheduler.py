"""Unit tests for DeliveryScheduler."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from infrastructure.notifications.dispatcher import DispatchOutcome
from infrastructure.notifications.exceptions import InvalidSchedule, InvalidStateTransition
from infrastructure.notifications.models import NotificationStatus
from infrastructure.notifications.scheduler import DeliveryScheduler
from tests.factories.notifications import DEFAULT_RECIPIENTS, FIXED_NOW, make_notification

IN_FIVE = FIXED_NOW + timedelta(minutes=5)


def _sent(notification):
    return DispatchOutcome(notification=notification.mark_as_sent(at=FIXED_NOW))


@pytest.fixture
def completed():
    return []


@pytest.fixture
def scheduler_factory(clock, completed):
    def _factory(dispatch):
        return DeliveryScheduler(dispatch=dispatch, clock=clock, on_complete=completed.append)

    return _factory


@pytest.fixture
def scheduler(scheduler_factory):
    return scheduler_factory(MagicMock(side_effect=_sent))


@pytest.mark.unit
class TestSchedule:
    """Tests for storing deferred notifications."""

    @pytest.mark.parametrize("offset", [timedelta(minutes=-1), timedelta(0)])
    def test_past_or_present_instant_rejected(self, scheduler, offset):
        with pytest.raises(InvalidSchedule):
            scheduler.schedule(make_notification(), FIXED_NOW + offset)

    def test_only_pending_notifications_can_be_scheduled(self, scheduler):
        with pytest.raises(InvalidStateTransition):
            scheduler.schedule(make_notification(status=NotificationStatus.SENT), IN_FIVE)

    def test_schedule_stores_copy_with_instant(self, scheduler):
        notification = make_notification()

        scheduled = scheduler.schedule(notification, IN_FIVE)

        assert scheduled.scheduled_for == IN_FIVE
        assert scheduler.get_scheduled_notification(notification.id) == scheduled

    def test_not_due_until_instant_passes(self, scheduler, clock):
        notification = scheduler.schedule(make_notification(), IN_FIVE)

        assert scheduler.get_scheduled_notifications() == []

        clock.advance(minutes=5)

        assert scheduler.get_scheduled_notifications() == [notification]

    def test_cancel_is_idempotent(self, scheduler):
        notification = scheduler.schedule(make_notification(), IN_FIVE)

        assert scheduler.cancel(notification.id) is True
        assert scheduler.cancel(notification.id) is False
        assert scheduler.get_scheduled_notification(notification.id) is None


@pytest.mark.unit
class TestProcessScheduledNotifications:
    """Tests for the due-notification sweep."""

    def test_nothing_due_does_nothing(self, scheduler):
        scheduler.schedule(make_notification(), IN_FIVE)

        stats = scheduler.process_scheduled_notifications()

        assert stats == {
            "due": 0,
            "dispatched": 0,
            "sent": 0,
            "failed": 0,
            "expired": 0,
            "skipped": 0,
        }

    def test_due_notification_is_dispatched_and_evicted(
        self, scheduler_factory, clock, completed
    ):
        dispatch = MagicMock(side_effect=_sent)
        scheduler = scheduler_factory(dispatch)
        notification = scheduler.schedule(make_notification(), IN_FIVE)
        clock.advance(minutes=6)

        stats = scheduler.process_scheduled_notifications()

        assert stats["dispatched"] == 1
        assert stats["sent"] == 1
        handed_over = dispatch.call_args.args[0]
        assert handed_over.status == NotificationStatus.PROCESSING
        assert scheduler.get_scheduled_notification(notification.id) is None
        assert [n.status for n in completed] == [NotificationStatus.SENT]

    def test_due_notifications_run_earliest_first(self, scheduler_factory, clock):
        order = []

        def dispatch(notification):
            order.append(notification.title)
            return _sent(notification)

        scheduler = scheduler_factory(dispatch)
        scheduler.schedule(make_notification(title="later"), FIXED_NOW + timedelta(minutes=2))
        scheduler.schedule(make_notification(title="sooner"), FIXED_NOW + timedelta(minutes=1))
        clock.advance(minutes=3)

        scheduler.process_scheduled_notifications()

        assert order == ["sooner", "later"]

    def test_expired_notification_is_dropped_without_dispatch(
        self, scheduler_factory, clock, completed
    ):
        dispatch = MagicMock(side_effect=_sent)
        scheduler = scheduler_factory(dispatch)
        notification = scheduler.schedule(
            make_notification(expires_at=FIXED_NOW + timedelta(minutes=7)), IN_FIVE
        )
        clock.advance(minutes=10)

        stats = scheduler.process_scheduled_notifications()

        assert stats["expired"] == 1
        assert stats["dispatched"] == 0
        dispatch.assert_not_called()
        assert scheduler.get_scheduled_notification(notification.id) is None
        assert completed == []

    def test_dispatch_exception_fails_one_and_sweep_continues(
        self, scheduler_factory, clock, completed
    ):
        """One broken notification does not stop the rest of the sweep."""
        broken = make_notification(title="broken")

        def dispatch(notification):
            if notification.id == broken.id:
                raise RuntimeError("provider exploded")
            return _sent(notification)

        scheduler = scheduler_factory(dispatch)
        scheduler.schedule(broken, FIXED_NOW + timedelta(minutes=1))
        scheduler.schedule(make_notification(title="fine"), FIXED_NOW + timedelta(minutes=2))
        clock.advance(minutes=3)

        stats = scheduler.process_scheduled_notifications()

        assert stats["dispatched"] == 2
        assert stats["failed"] == 1
        assert stats["sent"] == 1
        failed = next(n for n in completed if n.id == broken.id)
        assert failed.status == NotificationStatus.FAILED
        assert failed.retry_count == 1
        assert failed.last_error == "provider exploded"

    def test_recurring_notification_is_retained(self, scheduler, clock, completed):
        notification = scheduler.schedule(
            make_notification(
                metadata={"recipients": dict(DEFAULT_RECIPIENTS), "recurring": True}
            ),
            IN_FIVE,
        )
        clock.advance(minutes=6)

        scheduler.process_scheduled_notifications()
        retained = scheduler.get_scheduled_notification(notification.id)
        second = scheduler.process_scheduled_notifications()

        assert retained.status == NotificationStatus.SENT
        assert second["due"] == 1
        assert second["skipped"] == 1
        assert second["dispatched"] == 0
        assert len(completed) == 1


@pytest.mark.unit
class TestInFlightGate:
    """Tests for overlapping sweeps and cancellation during dispatch."""

    @pytest.fixture
    def blocking_dispatch(self):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def dispatch(notification):
            calls.append(notification.id)
            started.set()
            release.wait(5)
            return _sent(notification)

        yield dispatch, started, release, calls
        release.set()

    def test_overlapping_sweeps_dispatch_once(
        self, scheduler_factory, clock, blocking_dispatch
    ):
        dispatch, started, release, calls = blocking_dispatch
        scheduler = scheduler_factory(dispatch)
        notification = scheduler.schedule(make_notification(), IN_FIVE)
        clock.advance(minutes=6)

        first = threading.Thread(target=scheduler.process_scheduled_notifications)
        first.start()
        assert started.wait(5)

        assert scheduler.is_in_flight(notification.id) is True
        overlapping = scheduler.process_scheduled_notifications()

        release.set()
        first.join(timeout=5)

        assert overlapping["skipped"] == 1
        assert overlapping["dispatched"] == 0
        assert calls == [notification.id]
        assert scheduler.is_in_flight(notification.id) is False

    def test_cancel_mid_flight_skips_completion(
        self, scheduler_factory, clock, completed, blocking_dispatch
    ):
        """The running attempt finishes, but the result is not reported."""
        dispatch, started, release, calls = blocking_dispatch
        scheduler = scheduler_factory(dispatch)
        notification = scheduler.schedule(make_notification(), IN_FIVE)
        clock.advance(minutes=6)

        worker = threading.Thread(target=scheduler.process_scheduled_notifications)
        worker.start()
        assert started.wait(5)

        assert scheduler.cancel(notification.id) is True

        release.set()
        worker.join(timeout=5)

        assert calls == [notification.id]
        assert completed == []
        assert scheduler.get_scheduled_notification(notification.id) is None
        assert scheduler.is_in_flight(notification.id) is False


@pytest.mark.unit
class TestMaintenance:
    """Tests for purging and statistics."""

    def test_purge_expired(self, scheduler, clock):
        scheduler.schedule(
            make_notification(expires_at=FIXED_NOW + timedelta(minutes=2)), IN_FIVE
        )
        keep = scheduler.schedule(make_notification(), FIXED_NOW + timedelta(hours=1))
        clock.advance(minutes=3)

        assert scheduler.purge_expired() == 1
        assert scheduler.purge_expired() == 0
        assert scheduler.get_scheduled_notification(keep.id) is not None

    def test_stats(self, scheduler, clock):
        scheduler.schedule(make_notification(), IN_FIVE)
        scheduler.schedule(make_notification(), FIXED_NOW + timedelta(hours=1))
        clock.advance(minutes=10)

        assert scheduler.get_scheduler_stats() == {
            "total": 2,
            "due": 1,
            "scheduled": 1,
            "in_flight": 0,
        }

    def test_clear(self, scheduler):
        scheduler.schedule(make_notification(), IN_FIVE)

        scheduler.clear()

        assert scheduler.get_scheduler_stats()["total"] == 0
