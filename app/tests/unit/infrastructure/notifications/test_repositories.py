"""Unit tests for the in-memory repositories."""

from datetime import timedelta

import pytest

from infrastructure.notifications.exceptions import DeliveryNotFound, NotificationNotFound
from infrastructure.notifications.models import NotificationChannel, NotificationStatus
from tests.factories.notifications import FIXED_NOW, make_delivery, make_notification


@pytest.mark.unit
class TestInMemoryNotificationRepository:
    """Tests for notification storage."""

    def test_save_and_find(self, notification_repository):
        notification = make_notification()

        notification_repository.save(notification)

        assert notification_repository.find_by_id(notification.id) == notification
        assert notification_repository.get(notification.id) == notification
        assert notification_repository.count() == 1

    def test_find_unknown_returns_none_and_get_raises(self, notification_repository):
        assert notification_repository.find_by_id("missing") is None
        with pytest.raises(NotificationNotFound):
            notification_repository.get("missing")

    def test_update_requires_existing(self, notification_repository):
        with pytest.raises(NotificationNotFound):
            notification_repository.update(make_notification())

    def test_update_replaces_stored_version(self, notification_repository):
        notification = notification_repository.save(make_notification())

        notification_repository.update(notification.mark_as_processing())

        stored = notification_repository.get(notification.id)
        assert stored.status == NotificationStatus.PROCESSING

    def test_find_by_user_newest_first(self, notification_repository):
        older = make_notification(created_at=FIXED_NOW)
        newer = make_notification(created_at=FIXED_NOW + timedelta(hours=1))
        other = make_notification(user_id="user-2")
        for n in (older, newer, other):
            notification_repository.save(n)

        assert notification_repository.find_by_user("user-1") == [newer, older]

    def test_find_by_status(self, notification_repository):
        pending = notification_repository.save(make_notification())
        notification_repository.save(make_notification(status=NotificationStatus.SENT))

        assert notification_repository.find_by_status(NotificationStatus.PENDING) == [pending]

    def test_find_due_returns_pending_in_window_earliest_first(self, notification_repository):
        late = make_notification(scheduled_for=FIXED_NOW + timedelta(minutes=10))
        early = make_notification(scheduled_for=FIXED_NOW + timedelta(minutes=5))
        future = make_notification(scheduled_for=FIXED_NOW + timedelta(hours=2))
        sent = make_notification(
            status=NotificationStatus.SENT, scheduled_for=FIXED_NOW + timedelta(minutes=1)
        )
        for n in (late, early, future, sent):
            notification_repository.save(n)

        due = notification_repository.find_due(until=FIXED_NOW + timedelta(minutes=30))
        window = notification_repository.find_due(
            until=FIXED_NOW + timedelta(minutes=30),
            since=FIXED_NOW + timedelta(minutes=5),
        )

        assert due == [early, late]
        assert window == [late]


@pytest.mark.unit
class TestInMemoryDeliveryRepository:
    """Tests for delivery storage."""

    def test_save_find_update(self, delivery_repository):
        delivery = delivery_repository.save(make_delivery())

        delivery_repository.update(delivery.mark_as_sent("msg-1"))

        assert delivery_repository.find_by_id(delivery.id).provider_message_id == "msg-1"

    def test_update_unknown_raises(self, delivery_repository):
        with pytest.raises(DeliveryNotFound):
            delivery_repository.update(make_delivery())

    def test_find_by_notification_orders_by_channel_then_attempt(self, delivery_repository):
        sms_2 = make_delivery(channel=NotificationChannel.SMS, attempt_number=2)
        email_1 = make_delivery(channel=NotificationChannel.EMAIL)
        sms_1 = make_delivery(channel=NotificationChannel.SMS, attempt_number=1)
        unrelated = make_delivery(notification_id="other")
        for d in (sms_2, email_1, sms_1, unrelated):
            delivery_repository.save(d)

        assert delivery_repository.find_by_notification("notification-1") == [
            email_1,
            sms_1,
            sms_2,
        ]
        assert delivery_repository.find_by_notification_and_channel(
            "notification-1", NotificationChannel.SMS
        ) == [sms_1, sms_2]
