"""Persistence contracts for notifications and deliveries.

The engine only depends on the ``NotificationRepository`` and
``DeliveryRepository`` protocols. The in-memory implementations are
thread-safe and give read-your-writes consistency within one process.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from infrastructure.notifications.exceptions import (
    DeliveryNotFound,
    NotificationNotFound,
)
from infrastructure.notifications.models import (
    Delivery,
    Notification,
    NotificationChannel,
    NotificationStatus,
)


class NotificationRepository(Protocol):
    """Storage contract for notifications."""

    def save(self, notification: Notification) -> Notification: ...

    def find_by_id(self, notification_id: str) -> Optional[Notification]: ...

    def update(self, notification: Notification) -> Notification: ...

    def find_by_user(self, user_id: str) -> List[Notification]: ...

    def find_by_status(self, status: NotificationStatus) -> List[Notification]: ...

    def find_due(
        self, until: datetime, since: Optional[datetime] = None
    ) -> List[Notification]: ...


class DeliveryRepository(Protocol):
    """Storage contract for deliveries."""

    def save(self, delivery: Delivery) -> Delivery: ...

    def find_by_id(self, delivery_id: str) -> Optional[Delivery]: ...

    def update(self, delivery: Delivery) -> Delivery: ...

    def find_by_notification(self, notification_id: str) -> List[Delivery]: ...

    def find_by_notification_and_channel(
        self, notification_id: str, channel: NotificationChannel
    ) -> List[Delivery]: ...


class InMemoryNotificationRepository:
    """Thread-safe in-memory notification store.

    Example:
        repository = InMemoryNotificationRepository()
        repository.save(notification)
        pending = repository.find_by_status(NotificationStatus.PENDING)
    """

    def __init__(self):
        self._items: Dict[str, Notification] = {}
        self._lock = threading.Lock()

    def save(self, notification: Notification) -> Notification:
        with self._lock:
            self._items[notification.id] = notification
        return notification

    def find_by_id(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._items.get(notification_id)

    def get(self, notification_id: str) -> Notification:
        """Like ``find_by_id`` but raises NotificationNotFound when missing."""
        notification = self.find_by_id(notification_id)
        if notification is None:
            raise NotificationNotFound(notification_id)
        return notification

    def update(self, notification: Notification) -> Notification:
        with self._lock:
            if notification.id not in self._items:
                raise NotificationNotFound(notification.id)
            self._items[notification.id] = notification
        return notification

    def find_by_user(self, user_id: str) -> List[Notification]:
        with self._lock:
            items = [n for n in self._items.values() if n.user_id == user_id]
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    def find_by_status(self, status: NotificationStatus) -> List[Notification]:
        with self._lock:
            return [n for n in self._items.values() if n.status == status]

    def find_due(
        self, until: datetime, since: Optional[datetime] = None
    ) -> List[Notification]:
        """Pending notifications scheduled in ``(since, until]``, earliest first."""
        with self._lock:
            items = [
                n
                for n in self._items.values()
                if n.status == NotificationStatus.PENDING
                and n.scheduled_for is not None
                and n.scheduled_for <= until
                and (since is None or n.scheduled_for > since)
            ]
        return sorted(items, key=lambda n: n.scheduled_for)

    def count(self) -> int:
        with self._lock:
            return len(self._items)


class InMemoryDeliveryRepository:
    """Thread-safe in-memory delivery store."""

    def __init__(self):
        self._items: Dict[str, Delivery] = {}
        self._lock = threading.Lock()

    def save(self, delivery: Delivery) -> Delivery:
        with self._lock:
            self._items[delivery.id] = delivery
        return delivery

    def find_by_id(self, delivery_id: str) -> Optional[Delivery]:
        with self._lock:
            return self._items.get(delivery_id)

    def update(self, delivery: Delivery) -> Delivery:
        with self._lock:
            if delivery.id not in self._items:
                raise DeliveryNotFound(delivery.id)
            self._items[delivery.id] = delivery
        return delivery

    def find_by_notification(self, notification_id: str) -> List[Delivery]:
        with self._lock:
            items = [d for d in self._items.values() if d.notification_id == notification_id]
        return sorted(items, key=lambda d: (d.channel.value, d.attempt_number))

    def find_by_notification_and_channel(
        self, notification_id: str, channel: NotificationChannel
    ) -> List[Delivery]:
        return [
            d for d in self.find_by_notification(notification_id) if d.channel == channel
        ]
