"""Notification service facade.

Wires the provider registry, router, repositories, dispatcher and scheduler
from ``Settings`` into one class-based interface for callers and tests.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import structlog

from infrastructure.notifications.clock import Clock, SystemClock
from infrastructure.notifications.dispatcher import NotificationDispatcher
from infrastructure.notifications.exceptions import (
    InvalidStateTransition,
    NotificationNotFound,
)
from infrastructure.notifications.models import (
    Delivery,
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from infrastructure.notifications.preferences import PreferenceResolver
from infrastructure.notifications.providers import build_default_providers
from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.notifications.providers.in_app import InAppMessageStore
from infrastructure.notifications.registry import ProviderRegistry
from infrastructure.notifications.repositories import (
    DeliveryRepository,
    InMemoryDeliveryRepository,
    InMemoryNotificationRepository,
    NotificationRepository,
)
from infrastructure.notifications.router import ChannelRouter
from infrastructure.notifications.scheduler import DeliveryScheduler

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = structlog.get_logger()


class NotificationService:
    """Class-based notification service.

    Every collaborator can be injected; anything omitted is built from
    ``settings``. Providers whose credentials are present are registered
    and routed with their configured priority.

    Usage:
        from infrastructure.configuration import settings
        from infrastructure.notifications import NotificationChannel, NotificationService

        service = NotificationService(settings)
        notification = service.create_notification(
            user_id="user-1",
            title="Welcome",
            message="Hello {{ name }}",
            channels=[NotificationChannel.EMAIL],
            metadata={
                "recipients": {"email": "user@example.com"},
                "template_variables": {"name": "Ada"},
            },
        )
        result = service.send(notification)
    """

    def __init__(
        self,
        settings: "Settings",
        registry: Optional[ProviderRegistry] = None,
        router: Optional[ChannelRouter] = None,
        notification_repository: Optional[NotificationRepository] = None,
        delivery_repository: Optional[DeliveryRepository] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        scheduler: Optional[DeliveryScheduler] = None,
        clock: Optional[Clock] = None,
        in_app_store: Optional[InAppMessageStore] = None,
        preference_resolver: Optional[PreferenceResolver] = None,
    ):
        self._settings = settings
        self._clock = clock or SystemClock()
        self._notifications = notification_repository or InMemoryNotificationRepository()
        self._deliveries = delivery_repository or InMemoryDeliveryRepository()

        if router is not None:
            self._registry = router.registry
        else:
            self._registry = registry or ProviderRegistry()
        self._router = router or ChannelRouter(self._registry)

        if registry is None and router is None:
            for provider in build_default_providers(settings, in_app_store=in_app_store):
                self.register_provider(provider)

        self._dispatcher = dispatcher or NotificationDispatcher(
            router=self._router,
            delivery_repository=self._deliveries,
            notification_repository=self._notifications,
            preference_resolver=preference_resolver,
            clock=self._clock,
            max_workers=settings.dispatch.max_workers,
            provider_timeout_seconds=settings.dispatch.provider_timeout_seconds,
            fallback_after_failures=settings.dispatch.fallback_after_failures,
        )
        self._scheduler = scheduler or DeliveryScheduler(
            dispatch=self._dispatcher.dispatch,
            clock=self._clock,
            on_complete=self._notifications.save,
        )

        logger.info(
            "initialized_notification_service",
            providers=[p.name for p in self._registry.get_all()],
        )

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def router(self) -> ChannelRouter:
        return self._router

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def scheduler(self) -> DeliveryScheduler:
        return self._scheduler

    def register_provider(
        self, provider: NotificationProvider, priority: Optional[int] = None
    ) -> None:
        """Register ``provider`` and add it to its channel's routing table.

        Args:
            provider: Provider instance
            priority: Routing priority; defaults to ``provider.config.priority``
        """
        self._registry.register(provider)
        self._router.add_provider(
            provider.channel,
            provider.name,
            provider.config.priority if priority is None else priority,
        )

    def set_fallback(
        self, channel: NotificationChannel, from_name: str, to_name: str
    ) -> None:
        self._router.set_fallback(channel, from_name, to_name)

    def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        channels: List[NotificationChannel],
        notification_type: NotificationType = NotificationType.INFO,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        template_id: Optional[str] = None,
        scheduled_for: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
    ) -> Notification:
        """Create and store a pending notification. Nothing is sent yet."""
        notification = Notification.create(
            user_id=user_id,
            title=title,
            message=message,
            channels=channels,
            notification_type=notification_type,
            priority=priority,
            template_id=template_id,
            scheduled_for=scheduled_for,
            expires_at=expires_at,
            metadata=metadata,
            max_retries=max_retries or self._settings.dispatch.default_max_retries,
            at=self._clock.now(),
        )
        self._notifications.save(notification)
        logger.info(
            "notification_created",
            notification_id=notification.id,
            user_id=user_id,
            channels=[c.value for c in notification.channels],
        )
        return notification

    def send(self, notification: Notification) -> Notification:
        """Dispatch now, or hand to the scheduler when ``scheduled_for`` is in the future.

        The stored notification wins over a stale caller copy, so re-sending an
        object the caller still holds never rewinds ``retry_count``.

        Returns:
            The notification in its new state (``pending`` with a schedule, or
            the post-dispatch state).

        Raises:
            NotificationExpired, NoProviderAvailable, NoEnabledChannels
            InvalidStateTransition: the stored notification has already left
                ``pending``; use ``resubmit`` for failed notifications.
        """
        notification = self._reconcile(notification)
        if notification.is_scheduled(self._clock.now()):
            scheduled = self._scheduler.schedule(notification, notification.scheduled_for)
            self._notifications.save(scheduled)
            return scheduled

        self._notifications.save(notification)
        return self._dispatcher.dispatch(notification).notification

    def _reconcile(self, notification: Notification) -> Notification:
        stored = self._notifications.find_by_id(notification.id)
        if stored is None:
            return notification
        if stored.status != NotificationStatus.PENDING:
            raise InvalidStateTransition(
                stored.status.value,
                NotificationStatus.PROCESSING.value,
                reason="notification was already dispatched",
            )
        if stored.retry_count > notification.retry_count:
            logger.warning(
                "stale_notification_copy_replaced",
                notification_id=notification.id,
                retry_count=notification.retry_count,
                stored_retry_count=stored.retry_count,
            )
            return stored
        return notification

    def resubmit(self, notification_id: str) -> Notification:
        """Send a failed notification again while its retry budget lasts.

        Raises:
            NotificationNotFound: unknown id.
            InvalidStateTransition: not failed, or the budget is exhausted.
        """
        notification = self.get_notification(notification_id)
        pending = notification.resubmit(at=self._clock.now())
        self._notifications.update(pending)
        logger.info(
            "notification_resubmitted",
            notification_id=notification_id,
            retry_count=pending.retry_count,
        )
        return self.send(pending)

    def cancel(self, notification_id: str) -> Notification:
        """Cancel a pending or processing notification.

        An attempt already handed to a provider is not aborted.

        Raises:
            NotificationNotFound: unknown id.
            InvalidStateTransition: the notification is past processing.
        """
        notification = self.get_notification(notification_id)
        cancelled = notification.mark_as_cancelled(at=self._clock.now())
        self._scheduler.cancel(notification_id)
        self._notifications.update(cancelled)
        logger.info("notification_cancelled", notification_id=notification_id)
        return cancelled

    def mark_as_read(self, notification_id: str) -> Notification:
        notification = self.get_notification(notification_id)
        read = notification.mark_as_read(at=self._clock.now())
        if read is not notification:
            self._notifications.update(read)
        return read

    def confirm_delivery(self, delivery_id: str) -> Delivery:
        """Record a vendor delivery receipt.

        The notification moves from ``sent`` to ``delivered`` on its first
        confirmed delivery.
        """
        now = self._clock.now()
        delivery = self._dispatcher.confirm_delivery(delivery_id, at=now)
        notification = self._notifications.find_by_id(delivery.notification_id)
        if notification is not None and notification.status == NotificationStatus.SENT:
            self._notifications.update(notification.mark_as_delivered(at=now))
        return delivery

    def get_notification(self, notification_id: str) -> Notification:
        """Raises NotificationNotFound for unknown ids."""
        notification = self._notifications.find_by_id(notification_id)
        if notification is None:
            raise NotificationNotFound(notification_id)
        return notification

    def get_user_notifications(self, user_id: str) -> List[Notification]:
        return self._notifications.find_by_user(user_id)

    def get_deliveries(self, notification_id: str) -> List[Delivery]:
        return self._deliveries.find_by_notification(notification_id)

    def health_check(self) -> Dict[str, bool]:
        """Health of every registered provider, keyed by provider name."""
        return {
            provider.name: provider.health_check().healthy
            for provider in self._registry.get_all()
        }

    def process_scheduled(self) -> Dict[str, int]:
        return self._scheduler.process_scheduled_notifications()

    def shutdown(self) -> None:
        self._dispatcher.shutdown()
