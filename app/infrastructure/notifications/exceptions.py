"""Exceptions raised by the notification dispatch engine.

Configuration and caller errors (``InvalidStateTransition``,
``NoProviderAvailable``, ``InvalidSchedule``) propagate to the caller.
Provider failures (``ProviderTimeout``, ``ProviderDeliveryFailure``) are
recorded on the Delivery and never escape the dispatcher.
"""

from datetime import datetime
from typing import Optional


class NotificationError(Exception):
    """Base exception for all notification engine errors.

    Example:
        try:
            service.send(notification)
        except NotificationError as e:
            logger.error("notification_error", error=str(e))
    """

    pass


class InvalidStateTransition(NotificationError):
    """Raised when an entity's current status disallows the requested transition.

    Example:
        >>> delivered.mark_as_cancelled()
        Traceback (most recent call last):
        ...
        InvalidStateTransition: Cannot transition from 'delivered' to 'cancelled'
    """

    def __init__(self, current: str, requested: str, reason: Optional[str] = None):
        self.current = current
        self.requested = requested
        self.reason = reason
        message = f"Cannot transition from '{current}' to '{requested}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NoProviderAvailable(NotificationError):
    """Raised when no provider is registered for a channel."""

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(f"No provider available for channel '{channel}'")


class InvalidSchedule(NotificationError):
    """Raised when a schedule instant is not strictly in the future."""

    def __init__(self, scheduled_for: datetime, now: datetime):
        self.scheduled_for = scheduled_for
        self.now = now
        super().__init__(
            f"Scheduled time {scheduled_for.isoformat()} must be after {now.isoformat()}"
        )


class NotificationExpired(NotificationError):
    """Raised when dispatch is requested for a notification past its expiry."""

    def __init__(self, notification_id: str, expires_at: Optional[datetime]):
        self.notification_id = notification_id
        self.expires_at = expires_at
        expiry = expires_at.isoformat() if expires_at else "unknown"
        super().__init__(f"Notification '{notification_id}' expired at {expiry}")


class NoEnabledChannels(NotificationError):
    """Raised when preferences leave a notification with no usable channel."""

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(
            f"No enabled notification channels for notification '{notification_id}'"
        )


class NotificationNotFound(NotificationError):
    """Raised when a notification id is unknown to the repository."""

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification '{notification_id}' not found")


class DeliveryNotFound(NotificationError):
    """Raised when a delivery id is unknown to the repository."""

    def __init__(self, delivery_id: str):
        self.delivery_id = delivery_id
        super().__init__(f"Delivery '{delivery_id}' not found")


class ProviderTimeout(NotificationError):
    """A provider send did not complete within the configured timeout."""

    error_code = "PROVIDER_TIMEOUT"

    def __init__(self, provider_name: str, timeout_seconds: float):
        self.provider_name = provider_name
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Provider '{provider_name}' did not respond within {timeout_seconds}s"
        )


class ProviderDeliveryFailure(NotificationError):
    """A provider rejected or failed a send."""

    def __init__(
        self,
        provider_name: str,
        reason: str,
        error_code: Optional[str] = "PROVIDER_FAILURE",
    ):
        self.provider_name = provider_name
        self.reason = reason
        self.error_code = error_code
        super().__init__(f"Provider '{provider_name}' failed: {reason}")


class TemplateRenderError(NotificationError):
    """Template rendering could not be performed."""

    pass
