"""Multi-channel notification dispatch engine.

Delivers notifications over email, SMS, push, in-app and webhook with:
- Notification and Delivery state machines
- Provider registry and priority-ordered channel routing with fallback
- Parallel per-channel dispatch with provider timeouts
- Deferred delivery through the scheduler

Usage:
    from infrastructure.configuration import settings
    from infrastructure.notifications import (
        NotificationChannel,
        NotificationService,
    )

    service = NotificationService(settings)
    notification = service.create_notification(
        user_id="user-1",
        title="Your report is ready",
        message="Hi {{ name }}, your report is ready.",
        channels=[NotificationChannel.EMAIL, NotificationChannel.IN_APP],
        metadata={
            "recipients": {"email": "user@example.com"},
            "template_variables": {"name": "Ada"},
        },
    )
    result = service.send(notification)
    logger.info("notification_sent", status=result.status.value)
"""

# Models
from infrastructure.notifications.models import (
    Delivery,
    DeliveryStatus,
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    ProviderConfig,
    ProviderHealth,
    SendRequest,
    SendResult,
)

# Errors
from infrastructure.notifications.exceptions import (
    DeliveryNotFound,
    InvalidSchedule,
    InvalidStateTransition,
    NoEnabledChannels,
    NoProviderAvailable,
    NotificationError,
    NotificationExpired,
    NotificationNotFound,
    ProviderDeliveryFailure,
    ProviderTimeout,
    TemplateRenderError,
)

# Time
from infrastructure.notifications.clock import Clock, ManualClock, SystemClock

# Providers
from infrastructure.notifications.providers import (
    FCMPushProvider,
    InAppProvider,
    InMemoryInAppMessageStore,
    NotificationProvider,
    SendGridEmailProvider,
    TwilioSMSProvider,
    WebhookProvider,
    build_default_providers,
)

# Preferences
from infrastructure.notifications.preferences import (
    ChannelPreferences,
    MetadataPreferenceResolver,
    PreferenceResolver,
    QuietHours,
)

# Registry and routing
from infrastructure.notifications.registry import ProviderRegistry, get_provider_registry
from infrastructure.notifications.router import ChannelRouter, RoutingEntry, RoutingParams

# Templates and persistence
from infrastructure.notifications.templates import TemplateRenderer
from infrastructure.notifications.repositories import (
    DeliveryRepository,
    InMemoryDeliveryRepository,
    InMemoryNotificationRepository,
    NotificationRepository,
)

# Dispatch and scheduling
from infrastructure.notifications.dispatcher import (
    DispatchOutcome,
    MetadataRecipientResolver,
    NotificationDispatcher,
    RecipientResolver,
)
from infrastructure.notifications.scheduler import DeliveryScheduler
from infrastructure.notifications.service import NotificationService

__all__ = [
    # Models
    "Delivery",
    "DeliveryStatus",
    "Notification",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationType",
    "ProviderConfig",
    "ProviderHealth",
    "SendRequest",
    "SendResult",
    # Errors
    "DeliveryNotFound",
    "InvalidSchedule",
    "InvalidStateTransition",
    "NoEnabledChannels",
    "NoProviderAvailable",
    "NotificationError",
    "NotificationExpired",
    "NotificationNotFound",
    "ProviderDeliveryFailure",
    "ProviderTimeout",
    "TemplateRenderError",
    # Time
    "Clock",
    "ManualClock",
    "SystemClock",
    # Providers
    "FCMPushProvider",
    "InAppProvider",
    "InMemoryInAppMessageStore",
    "NotificationProvider",
    "SendGridEmailProvider",
    "TwilioSMSProvider",
    "WebhookProvider",
    "build_default_providers",
    # Preferences
    "ChannelPreferences",
    "MetadataPreferenceResolver",
    "PreferenceResolver",
    "QuietHours",
    # Registry and routing
    "ProviderRegistry",
    "get_provider_registry",
    "ChannelRouter",
    "RoutingEntry",
    "RoutingParams",
    # Templates and persistence
    "TemplateRenderer",
    "DeliveryRepository",
    "InMemoryDeliveryRepository",
    "InMemoryNotificationRepository",
    "NotificationRepository",
    # Dispatch and scheduling
    "DispatchOutcome",
    "MetadataRecipientResolver",
    "NotificationDispatcher",
    "RecipientResolver",
    "DeliveryScheduler",
    "NotificationService",
]
