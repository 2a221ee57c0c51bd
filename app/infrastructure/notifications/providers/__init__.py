"""Notification providers.

One provider per vendor integration; each sends on exactly one channel.
"""

from typing import List, Optional, TYPE_CHECKING

import structlog

from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.notifications.providers.email import SendGridEmailProvider
from infrastructure.notifications.providers.in_app import (
    InAppMessage,
    InAppMessageStore,
    InAppProvider,
    InMemoryInAppMessageStore,
)
from infrastructure.notifications.providers.push import FCMPushProvider
from infrastructure.notifications.providers.sms import TwilioSMSProvider
from infrastructure.notifications.providers.webhook import WebhookProvider

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = structlog.get_logger()


def build_default_providers(
    settings: "Settings",
    in_app_store: Optional[InAppMessageStore] = None,
) -> List[NotificationProvider]:
    """Build the providers whose credentials are present in ``settings``.

    The in-app provider is always included; the webhook provider unless
    disabled with WEBHOOK_ENABLED=false.
    """
    timeout = settings.dispatch.provider_timeout_seconds
    candidates: List[NotificationProvider] = [
        SendGridEmailProvider.from_settings(settings.sendgrid, timeout_seconds=timeout),
        TwilioSMSProvider.from_settings(settings.twilio, timeout_seconds=timeout),
        FCMPushProvider.from_settings(settings.fcm, timeout_seconds=timeout),
        WebhookProvider.from_settings(settings.webhook, timeout_seconds=timeout),
        InAppProvider(store=in_app_store),
    ]

    providers = []
    for provider in candidates:
        if provider.is_configured() and provider.config.enabled:
            providers.append(provider)
        else:
            logger.info("provider_skipped_not_configured", provider=provider.name)
    return providers


__all__ = [
    "NotificationProvider",
    "SendGridEmailProvider",
    "TwilioSMSProvider",
    "FCMPushProvider",
    "WebhookProvider",
    "InAppProvider",
    "InAppMessage",
    "InAppMessageStore",
    "InMemoryInAppMessageStore",
    "build_default_providers",
]
