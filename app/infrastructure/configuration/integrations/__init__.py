"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.sendgrid import SendGridSettings
from infrastructure.configuration.integrations.twilio import TwilioSettings
from infrastructure.configuration.integrations.fcm import FCMSettings
from infrastructure.configuration.integrations.webhook import WebhookSettings

__all__ = [
    "SendGridSettings",
    "TwilioSettings",
    "FCMSettings",
    "WebhookSettings",
]
