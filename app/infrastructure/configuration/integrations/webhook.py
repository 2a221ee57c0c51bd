"""Outbound webhook integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class WebhookSettings(IntegrationSettings):
    """Outbound webhook delivery configuration.

    Environment Variables:
        WEBHOOK_ENABLED: Register the webhook provider (default: True)
        WEBHOOK_SIGNING_SECRET: Secret used to sign payloads (HMAC-SHA256)
        WEBHOOK_PRIORITY: Routing priority of the provider (lower is preferred)
    """

    WEBHOOK_ENABLED: bool = Field(default=True, alias="WEBHOOK_ENABLED")
    WEBHOOK_SIGNING_SECRET: str | None = Field(
        default=None, alias="WEBHOOK_SIGNING_SECRET"
    )
    WEBHOOK_PRIORITY: int = Field(default=1, alias="WEBHOOK_PRIORITY")
