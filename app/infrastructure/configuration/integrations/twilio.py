"""Twilio SMS integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class TwilioSettings(IntegrationSettings):
    """Twilio Programmable Messaging configuration.

    Environment Variables:
        TWILIO_ACCOUNT_SID: Twilio account SID (SMS provider disabled when unset)
        TWILIO_AUTH_TOKEN: Twilio auth token
        TWILIO_FROM_NUMBER: E.164 sender number
        TWILIO_API_URL: Twilio API base URL
        TWILIO_PRIORITY: Routing priority of the provider (lower is preferred)
    """

    TWILIO_ACCOUNT_SID: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: str | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    TWILIO_FROM_NUMBER: str | None = Field(default=None, alias="TWILIO_FROM_NUMBER")
    TWILIO_API_URL: str = Field(
        default="https://api.twilio.com", alias="TWILIO_API_URL"
    )
    TWILIO_PRIORITY: int = Field(default=1, alias="TWILIO_PRIORITY")
