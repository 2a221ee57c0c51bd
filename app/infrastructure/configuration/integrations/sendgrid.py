"""SendGrid email integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class SendGridSettings(IntegrationSettings):
    """SendGrid Mail Send API configuration.

    Environment Variables:
        SENDGRID_API_KEY: SendGrid API key (email provider disabled when unset)
        SENDGRID_FROM_EMAIL: Sender address for outgoing mail
        SENDGRID_FROM_NAME: Optional sender display name
        SENDGRID_API_URL: SendGrid API base URL
        SENDGRID_PRIORITY: Routing priority of the provider (lower is preferred)

    Example:
        ```python
        from infrastructure.configuration import settings

        api_key = settings.sendgrid.SENDGRID_API_KEY
        ```
    """

    SENDGRID_API_KEY: str | None = Field(default=None, alias="SENDGRID_API_KEY")
    SENDGRID_FROM_EMAIL: str = Field(
        default="no-reply@example.com", alias="SENDGRID_FROM_EMAIL"
    )
    SENDGRID_FROM_NAME: str | None = Field(default=None, alias="SENDGRID_FROM_NAME")
    SENDGRID_API_URL: str = Field(
        default="https://api.sendgrid.com", alias="SENDGRID_API_URL"
    )
    SENDGRID_PRIORITY: int = Field(default=1, alias="SENDGRID_PRIORITY")
