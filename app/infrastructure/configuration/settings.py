"""Notification dispatch configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import (
    SendGridSettings,
    TwilioSettings,
    FCMSettings,
    WebhookSettings,
)

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    DispatchSettings,
    SchedulerSettings,
)


class Settings(BaseSettings):
    """Notification dispatch configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: Provider credentials (SendGrid, Twilio, FCM, webhook)
    - **Infrastructure**: Engine behavior (dispatch pool, scheduler sweep)

    Environment Variables:
        PREFIX: Environment prefix for multi-tenant deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.configuration import settings

        # Access integration settings
        api_key = settings.sendgrid.SENDGRID_API_KEY

        # Access infrastructure settings
        workers = settings.dispatch.max_workers
        if settings.scheduler.enabled:
            # Start the sweep loop...

        # Check environment
        if settings.is_production:
            # Production-specific logic...
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    sendgrid: SendGridSettings
    twilio: TwilioSettings
    fcm: FCMSettings
    webhook: WebhookSettings

    # Infrastructure settings
    dispatch: DispatchSettings
    scheduler: SchedulerSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "sendgrid": SendGridSettings,
            "twilio": TwilioSettings,
            "fcm": FCMSettings,
            "webhook": WebhookSettings,
            # Infrastructure
            "dispatch": DispatchSettings,
            "scheduler": SchedulerSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Create the singleton settings instance
settings = Settings()
