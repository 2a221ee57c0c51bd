import pytest
import structlog

from infrastructure.configuration import Settings
from infrastructure.configuration.infrastructure import DispatchSettings, SchedulerSettings
from infrastructure.configuration.integrations import (
    FCMSettings,
    SendGridSettings,
    TwilioSettings,
    WebhookSettings,
)


@pytest.fixture(autouse=True)
def clear_log_context():
    """Keep structlog context variables from leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def unconfigured_settings():
    """Settings with no vendor credentials and a small dispatch pool.

    Only the in-app and webhook providers are buildable from these.
    """
    return Settings(
        sendgrid=SendGridSettings(SENDGRID_API_KEY=None),
        twilio=TwilioSettings(
            TWILIO_ACCOUNT_SID=None, TWILIO_AUTH_TOKEN=None, TWILIO_FROM_NUMBER=None
        ),
        fcm=FCMSettings(FCM_PROJECT_ID=None, FCM_ACCESS_TOKEN=None),
        webhook=WebhookSettings(WEBHOOK_ENABLED=True, WEBHOOK_SIGNING_SECRET=None),
        dispatch=DispatchSettings(
            DISPATCH_MAX_WORKERS=4,
            DISPATCH_PROVIDER_TIMEOUT_SECONDS=2.0,
            DISPATCH_FALLBACK_AFTER_FAILURES=2,
            NOTIFICATION_MAX_RETRIES=3,
        ),
        scheduler=SchedulerSettings(
            SCHEDULER_ENABLED=False,
            SCHEDULER_SWEEP_INTERVAL_SECONDS=30,
            SCHEDULER_PURGE_INTERVAL_SECONDS=300,
        ),
    )


@pytest.fixture
def configured_settings(unconfigured_settings):
    """Settings with credentials for every vendor."""
    return unconfigured_settings.model_copy(
        update={
            "sendgrid": SendGridSettings(
                SENDGRID_API_KEY="SG.test-key",
                SENDGRID_FROM_EMAIL="no-reply@acme.io",
                SENDGRID_FROM_NAME="Acme",
            ),
            "twilio": TwilioSettings(
                TWILIO_ACCOUNT_SID="AC123",
                TWILIO_AUTH_TOKEN="twilio-token",
                TWILIO_FROM_NUMBER="+15550000000",
            ),
            "fcm": FCMSettings(FCM_PROJECT_ID="acme-app", FCM_ACCESS_TOKEN="ya29.token"),
        }
    )
