"""Firebase Cloud Messaging integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class FCMSettings(IntegrationSettings):
    """Firebase Cloud Messaging HTTP v1 configuration.

    Environment Variables:
        FCM_PROJECT_ID: Firebase project identifier (push provider disabled when unset)
        FCM_ACCESS_TOKEN: OAuth2 bearer token for the FCM v1 API
        FCM_API_URL: FCM API base URL
        FCM_PRIORITY: Routing priority of the provider (lower is preferred)
    """

    FCM_PROJECT_ID: str | None = Field(default=None, alias="FCM_PROJECT_ID")
    FCM_ACCESS_TOKEN: str | None = Field(default=None, alias="FCM_ACCESS_TOKEN")
    FCM_API_URL: str = Field(default="https://fcm.googleapis.com", alias="FCM_API_URL")
    FCM_PRIORITY: int = Field(default=1, alias="FCM_PRIORITY")
