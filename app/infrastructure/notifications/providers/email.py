"""Email provider using the SendGrid v3 Mail Send API."""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

import requests
import structlog
from pydantic import EmailStr, TypeAdapter, ValidationError

from infrastructure.notifications.models import (
    NotificationChannel,
    NotificationPriority,
    ProviderConfig,
    SendRequest,
)
from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.operations import (
    OperationResult,
    classify_http_response,
    classify_request_exception,
)

if TYPE_CHECKING:
    from infrastructure.configuration.integrations import SendGridSettings

logger = structlog.get_logger()

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


class SendGridEmailProvider(NotificationProvider):
    """Email notification provider using SendGrid.

    Sends through ``POST /v3/mail/send``. SendGrid answers ``202 Accepted``
    and returns the message id in the ``X-Message-Id`` header.
    """

    supports_templates = True

    def __init__(
        self,
        api_key: Optional[str],
        from_email: str,
        from_name: Optional[str] = None,
        api_url: str = "https://api.sendgrid.com",
        config: Optional[ProviderConfig] = None,
        timeout_seconds: float = 10.0,
        **kwargs: Any,
    ):
        self._api_key = api_key
        self._from_email = from_email
        self._from_name = from_name
        self._api_url = api_url.rstrip("/")
        super().__init__(config=config, timeout_seconds=timeout_seconds, **kwargs)
        logger.info("initialized_email_provider", backend="sendgrid")

    @classmethod
    def from_settings(
        cls, sendgrid: "SendGridSettings", timeout_seconds: float = 10.0
    ) -> "SendGridEmailProvider":
        return cls(
            api_key=sendgrid.SENDGRID_API_KEY,
            from_email=sendgrid.SENDGRID_FROM_EMAIL,
            from_name=sendgrid.SENDGRID_FROM_NAME,
            api_url=sendgrid.SENDGRID_API_URL,
            config=ProviderConfig(priority=sendgrid.SENDGRID_PRIORITY),
            timeout_seconds=timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "sendgrid"

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.EMAIL

    def is_configured(self) -> bool:
        return bool(self._api_key and self._from_email)

    def validate_recipient(self, recipient: str) -> OperationResult:
        try:
            email = _EMAIL_ADAPTER.validate_python(recipient.strip())
        except ValidationError:
            return OperationResult.permanent_error(
                f"Invalid email address: {recipient}",
                error_code="INVALID_EMAIL",
            )
        return OperationResult.success(data={"recipient": email})

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, request: SendRequest) -> Dict[str, Any]:
        sender: Dict[str, str] = {"email": self._from_email}
        if self._from_name:
            sender["name"] = self._from_name

        content: List[Dict[str, str]] = []
        if request.text_content:
            content.append({"type": "text/plain", "value": request.text_content})
            content.append({"type": "text/html", "value": request.content})
        else:
            content.append({"type": "text/plain", "value": request.content})

        payload: Dict[str, Any] = {
            "personalizations": [{"to": [{"email": request.recipient.strip()}]}],
            "from": sender,
            "subject": request.subject or request.title or "Notification",
            "content": content,
        }
        if request.notification_id:
            payload["custom_args"] = {"notification_id": request.notification_id}
        if request.priority in (NotificationPriority.HIGH, NotificationPriority.URGENT):
            payload["headers"] = {"Priority": "Urgent", "Importance": "high"}
        return payload

    def _deliver(self, request: SendRequest) -> OperationResult:
        url = f"{self._api_url}/v3/mail/send"
        try:
            response = requests.post(
                url,
                json=self._build_payload(request),
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return classify_request_exception(e, vendor="SendGrid")

        if response.status_code != 202:
            return classify_http_response(response, vendor="SendGrid")

        return OperationResult.success(
            message="Email accepted by SendGrid",
            data={"message_id": response.headers.get("X-Message-Id")},
        )

    def _check_health(self) -> OperationResult:
        try:
            response = requests.get(
                f"{self._api_url}/v3/scopes",
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return classify_request_exception(e, vendor="SendGrid")
        if response.status_code != 200:
            return classify_http_response(response, vendor="SendGrid")
        return OperationResult.success(message="SendGrid API credentials valid")
