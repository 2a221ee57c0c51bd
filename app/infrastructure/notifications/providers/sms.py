"""SMS provider using the Twilio Programmable Messaging API."""

from typing import Any, Dict, Optional, TYPE_CHECKING

import requests
import structlog

from infrastructure.notifications.models import (
    NotificationChannel,
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
    from infrastructure.configuration.integrations import TwilioSettings

logger = structlog.get_logger()

SMS_MAX_LENGTH = 1600


class TwilioSMSProvider(NotificationProvider):
    """SMS notification provider using Twilio.

    Requires phone numbers in E.164 format (+1234567890). A ``media_url`` on
    the request is forwarded as ``MediaUrl`` for MMS/WhatsApp-style sends.
    """

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        api_url: str = "https://api.twilio.com",
        config: Optional[ProviderConfig] = None,
        timeout_seconds: float = 10.0,
        **kwargs: Any,
    ):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._api_url = api_url.rstrip("/")
        super().__init__(config=config, timeout_seconds=timeout_seconds, **kwargs)
        logger.info("initialized_sms_provider", backend="twilio")

    @classmethod
    def from_settings(
        cls, twilio: "TwilioSettings", timeout_seconds: float = 10.0
    ) -> "TwilioSMSProvider":
        return cls(
            account_sid=twilio.TWILIO_ACCOUNT_SID,
            auth_token=twilio.TWILIO_AUTH_TOKEN,
            from_number=twilio.TWILIO_FROM_NUMBER,
            api_url=twilio.TWILIO_API_URL,
            config=ProviderConfig(priority=twilio.TWILIO_PRIORITY),
            timeout_seconds=timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "twilio"

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.SMS

    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number)

    def validate_recipient(self, recipient: str) -> OperationResult:
        """Validate E.164 format: ``+`` followed by 1-15 digits."""
        phone = (recipient or "").strip()
        if not phone:
            return OperationResult.permanent_error(
                "Phone number required for SMS", error_code="MISSING_PHONE"
            )
        if not phone.startswith("+"):
            return OperationResult.permanent_error(
                "Phone number must be in E.164 format (+1234567890)",
                error_code="INVALID_PHONE_FORMAT",
            )
        digits = phone[1:]
        if not digits.isdigit() or len(digits) > 15:
            return OperationResult.permanent_error(
                "Phone number must have 1-15 digits after +",
                error_code="INVALID_PHONE_LENGTH",
            )
        return OperationResult.success(data={"recipient": phone})

    def _body(self, request: SendRequest) -> str:
        text = request.text_content or request.content
        body = f"{request.title}: {text}" if request.title else text
        if len(body) > SMS_MAX_LENGTH:
            logger.warning(
                "sms_message_truncated",
                original_length=len(body),
                max_length=SMS_MAX_LENGTH,
            )
            body = body[: SMS_MAX_LENGTH - 3] + "..."
        return body

    def _deliver(self, request: SendRequest) -> OperationResult:
        url = f"{self._api_url}/2010-04-01/Accounts/{self._account_sid}/Messages.json"
        form: Dict[str, str] = {
            "To": request.recipient.strip(),
            "From": self._from_number or "",
            "Body": self._body(request),
        }
        if request.media_url:
            form["MediaUrl"] = request.media_url

        try:
            response = requests.post(
                url,
                data=form,
                auth=(self._account_sid, self._auth_token),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return classify_request_exception(e, vendor="Twilio")

        if response.status_code != 201:
            return classify_http_response(response, vendor="Twilio")

        try:
            body = response.json()
        except ValueError:
            body = {}
        return OperationResult.success(
            message="SMS accepted by Twilio",
            data={"message_id": body.get("sid"), "vendor_status": body.get("status")},
        )

    def _check_health(self) -> OperationResult:
        url = f"{self._api_url}/2010-04-01/Accounts/{self._account_sid}.json"
        try:
            response = requests.get(
                url,
                auth=(self._account_sid, self._auth_token),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return classify_request_exception(e, vendor="Twilio")
        if response.status_code != 200:
            return classify_http_response(response, vendor="Twilio")
        return OperationResult.success(message="Twilio account reachable")
