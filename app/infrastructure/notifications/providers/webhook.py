"""Webhook provider posting signed JSON payloads to recipient URLs."""

import hashlib
import hmac
import json
from typing import Any, Dict, Optional, TYPE_CHECKING
from urllib.parse import urlparse

import requests
import structlog

from infrastructure.notifications.clock import utc_now
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
    from infrastructure.configuration.integrations import WebhookSettings

logger = structlog.get_logger()

SIGNATURE_HEADER = "X-Signature-256"


def sign_payload(secret: str, body: bytes) -> str:
    """Return the ``sha256=<hex>`` HMAC signature of ``body``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookProvider(NotificationProvider):
    """Webhook notification provider.

    The recipient address is the target URL. Any 2xx response counts as
    accepted. When a signing secret is configured the body is signed with
    HMAC-SHA256 and the signature sent in ``X-Signature-256``.
    """

    def __init__(
        self,
        signing_secret: Optional[str] = None,
        config: Optional[ProviderConfig] = None,
        timeout_seconds: float = 10.0,
        **kwargs: Any,
    ):
        self._signing_secret = signing_secret
        super().__init__(config=config, timeout_seconds=timeout_seconds, **kwargs)

    @classmethod
    def from_settings(
        cls, webhook: "WebhookSettings", timeout_seconds: float = 10.0
    ) -> "WebhookProvider":
        return cls(
            signing_secret=webhook.WEBHOOK_SIGNING_SECRET,
            config=ProviderConfig(
                enabled=webhook.WEBHOOK_ENABLED, priority=webhook.WEBHOOK_PRIORITY
            ),
            timeout_seconds=timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "webhook"

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.WEBHOOK

    def validate_recipient(self, recipient: str) -> OperationResult:
        parsed = urlparse((recipient or "").strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return OperationResult.permanent_error(
                f"Webhook recipient must be an http(s) URL: {recipient}",
                error_code="INVALID_WEBHOOK_URL",
            )
        return OperationResult.success(data={"recipient": recipient.strip()})

    def _payload(self, request: SendRequest) -> Dict[str, Any]:
        return {
            "notification_id": request.notification_id,
            "title": request.title,
            "subject": request.subject,
            "content": request.content,
            "priority": request.priority.value,
            "data": request.data,
            "sent_at": utc_now().isoformat(),
        }

    def _deliver(self, request: SendRequest) -> OperationResult:
        body = json.dumps(self._payload(request), sort_keys=True, default=str).encode(
            "utf-8"
        )
        headers = {"Content-Type": "application/json"}
        if self._signing_secret:
            headers[SIGNATURE_HEADER] = sign_payload(self._signing_secret, body)

        try:
            response = requests.post(
                request.recipient.strip(),
                data=body,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return classify_request_exception(e, vendor="Webhook")

        if not 200 <= response.status_code < 300:
            return classify_http_response(response, vendor="Webhook")

        return OperationResult.success(
            message="Webhook accepted",
            data={
                "message_id": response.headers.get("X-Request-Id"),
                "status_code": response.status_code,
            },
        )
