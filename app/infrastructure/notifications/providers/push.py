"""Push provider using the Firebase Cloud Messaging HTTP v1 API."""

import time
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

import requests
import structlog

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
    from infrastructure.configuration.integrations import FCMSettings

logger = structlog.get_logger()


class FCMPushProvider(NotificationProvider):
    """Push notification provider using Firebase Cloud Messaging.

    One ``messages:send`` call is made per target: every distinct device
    token (the recipient plus ``device_tokens``) and the topic when one is
    given. The send succeeds when at least one target is accepted; rejected
    targets are reported in the result metadata so a resubmission does not
    push twice to devices that already received it. All targets share one
    ``timeout_seconds`` budget.
    """

    def __init__(
        self,
        project_id: Optional[str],
        access_token: Optional[str],
        api_url: str = "https://fcm.googleapis.com",
        config: Optional[ProviderConfig] = None,
        timeout_seconds: float = 10.0,
        monotonic: Callable[[], float] = time.monotonic,
        **kwargs: Any,
    ):
        self._project_id = project_id
        self._monotonic = monotonic
        self._access_token = access_token
        self._api_url = api_url.rstrip("/")
        super().__init__(config=config, timeout_seconds=timeout_seconds, **kwargs)
        logger.info("initialized_push_provider", backend="fcm")

    @classmethod
    def from_settings(
        cls, fcm: "FCMSettings", timeout_seconds: float = 10.0
    ) -> "FCMPushProvider":
        return cls(
            project_id=fcm.FCM_PROJECT_ID,
            access_token=fcm.FCM_ACCESS_TOKEN,
            api_url=fcm.FCM_API_URL,
            config=ProviderConfig(priority=fcm.FCM_PRIORITY),
            timeout_seconds=timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "fcm"

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.PUSH

    def is_configured(self) -> bool:
        return bool(self._project_id and self._access_token)

    @staticmethod
    def targets(request: SendRequest) -> List[Dict[str, str]]:
        tokens = dict.fromkeys(
            token.strip()
            for token in [request.recipient, *request.device_tokens]
            if token and token.strip()
        )
        targets = [{"token": token} for token in tokens]
        if request.topic:
            targets.append({"topic": request.topic})
        return targets

    def _message(self, request: SendRequest, target: Dict[str, str]) -> Dict[str, Any]:
        urgent = request.priority in (NotificationPriority.HIGH, NotificationPriority.URGENT)
        message: Dict[str, Any] = {
            **target,
            "notification": {"title": request.title or "", "body": request.content},
            # FCM data payloads only carry string values
            "data": {str(k): str(v) for k, v in request.data.items()},
            "android": {"priority": "high" if urgent else "normal"},
        }
        if request.notification_id:
            message["data"]["notification_id"] = request.notification_id
        return {"message": message}

    def _deliver(self, request: SendRequest) -> OperationResult:
        url = f"{self._api_url}/v1/projects/{self._project_id}/messages:send"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

        # One budget for all targets so the whole fan-out fits the provider timeout
        deadline = self._monotonic() + self._timeout
        message_ids: List[str] = []
        failures: List[OperationResult] = []
        for target in self.targets(request):
            remaining = deadline - self._monotonic()
            if remaining <= 0:
                failures.append(
                    OperationResult.transient_error(
                        "FCM send deadline reached before target was sent",
                        error_code="DEADLINE_EXCEEDED",
                    )
                )
                continue
            try:
                response = requests.post(
                    url,
                    json=self._message(request, target),
                    headers=headers,
                    timeout=remaining,
                )
            except requests.RequestException as e:
                failures.append(classify_request_exception(e, vendor="FCM"))
                continue
            if response.status_code != 200:
                failures.append(classify_http_response(response, vendor="FCM"))
                continue
            try:
                message_ids.append(response.json().get("name", ""))
            except ValueError:
                message_ids.append("")

        if failures and not message_ids:
            transient = [f for f in failures if f.is_retryable]
            first = transient[0] if transient else failures[0]
            return OperationResult.error(
                first.status,
                f"all {len(failures)} push targets failed: {first.message}",
                error_code=first.error_code,
                retry_after=first.retry_after,
            )

        data: Dict[str, Any] = {
            "message_id": message_ids[0] if message_ids else None,
            "message_ids": message_ids,
        }
        if failures:
            # Accepted devices already have the push; a retry would duplicate it
            logger.warning(
                "push_targets_partially_rejected",
                accepted=len(message_ids),
                rejected=len(failures),
                error_codes=[f.error_code for f in failures],
            )
            data["rejected_targets"] = len(failures)
            data["rejected_error_codes"] = [f.error_code for f in failures]

        return OperationResult.success(message="Push accepted by FCM", data=data)
