"""Notification provider abstract base class.

All provider implementations (SendGrid email, Twilio SMS, FCM push,
in-app, webhook) implement this interface. A provider sends on exactly one
channel and reports delivery failures in its ``SendResult``; it raises only
for programmer errors.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from infrastructure.notifications.models import (
    NotificationChannel,
    ProviderConfig,
    ProviderHealth,
    SendRequest,
    SendResult,
)
from infrastructure.operations import OperationResult
from infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    register_circuit_breaker,
)

logger = structlog.get_logger()

DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0


class _RetryableDeliveryError(Exception):
    """Carries a transient vendor failure through the circuit breaker."""

    def __init__(self, result: OperationResult):
        self.result = result
        super().__init__(result.message)


class NotificationProvider(ABC):
    """Abstract base class for notification providers.

    Subclasses supply ``name``, ``channel``, ``_deliver`` and optionally
    ``validate_recipient``, ``is_configured`` and ``_check_health``. The base
    class handles the enabled flag, recipient validation, the circuit breaker
    and the translation of ``OperationResult`` into ``SendResult``.

    Example Implementation:
        class ConsoleProvider(NotificationProvider):

            @property
            def name(self) -> str:
                return "console"

            @property
            def channel(self) -> NotificationChannel:
                return NotificationChannel.IN_APP

            def _deliver(self, request: SendRequest) -> OperationResult:
                print(request.content)
                return OperationResult.success(data={"message_id": "console-1"})
    """

    version: str = "1.0.0"
    supports_templates: bool = False

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self._config = config or ProviderConfig()
        self._timeout = timeout_seconds
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name=f"{self.name}_provider",
            failure_threshold=5,
            timeout_seconds=60,
        )
        register_circuit_breaker(self._circuit_breaker)

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider name used as the registry key."""
        pass

    @property
    @abstractmethod
    def channel(self) -> NotificationChannel:
        """Channel this provider sends on."""
        pass

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def configure(self, config: ProviderConfig) -> None:
        """Replace the provider configuration (enabled flag, priority, options)."""
        self._config = config
        logger.info(
            "provider_configured",
            provider=self.name,
            enabled=config.enabled,
            priority=config.priority,
        )

    def is_configured(self) -> bool:
        """True when the credentials required for sending are present."""
        return True

    def is_available(self) -> bool:
        """True when the provider is enabled, configured and its circuit lets calls through."""
        return (
            self._config.enabled
            and self.is_configured()
            and self._circuit_breaker.allows_request()
        )

    def validate_recipient(self, recipient: str) -> OperationResult:
        """Validate the recipient address for this channel."""
        if not recipient or not recipient.strip():
            return OperationResult.permanent_error(
                "Recipient address is required", error_code="MISSING_RECIPIENT"
            )
        return OperationResult.success(data={"recipient": recipient.strip()})

    def health_check(self) -> ProviderHealth:
        """Check vendor connectivity and credentials.

        Never raises; failures are reported in ``ProviderHealth.error``.
        """
        started = time.monotonic()
        if not self._config.enabled:
            result = OperationResult.permanent_error(
                "Provider is disabled", error_code="PROVIDER_DISABLED"
            )
        elif not self.is_configured():
            result = OperationResult.permanent_error(
                "Provider credentials are not configured",
                error_code="NOT_CONFIGURED",
            )
        else:
            try:
                result = self._check_health()
            except Exception as e:
                logger.error(
                    "provider_health_check_failed",
                    provider=self.name,
                    error=str(e),
                    exc_info=True,
                )
                result = OperationResult.transient_error(
                    f"Health check failed: {e}", error_code="HEALTH_CHECK_ERROR"
                )
        elapsed_ms = (time.monotonic() - started) * 1000
        return ProviderHealth(
            healthy=result.is_success,
            response_time_ms=round(elapsed_ms, 2),
            error=None if result.is_success else result.message,
        )

    def _check_health(self) -> OperationResult:
        return OperationResult.success(message="Provider configured")

    def send(self, request: SendRequest) -> SendResult:
        """Send one message.

        Args:
            request: Rendered content and channel-specific options.

        Returns:
            SendResult; ``success=False`` with ``error``/``error_code`` on failure.
        """
        if not self._config.enabled:
            return self._to_send_result(
                OperationResult.permanent_error(
                    "Provider is disabled", error_code="PROVIDER_DISABLED"
                )
            )
        if not self.is_configured():
            return self._to_send_result(
                OperationResult.permanent_error(
                    "Provider credentials are not configured",
                    error_code="NOT_CONFIGURED",
                )
            )

        validation = self.validate_recipient(request.recipient)
        if not validation.is_success:
            return self._to_send_result(validation)

        try:
            result = self._circuit_breaker.call(self._attempt, request)
        except _RetryableDeliveryError as e:
            result = e.result
        except CircuitBreakerOpenError as e:
            result = OperationResult.transient_error(str(e), error_code="CIRCUIT_OPEN")

        send_result = self._to_send_result(result)
        if send_result.success:
            logger.info(
                "provider_send_succeeded",
                provider=self.name,
                channel=self.channel.value,
                provider_message_id=send_result.provider_message_id,
            )
        else:
            logger.warning(
                "provider_send_failed",
                provider=self.name,
                channel=self.channel.value,
                error=send_result.error,
                error_code=send_result.error_code,
            )
        return send_result

    def _attempt(self, request: SendRequest) -> OperationResult:
        result = self._deliver(request)
        if result.is_retryable:
            raise _RetryableDeliveryError(result)
        return result

    @abstractmethod
    def _deliver(self, request: SendRequest) -> OperationResult:
        """Perform the vendor call.

        Returns:
            OperationResult whose ``data`` holds ``message_id`` on success.
        """
        pass

    def _to_send_result(self, result: OperationResult) -> SendResult:
        if result.is_success:
            data = result.data if isinstance(result.data, dict) else {}
            extras = {k: v for k, v in data.items() if k != "message_id"}
            return SendResult.ok(
                self.name, self.channel, data.get("message_id"), **extras
            )
        return SendResult.failed(
            self.name,
            self.channel,
            result.message,
            error_code=result.error_code,
            retryable=result.is_retryable,
            retry_after=result.retry_after,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, channel={self.channel.value!r})"
