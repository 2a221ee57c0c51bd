"""Notification dispatcher fanning a notification out to its channels.

For each channel that has not yet succeeded the dispatcher routes to a
provider, records a Delivery, calls the provider on a bounded worker pool
with a timeout, and rolls the per-channel outcomes up into the
notification's status.

Usage Example:
    from infrastructure.notifications import (
        ChannelRouter,
        InMemoryDeliveryRepository,
        NotificationDispatcher,
        ProviderRegistry,
    )

    registry = ProviderRegistry()
    registry.register(email_provider)
    dispatcher = NotificationDispatcher(
        router=ChannelRouter(registry),
        delivery_repository=InMemoryDeliveryRepository(),
    )

    outcome = dispatcher.dispatch(notification)
    outcome.notification.status  # NotificationStatus.SENT
"""

import contextvars
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

import structlog

from infrastructure.logging import bind_dispatch_context
from infrastructure.notifications.clock import Clock, SystemClock
from infrastructure.notifications.exceptions import (
    DeliveryNotFound,
    NoEnabledChannels,
    NotificationExpired,
    ProviderDeliveryFailure,
    ProviderTimeout,
    TemplateRenderError,
)
from infrastructure.notifications.models import (
    Delivery,
    DeliveryStatus,
    Notification,
    NotificationChannel,
    NotificationStatus,
    SendRequest,
    SendResult,
)
from infrastructure.notifications.preferences import (
    MetadataPreferenceResolver,
    PreferenceResolver,
)
from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.notifications.repositories import (
    DeliveryRepository,
    NotificationRepository,
)
from infrastructure.notifications.router import ChannelRouter, RoutingParams
from infrastructure.notifications.templates import TemplateRenderer

logger = structlog.get_logger()

_CHANNEL_RECIPIENT_KEYS: Dict[NotificationChannel, str] = {
    NotificationChannel.EMAIL: "email",
    NotificationChannel.SMS: "phone_number",
    NotificationChannel.PUSH: "device_token",
    NotificationChannel.WEBHOOK: "webhook_url",
}


class RecipientResolver(Protocol):
    """Resolves the address a channel should deliver to."""

    def resolve(
        self, notification: Notification, channel: NotificationChannel
    ) -> Optional[str]: ...


class MetadataRecipientResolver:
    """Reads recipient addresses from notification metadata.

    Lookup order: ``metadata["recipients"][<channel>]``, then the channel's
    flat key (``email``, ``phone_number``, ``device_token``, ``webhook_url``).
    In-app deliveries go to ``user_id``.
    """

    def resolve(
        self, notification: Notification, channel: NotificationChannel
    ) -> Optional[str]:
        recipients = notification.metadata.get("recipients")
        if isinstance(recipients, dict):
            address = recipients.get(channel.value)
            if address:
                return str(address)

        if channel == NotificationChannel.IN_APP:
            return notification.user_id

        key = _CHANNEL_RECIPIENT_KEYS.get(channel)
        address = notification.metadata.get(key) if key else None
        return str(address) if address else None


@dataclass
class DispatchOutcome:
    """Result of one dispatch pass.

    Attributes:
        notification: Notification in its post-dispatch state
        deliveries: Deliveries recorded during this pass
    """

    notification: Notification
    deliveries: List[Delivery] = field(default_factory=list)

    @property
    def sent_channels(self) -> List[NotificationChannel]:
        return [d.channel for d in self.deliveries if d.is_successful]

    @property
    def failed_channels(self) -> List[NotificationChannel]:
        return [d.channel for d in self.deliveries if d.status == DeliveryStatus.FAILED]


@dataclass
class _ChannelPlan:
    channel: NotificationChannel
    provider_name: str
    attempt_number: int
    provider: Optional[NotificationProvider] = None
    recipient: Optional[str] = None
    error: Optional[ProviderDeliveryFailure] = None


class NotificationDispatcher:
    """Dispatch coordinator.

    Channels are independent: a failure or timeout on one never blocks the
    others, and provider failures are always recorded on the Delivery rather
    than raised. ``NoProviderAvailable``, ``InvalidStateTransition``,
    ``NotificationExpired`` and ``NoEnabledChannels`` propagate before
    anything is sent. Channels switched off by the recipient's preferences
    are skipped and listed in ``metadata["skipped_channels"]``.

    Aggregation:
        - every channel succeeded (this pass or earlier): ``sent``
        - some channel failed and budget remains: ``failed`` (resubmittable)
        - budget exhausted, at least one channel succeeded: ``sent`` with
          ``failed_channels`` recorded in metadata
        - budget exhausted, no channel succeeded: permanently ``failed``

    Attributes:
        router: ChannelRouter used to pick providers
        delivery_repository: Where Delivery records are written
        notification_repository: Optional store updated with each transition
        max_workers: Worker pool size (default: 8)
        provider_timeout_seconds: Bound on each provider send (default: 10s)
        fallback_after_failures: Failed attempts on a channel before the
            router's fallback provider is used (default: 2)
    """

    def __init__(
        self,
        router: ChannelRouter,
        delivery_repository: DeliveryRepository,
        notification_repository: Optional[NotificationRepository] = None,
        recipient_resolver: Optional[RecipientResolver] = None,
        preference_resolver: Optional[PreferenceResolver] = None,
        renderer: Optional[TemplateRenderer] = None,
        clock: Optional[Clock] = None,
        max_workers: int = 8,
        provider_timeout_seconds: float = 10.0,
        fallback_after_failures: int = 2,
    ):
        self._router = router
        self._deliveries = delivery_repository
        self._notifications = notification_repository
        self._resolver = recipient_resolver or MetadataRecipientResolver()
        self._preferences = preference_resolver or MetadataPreferenceResolver()
        self._renderer = renderer or TemplateRenderer()
        self._clock = clock or SystemClock()
        self._timeout = provider_timeout_seconds
        self._fallback_after = fallback_after_failures
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notification-dispatch"
        )

        logger.info(
            "initialized_notification_dispatcher",
            max_workers=max_workers,
            provider_timeout_seconds=provider_timeout_seconds,
        )

    @property
    def router(self) -> ChannelRouter:
        return self._router

    def dispatch(self, notification: Notification) -> DispatchOutcome:
        """Send ``notification`` on every channel that has not yet succeeded.

        Args:
            notification: A ``pending`` notification, or one already moved to
                ``processing`` by the scheduler.

        Returns:
            DispatchOutcome with the updated notification and this pass's deliveries.

        Raises:
            NotificationExpired: ``expires_at`` has passed.
            NoEnabledChannels: preferences disable every channel.
            InvalidStateTransition: status is neither pending nor processing.
            NoProviderAvailable: a pending channel has no registered provider.
        """
        now = self._clock.now()
        if notification.is_expired(now):
            logger.warning(
                "notification_expired_before_dispatch",
                notification_id=notification.id,
                expires_at=notification.expires_at.isoformat()
                if notification.expires_at
                else None,
            )
            raise NotificationExpired(notification.id, notification.expires_at)

        enabled = self._preferences.enabled_channels(notification, now)
        if not enabled:
            logger.warning(
                "no_enabled_channels",
                notification_id=notification.id,
                channels=[c.value for c in notification.channels],
            )
            raise NoEnabledChannels(notification.id)

        working = (
            notification
            if notification.status == NotificationStatus.PROCESSING
            else notification.mark_as_processing(at=now)
        )

        with bind_dispatch_context(
            notification_id=notification.id, user_id=notification.user_id
        ):
            history = self._deliveries.find_by_notification(notification.id)
            succeeded_before = {d.channel for d in history if d.is_successful}
            skipped = [c for c in working.channels if c not in enabled]
            if skipped:
                working = working.with_metadata(skipped_channels=[c.value for c in skipped])
                logger.info(
                    "channels_skipped_by_preference",
                    skipped=[c.value for c in skipped],
                )
            pending = [c for c in enabled if c not in succeeded_before]

            # Route everything first so configuration errors surface before any send
            plans = [self._plan(working, channel, history) for channel in pending]

            self._persist(working)
            logger.info(
                "dispatch_started",
                channels=[c.value for c in pending],
                already_sent=[c.value for c in succeeded_before],
                retry_count=working.retry_count,
            )

            title, message = self._render(working)
            deliveries = self._execute(working, plans, title, message)
            final = self._aggregate(working, enabled, deliveries, succeeded_before)
            self._persist(final)

            logger.info(
                "dispatch_completed",
                status=final.status.value,
                sent=[d.channel.value for d in deliveries if d.is_successful],
                failed=[
                    d.channel.value
                    for d in deliveries
                    if d.status == DeliveryStatus.FAILED
                ],
                retry_count=final.retry_count,
            )
            return DispatchOutcome(notification=final, deliveries=deliveries)

    def confirm_delivery(
        self, delivery_id: str, at: Optional[datetime] = None
    ) -> Delivery:
        """Record a vendor delivery receipt for a sent Delivery.

        Raises:
            DeliveryNotFound: unknown delivery id.
            InvalidStateTransition: the delivery was not sent.
        """
        delivery = self._deliveries.find_by_id(delivery_id)
        if delivery is None:
            raise DeliveryNotFound(delivery_id)
        confirmed = delivery.mark_as_delivered(at=at or self._clock.now())
        self._deliveries.update(confirmed)
        logger.info(
            "delivery_confirmed",
            delivery_id=delivery_id,
            notification_id=delivery.notification_id,
            channel=delivery.channel.value,
        )
        return confirmed

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "NotificationDispatcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def _plan(
        self,
        notification: Notification,
        channel: NotificationChannel,
        history: List[Delivery],
    ) -> _ChannelPlan:
        prior = [d for d in history if d.channel == channel]
        failures = sum(1 for d in prior if d.status == DeliveryStatus.FAILED)
        params = RoutingParams(retry_count=failures, max_retries=self._fallback_after)

        provider = self._router.route(channel, params)
        plan = _ChannelPlan(
            channel=channel,
            provider_name=provider.name,
            attempt_number=len(prior) + 1,
        )

        if not provider.is_available():
            alternative = self._router.route(
                channel,
                RoutingParams(
                    retry_count=failures,
                    max_retries=self._fallback_after,
                    fallback=True,
                ),
            )
            if alternative is not provider and alternative.is_available():
                logger.warning(
                    "provider_unavailable_using_fallback",
                    channel=channel.value,
                    provider=provider.name,
                    fallback=alternative.name,
                )
                provider = alternative
                plan.provider_name = provider.name
            else:
                logger.warning(
                    "provider_unavailable",
                    channel=channel.value,
                    provider=provider.name,
                )
                plan.error = ProviderDeliveryFailure(
                    provider.name,
                    "provider is unavailable and no fallback is usable",
                    error_code="PROVIDER_UNAVAILABLE",
                )
                return plan

        plan.provider = provider
        plan.recipient = self._resolver.resolve(notification, channel)
        if not plan.recipient:
            plan.error = ProviderDeliveryFailure(
                provider.name,
                f"no recipient address for channel '{channel.value}'",
                error_code="RECIPIENT_UNRESOLVED",
            )
        return plan

    def _render(self, notification: Notification) -> Tuple[str, str]:
        variables = notification.metadata.get("template_variables") or {}
        try:
            return (
                self._renderer.render(notification.title, variables),
                self._renderer.render(notification.message, variables),
            )
        except TemplateRenderError as e:
            logger.warning("template_render_failed", error=str(e))
            return notification.title, notification.message

    def _build_request(
        self,
        notification: Notification,
        plan: _ChannelPlan,
        title: str,
        message: str,
    ) -> SendRequest:
        metadata = notification.metadata
        data = metadata.get("data")
        device_tokens = metadata.get("device_tokens")
        return SendRequest(
            recipient=plan.recipient or "",
            subject=title,
            title=title,
            content=message,
            text_content=metadata.get("text_content"),
            data=data if isinstance(data, dict) else {},
            device_tokens=list(device_tokens) if isinstance(device_tokens, list) else [],
            topic=metadata.get("push_topic"),
            priority=notification.priority,
            media_url=metadata.get("media_url"),
            notification_id=notification.id,
        )

    def _execute(
        self,
        notification: Notification,
        plans: List[_ChannelPlan],
        title: str,
        message: str,
    ) -> List[Delivery]:
        started = self._clock.now()
        deliveries: Dict[NotificationChannel, Delivery] = {}
        futures: Dict[NotificationChannel, Tuple[Future, float]] = {}
        outcomes: Dict[NotificationChannel, Tuple[Optional[SendResult], Optional[Exception]]] = {}

        for plan in plans:
            delivery = Delivery.create(
                notification_id=notification.id,
                channel=plan.channel,
                provider_name=plan.provider_name,
                recipient_address=plan.recipient or "",
                attempt_number=plan.attempt_number,
                at=started,
            )
            self._deliveries.save(delivery)
            deliveries[plan.channel] = delivery

            if plan.error is not None or plan.provider is None:
                outcomes[plan.channel] = (None, plan.error)
                continue

            request = self._build_request(notification, plan, title, message)
            context = contextvars.copy_context()
            future = self._executor.submit(context.run, plan.provider.send, request)
            futures[plan.channel] = (future, time.monotonic() + self._timeout)

        for channel, (future, deadline) in futures.items():
            provider_name = deliveries[channel].provider_name
            try:
                result = future.result(timeout=max(0.0, deadline - time.monotonic()))
                outcomes[channel] = (result, None)
            except FutureTimeout:
                future.cancel()
                outcomes[channel] = (None, ProviderTimeout(provider_name, self._timeout))
            except Exception as e:
                logger.error(
                    "provider_send_raised",
                    channel=channel.value,
                    provider=provider_name,
                    error=str(e),
                    exc_info=True,
                )
                outcomes[channel] = (
                    None,
                    ProviderDeliveryFailure(
                        provider_name,
                        f"{type(e).__name__}: {e}",
                        error_code="PROVIDER_EXCEPTION",
                    ),
                )

        recorded: List[Delivery] = []
        for plan in plans:
            delivery = deliveries[plan.channel]
            result, error = outcomes[plan.channel]
            finished = self._clock.now()
            if result is not None and result.success:
                delivery = delivery.mark_as_sent(
                    provider_message_id=result.provider_message_id, at=finished
                )
                logger.info(
                    "delivery_sent",
                    channel=plan.channel.value,
                    provider=plan.provider_name,
                    attempt_number=plan.attempt_number,
                )
            else:
                if error is None:
                    error = ProviderDeliveryFailure(
                        plan.provider_name,
                        (result.error if result else None) or "unknown error",
                        error_code=(result.error_code if result else None)
                        or "PROVIDER_FAILURE",
                    )
                delivery = delivery.mark_as_failed(str(error), at=finished)
                logger.warning(
                    "delivery_failed",
                    channel=plan.channel.value,
                    provider=plan.provider_name,
                    attempt_number=plan.attempt_number,
                    error_code=getattr(error, "error_code", None),
                    error=str(error),
                )
            self._deliveries.update(delivery)
            recorded.append(delivery)
        return recorded

    def _aggregate(
        self,
        notification: Notification,
        enabled: List[NotificationChannel],
        deliveries: List[Delivery],
        succeeded_before: Set[NotificationChannel],
    ) -> Notification:
        now = self._clock.now()
        succeeded = succeeded_before | {d.channel for d in deliveries if d.is_successful}
        failed = [d for d in deliveries if d.status == DeliveryStatus.FAILED]

        if not failed and all(c in succeeded for c in enabled):
            return notification.mark_as_sent(at=now)

        reason = "; ".join(f"{d.channel.value}: {d.error}" for d in failed)
        if notification.retry_count + 1 < notification.max_retries:
            return notification.mark_as_failed(reason, at=now)

        if succeeded:
            logger.warning(
                "notification_partially_delivered",
                failed_channels=[d.channel.value for d in failed],
                retry_count=notification.retry_count,
            )
            partial = notification.with_metadata(
                failed_channels=[d.channel.value for d in failed],
                last_delivery_error=reason,
            )
            return partial.mark_as_sent(at=now)

        logger.error(
            "notification_permanently_failed",
            retry_count=notification.retry_count + 1,
            max_retries=notification.max_retries,
            error=reason,
        )
        return notification.mark_as_failed(reason, at=now)

    def _persist(self, notification: Notification) -> None:
        if self._notifications is None:
            return
        self._notifications.save(notification)
