"""Notification engine core models.

Two entities drive dispatch:

- ``Notification``: what a user should receive, with an aggregate status.
- ``Delivery``: one attempt to push a Notification through one channel via
  one provider.

Both are frozen Pydantic models. Every transition validates the current
status and returns a new instance; nothing is mutated in place. The
``sent_at``/``delivered_at``/``read_at`` timestamps are written on first
occurrence only.

The module also holds the provider-facing DTOs (``SendRequest``,
``SendResult``, ``ProviderConfig``, ``ProviderHealth``).
"""

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from infrastructure.notifications.clock import ensure_utc, utc_now
from infrastructure.notifications.exceptions import InvalidStateTransition

DEFAULT_MAX_RETRIES = 3


class NotificationChannel(Enum):
    """Delivery media supported by the engine."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"
    WEBHOOK = "webhook"


class NotificationType(Enum):
    """Categorical tag carried by a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SYSTEM = "system"


class NotificationPriority(Enum):
    """Notification priority levels.

    Passed through to providers that support it (FCM android priority,
    SendGrid headers).
    """

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(Enum):
    """Aggregate status of a notification."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeliveryStatus(Enum):
    """Status of a single channel attempt."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


_NOTIFICATION_TRANSITIONS: Dict[NotificationStatus, FrozenSet[NotificationStatus]] = {
    NotificationStatus.PENDING: frozenset(
        {
            NotificationStatus.PROCESSING,
            NotificationStatus.FAILED,
            NotificationStatus.CANCELLED,
        }
    ),
    NotificationStatus.PROCESSING: frozenset(
        {
            NotificationStatus.SENT,
            NotificationStatus.FAILED,
            NotificationStatus.CANCELLED,
        }
    ),
    NotificationStatus.SENT: frozenset(
        {NotificationStatus.DELIVERED, NotificationStatus.FAILED}
    ),
    # Budget-gated: see Notification._check_transition
    NotificationStatus.FAILED: frozenset(
        {NotificationStatus.FAILED, NotificationStatus.PENDING}
    ),
    NotificationStatus.DELIVERED: frozenset(),
    NotificationStatus.CANCELLED: frozenset(),
}

_DELIVERY_TRANSITIONS: Dict[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.SENT, DeliveryStatus.FAILED}),
    DeliveryStatus.SENT: frozenset({DeliveryStatus.DELIVERED}),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.FAILED: frozenset(),
}


def _new_id() -> str:
    return str(uuid.uuid4())


class Notification(BaseModel):
    """One logical message a user should receive.

    Attributes:
        id: Opaque identifier assigned at creation
        user_id: Owner of the notification
        type: NotificationType tag
        title: Title (email subject, push title)
        message: Body text, may contain ``{{ placeholders }}``
        channels: Non-empty ordered set of channels to deliver on
        priority: NotificationPriority (default: NORMAL)
        template_id: Optional template reference
        scheduled_for: Optional future instant for deferred dispatch
        expires_at: Optional instant after which dispatch must not occur
        metadata: Open key/value map (recipients, template variables, recurring flag)
        status: Aggregate NotificationStatus
        retry_count: Number of failed dispatch passes
        max_retries: Retry budget (default: 3)
        last_error: Most recent failure reason

    Example:
        notification = Notification.create(
            user_id="user-1",
            title="Welcome",
            message="Hello {{ name }}",
            channels=[NotificationChannel.EMAIL, NotificationChannel.SMS],
            metadata={"recipients": {"email": "user@example.com"}},
        )
        processing = notification.mark_as_processing()
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    user_id: str
    type: NotificationType = NotificationType.INFO
    title: str
    message: str
    channels: Tuple[NotificationChannel, ...]
    priority: NotificationPriority = NotificationPriority.NORMAL
    template_id: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    @field_validator("channels")
    @classmethod
    def validate_channels(
        cls, v: Tuple[NotificationChannel, ...]
    ) -> Tuple[NotificationChannel, ...]:
        """Reject empty channel sets and drop duplicates, keeping order."""
        unique = tuple(dict.fromkeys(v))
        if not unique:
            raise ValueError("Notification must have at least one channel")
        return unique

    @field_validator(
        "scheduled_for",
        "expires_at",
        "created_at",
        "updated_at",
        "sent_at",
        "delivered_at",
        "read_at",
    )
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else v

    @model_validator(mode="after")
    def validate_retry_budget(self) -> "Notification":
        if self.retry_count > self.max_retries:
            raise ValueError(
                f"retry_count ({self.retry_count}) exceeds max_retries ({self.max_retries})"
            )
        return self

    @classmethod
    def create(
        cls,
        user_id: str,
        title: str,
        message: str,
        channels: List[NotificationChannel],
        notification_type: NotificationType = NotificationType.INFO,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        template_id: Optional[str] = None,
        scheduled_for: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        at: Optional[datetime] = None,
    ) -> "Notification":
        """Create a pending notification with a fresh id."""
        created = at or utc_now()
        return cls(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            channels=tuple(channels),
            priority=priority,
            template_id=template_id,
            scheduled_for=scheduled_for,
            expires_at=expires_at,
            metadata=dict(metadata or {}),
            max_retries=max_retries,
            created_at=created,
            updated_at=created,
        )

    # Predicates

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    @property
    def is_permanently_failed(self) -> bool:
        return self.status == NotificationStatus.FAILED and not self.can_retry

    @property
    def is_terminal(self) -> bool:
        return (
            self.status in (NotificationStatus.DELIVERED, NotificationStatus.CANCELLED)
            or self.is_permanently_failed
        )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def has_channel(self, channel: NotificationChannel) -> bool:
        return channel in self.channels

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_scheduled(self, now: datetime) -> bool:
        """True while ``scheduled_for`` is still in the future."""
        return self.scheduled_for is not None and self.scheduled_for > now

    def is_due(self, now: datetime) -> bool:
        return self.scheduled_for is not None and self.scheduled_for <= now

    def is_recent(self, now: datetime, within: timedelta = timedelta(hours=24)) -> bool:
        return now - self.created_at <= within

    # Transitions

    def _check_transition(self, requested: NotificationStatus) -> None:
        if requested not in _NOTIFICATION_TRANSITIONS[self.status]:
            raise InvalidStateTransition(self.status.value, requested.value)
        if self.status == NotificationStatus.FAILED and not self.can_retry:
            raise InvalidStateTransition(
                self.status.value, requested.value, reason="retry budget exhausted"
            )

    def _transition(
        self, requested: NotificationStatus, at: Optional[datetime], **changes: Any
    ) -> "Notification":
        self._check_transition(requested)
        changes["status"] = requested
        changes["updated_at"] = ensure_utc(at) if at else utc_now()
        return self.model_copy(update=changes)

    def mark_as_processing(self, at: Optional[datetime] = None) -> "Notification":
        return self._transition(NotificationStatus.PROCESSING, at)

    def mark_as_sent(self, at: Optional[datetime] = None) -> "Notification":
        instant = ensure_utc(at) if at else utc_now()
        return self._transition(
            NotificationStatus.SENT, instant, sent_at=self.sent_at or instant
        )

    def mark_as_delivered(self, at: Optional[datetime] = None) -> "Notification":
        instant = ensure_utc(at) if at else utc_now()
        return self._transition(
            NotificationStatus.DELIVERED,
            instant,
            delivered_at=self.delivered_at or instant,
        )

    def mark_as_failed(
        self, reason: str, at: Optional[datetime] = None
    ) -> "Notification":
        """Record a failed pass.

        Increments ``retry_count``. Once it reaches ``max_retries`` the
        notification is permanently failed; before that it may be resubmitted.
        """
        return self._transition(
            NotificationStatus.FAILED,
            at,
            retry_count=self.retry_count + 1,
            last_error=reason,
        )

    def mark_as_cancelled(self, at: Optional[datetime] = None) -> "Notification":
        return self._transition(NotificationStatus.CANCELLED, at)

    def resubmit(self, at: Optional[datetime] = None) -> "Notification":
        """Move a failed notification with remaining budget back to pending."""
        if self.status != NotificationStatus.FAILED:
            raise InvalidStateTransition(
                self.status.value,
                NotificationStatus.PENDING.value,
                reason="only failed notifications can be resubmitted",
            )
        return self._transition(NotificationStatus.PENDING, at)

    def mark_as_read(self, at: Optional[datetime] = None) -> "Notification":
        """Record that the user read the notification; status is unaffected."""
        if self.read_at is not None:
            return self
        instant = ensure_utc(at) if at else utc_now()
        return self.model_copy(update={"read_at": instant, "updated_at": instant})

    def reschedule(self, at: datetime) -> "Notification":
        if self.status != NotificationStatus.PENDING:
            raise InvalidStateTransition(
                self.status.value,
                NotificationStatus.PENDING.value,
                reason="only pending notifications can be scheduled",
            )
        return self.model_copy(update={"scheduled_for": ensure_utc(at)})

    def with_metadata(self, **values: Any) -> "Notification":
        """Return a copy with ``values`` merged into metadata (any status)."""
        return self.model_copy(update={"metadata": {**self.metadata, **values}})


class Delivery(BaseModel):
    """One attempt to send a Notification over one channel via one provider.

    A Delivery references its Notification by id only and never changes it.

    Attributes:
        id: Delivery identifier
        notification_id: Owning notification id
        channel: Channel used
        provider_name: Provider that handled the attempt
        recipient_address: Email, phone number, device token, URL or user id
        status: DeliveryStatus
        provider_message_id: Vendor-assigned identifier, when returned
        attempt_number: 1 for the first attempt on a channel, then 2, 3, ...
        error: Failure description
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    notification_id: str
    channel: NotificationChannel
    provider_name: str
    recipient_address: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    provider_message_id: Optional[str] = None
    attempt_number: int = Field(default=1, ge=1)
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        notification_id: str,
        channel: NotificationChannel,
        provider_name: str,
        recipient_address: str,
        attempt_number: int = 1,
        at: Optional[datetime] = None,
    ) -> "Delivery":
        created = at or utc_now()
        return cls(
            notification_id=notification_id,
            channel=channel,
            provider_name=provider_name,
            recipient_address=recipient_address,
            attempt_number=attempt_number,
            created_at=created,
            updated_at=created,
        )

    @property
    def is_successful(self) -> bool:
        return self.status in (DeliveryStatus.SENT, DeliveryStatus.DELIVERED)

    @property
    def is_terminal(self) -> bool:
        return self.status != DeliveryStatus.PENDING

    def _transition(
        self, requested: DeliveryStatus, at: Optional[datetime], **changes: Any
    ) -> "Delivery":
        if requested not in _DELIVERY_TRANSITIONS[self.status]:
            raise InvalidStateTransition(self.status.value, requested.value)
        changes["status"] = requested
        changes["updated_at"] = ensure_utc(at) if at else utc_now()
        return self.model_copy(update=changes)

    def mark_as_sent(
        self, provider_message_id: Optional[str] = None, at: Optional[datetime] = None
    ) -> "Delivery":
        instant = ensure_utc(at) if at else utc_now()
        return self._transition(
            DeliveryStatus.SENT,
            instant,
            provider_message_id=provider_message_id,
            sent_at=self.sent_at or instant,
        )

    def mark_as_delivered(self, at: Optional[datetime] = None) -> "Delivery":
        instant = ensure_utc(at) if at else utc_now()
        return self._transition(
            DeliveryStatus.DELIVERED,
            instant,
            delivered_at=self.delivered_at or instant,
        )

    def mark_as_failed(self, error: str, at: Optional[datetime] = None) -> "Delivery":
        return self._transition(DeliveryStatus.FAILED, at, error=error)


class ProviderConfig(BaseModel):
    """Registry-side configuration of a provider.

    Attributes:
        enabled: Disabled providers report themselves unavailable
        priority: Routing priority (lower is preferred, 0 is never selected)
        options: Opaque provider options
    """

    enabled: bool = True
    priority: int = Field(default=1, ge=0)
    options: Dict[str, Any] = Field(default_factory=dict)


class ProviderHealth(BaseModel):
    """Result of a provider health check."""

    healthy: bool
    last_checked: datetime = Field(default_factory=utc_now)
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


class SendRequest(BaseModel):
    """Parameters for one provider send.

    Attributes:
        recipient: Email address, E.164 number, device token, URL or user id
        subject: Email subject
        title: Rendered title
        content: Rendered body (HTML allowed for email)
        text_content: Optional plain-text alternative
        data: Channel-specific payload (push data, webhook body extras)
        device_tokens: Extra device tokens for push
        topic: Push topic
        priority: Notification priority
        media_url: Media attachment for MMS/WhatsApp-style sends
        notification_id: Originating notification id
    """

    recipient: str
    subject: Optional[str] = None
    title: Optional[str] = None
    content: str
    text_content: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    device_tokens: List[str] = Field(default_factory=list)
    topic: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    media_url: Optional[str] = None
    notification_id: Optional[str] = None


class SendResult(BaseModel):
    """Outcome reported by a provider ``send``.

    Failures are reported here, never raised.
    """

    success: bool
    provider: str
    channel: NotificationChannel
    provider_message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    sent_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        provider: str,
        channel: NotificationChannel,
        provider_message_id: Optional[str] = None,
        **metadata: Any,
    ) -> "SendResult":
        return cls(
            success=True,
            provider=provider,
            channel=channel,
            provider_message_id=provider_message_id,
            sent_at=utc_now(),
            metadata=metadata,
        )

    @classmethod
    def failed(
        cls,
        provider: str,
        channel: NotificationChannel,
        error: str,
        error_code: Optional[str] = None,
        **metadata: Any,
    ) -> "SendResult":
        return cls(
            success=False,
            provider=provider,
            channel=channel,
            error=error,
            error_code=error_code,
            metadata=metadata,
        )
