"""In-app provider writing messages to an in-app message store."""

import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import structlog
from pydantic import BaseModel, Field

from infrastructure.notifications.clock import utc_now
from infrastructure.notifications.models import (
    NotificationChannel,
    NotificationPriority,
    ProviderConfig,
    SendRequest,
)
from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.operations import OperationResult

logger = structlog.get_logger()


class InAppMessage(BaseModel):
    """Message shown inside the application for one user."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    notification_id: Optional[str] = None
    title: Optional[str] = None
    content: str
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.NORMAL
    created_at: datetime = Field(default_factory=utc_now)


class InAppMessageStore(Protocol):
    """Storage contract for in-app messages."""

    def save(self, message: InAppMessage) -> InAppMessage: ...

    def list_for_user(self, user_id: str) -> List[InAppMessage]: ...


class InMemoryInAppMessageStore:
    """Thread-safe in-memory store of in-app messages."""

    def __init__(self):
        self._messages: Dict[str, List[InAppMessage]] = {}
        self._lock = threading.Lock()

    def save(self, message: InAppMessage) -> InAppMessage:
        with self._lock:
            self._messages.setdefault(message.user_id, []).append(message)
        return message

    def list_for_user(self, user_id: str) -> List[InAppMessage]:
        with self._lock:
            return list(self._messages.get(user_id, []))

    def count(self) -> int:
        with self._lock:
            return sum(len(messages) for messages in self._messages.values())


class InAppProvider(NotificationProvider):
    """In-app notification provider.

    The recipient address is the user id. Store errors are reported as
    transient failures.
    """

    def __init__(
        self,
        store: Optional[InAppMessageStore] = None,
        config: Optional[ProviderConfig] = None,
        **kwargs: Any,
    ):
        self._store = store if store is not None else InMemoryInAppMessageStore()
        super().__init__(config=config, **kwargs)

    @property
    def name(self) -> str:
        return "in_app"

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.IN_APP

    @property
    def store(self) -> InAppMessageStore:
        return self._store

    def _deliver(self, request: SendRequest) -> OperationResult:
        message = InAppMessage(
            user_id=request.recipient.strip(),
            notification_id=request.notification_id,
            title=request.title,
            content=request.content,
            data=request.data,
            priority=request.priority,
        )
        try:
            saved = self._store.save(message)
        except Exception as e:
            logger.error("in_app_store_failed", error=str(e), exc_info=True)
            return OperationResult.transient_error(
                f"In-app store error: {e}", error_code="STORE_ERROR"
            )
        return OperationResult.success(
            message="In-app message stored", data={"message_id": saved.id}
        )
