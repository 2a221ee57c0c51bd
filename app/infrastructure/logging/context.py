"""Dispatch context binding for structured logging.

Binds dispatch-scoped fields so every log entry emitted while a
notification is being fanned out (router decisions, provider calls,
delivery transitions) carries the same correlation id and notification id.

Usage:
    from infrastructure.logging import bind_dispatch_context

    with bind_dispatch_context(notification_id=notification.id, user_id=notification.user_id):
        logger.info("dispatch_started")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Optional, Any, Generator
import structlog


@contextmanager
def bind_dispatch_context(
    correlation_id: Optional[str] = None,
    notification_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[str, None, None]:
    """Bind dispatch-scoped context to all logs within the block.

    Args:
        correlation_id: Identifier tying together one dispatch pass. Reuses the
            correlation id already bound in the current context, or generates one.
        notification_id: Notification being dispatched.
        user_id: Owner of the notification.
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        The correlation id in effect for the block.
    """
    context: dict[str, Any] = {
        "correlation_id": correlation_id or get_correlation_id() or str(uuid.uuid4())
    }
    if notification_id is not None:
        context["notification_id"] = notification_id
    if user_id is not None:
        context["user_id"] = user_id
    context.update(extra_context)

    previous = structlog.contextvars.get_contextvars()
    structlog.contextvars.bind_contextvars(**context)
    try:
        yield context["correlation_id"]
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())
        restored = {k: v for k, v in previous.items() if k in context}
        if restored:
            structlog.contextvars.bind_contextvars(**restored)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context."""
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in the current logging context.

    Args:
        correlation_id: The correlation ID to set, typically taken from the
            caller that submitted the notification.
    """
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_dispatch_context() -> None:
    """Clear all dispatch-scoped context from the logging context.

    Worker threads call this between units of work so fields from one
    notification never leak into the next.
    """
    structlog.contextvars.clear_contextvars()
