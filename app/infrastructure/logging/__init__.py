"""Structured logging infrastructure.

Centralized logging configuration and utilities for the notification
dispatch engine using structlog.

Public API:
    - configure_logging(): Initialize logging for the process
    - get_logger(): Get a logger instance with a specific name
    - get_module_logger(): Get a logger for the calling module
    - bind_dispatch_context(): Context manager for dispatch-scoped logging
    - get_correlation_id(): Get current correlation ID from context
    - set_correlation_id(): Set correlation ID in context
    - clear_dispatch_context(): Clear all dispatch context

Formatters:
    - add_app_info(): Processor to add app name/version
    - mask_sensitive_data(): Processor to redact provider credentials
    - redact_recipients(): Processor to partially hide recipient addresses
    - truncate_large_values(): Processor to limit string lengths

Example:
    from infrastructure.logging import configure_logging, bind_dispatch_context

    configure_logging()

    with bind_dispatch_context(notification_id="n-123"):
        logger.info("dispatch_started")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_logger,
    get_module_logger,
    logger,
)

from infrastructure.logging.context import (
    bind_dispatch_context,
    get_correlation_id,
    set_correlation_id,
    clear_dispatch_context,
)

from infrastructure.logging.formatters import (
    add_app_info,
    mask_sensitive_data,
    redact_recipients,
    truncate_large_values,
    SENSITIVE_PATTERNS,
)

__all__ = [
    # Setup
    "configure_logging",
    "get_logger",
    "get_module_logger",
    "logger",
    # Context
    "bind_dispatch_context",
    "get_correlation_id",
    "set_correlation_id",
    "clear_dispatch_context",
    # Formatters
    "add_app_info",
    "mask_sensitive_data",
    "redact_recipients",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]
