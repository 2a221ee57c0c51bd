"""Custom log processors for structured logging.

Processors that shape dispatch log entries: application identity,
credential masking, recipient redaction and size limits.

Usage:
    from infrastructure.logging.formatters import add_app_info, mask_sensitive_data

Dependencies:
    - structlog processors
"""

from typing import Any


def add_app_info(app_name: str, app_version: str = "unknown"):
    """Create a processor that adds application info to log entries.

    Args:
        app_name: Name of the application.
        app_version: Version string for the application.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("app_name", app_name)
        event_dict.setdefault("app_version", app_version)
        return event_dict

    return processor


# Key fragments whose values are never written to logs
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "api_key",
        "apikey",
        "authorization",
        "auth_token",
        "access_token",
        "refresh_token",
        "signing_secret",
        "credential",
        "private_key",
        "bearer",
    }
)


def _mask_mapping(
    values: dict[str, Any], patterns: frozenset[str], mask_value: str
) -> dict[str, Any]:
    masked: dict[str, Any] = {}
    for key, value in values.items():
        key_lower = str(key).lower()
        if value is not None and any(pattern in key_lower for pattern in patterns):
            masked[key] = mask_value
        elif isinstance(value, dict):
            masked[key] = _mask_mapping(value, patterns, mask_value)
        else:
            masked[key] = value
    return masked


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_patterns: frozenset[str] | None = None,
):
    """Create a processor that masks sensitive data in log entries.

    Keys are matched case-insensitively against ``SENSITIVE_PATTERNS`` (plus
    ``additional_patterns``). Nested dictionaries, such as provider options,
    are masked recursively.

    Args:
        mask_value: The string to replace sensitive values with.
        additional_patterns: Extra patterns to consider sensitive.

    Returns:
        A structlog processor function.
    """
    patterns = SENSITIVE_PATTERNS
    if additional_patterns:
        patterns = patterns | additional_patterns

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        return _mask_mapping(event_dict, patterns, mask_value)

    return processor


def redact_recipients(keys: frozenset[str] = frozenset({"recipient"})):
    """Create a processor that partially hides recipient addresses.

    Email addresses keep their first character and domain
    (``j***@example.com``); other addresses keep their last four characters.

    Args:
        keys: Event keys holding recipient addresses.

    Returns:
        A structlog processor function.
    """

    def redact(value: str) -> str:
        if "@" in value:
            local, _, domain = value.partition("@")
            return f"{local[:1]}***@{domain}"
        if len(value) <= 4:
            return "***"
        return f"***{value[-4:]}"

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key in keys:
            value = event_dict.get(key)
            if isinstance(value, str) and value:
                event_dict[key] = redact(value)
        return event_dict

    return processor


def truncate_large_values(max_length: int = 500):
    """Create a processor that truncates overly large string values.

    Rendered notification bodies can be large; this keeps entries bounded.

    Args:
        max_length: Maximum string length before truncation.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and len(value) > max_length:
                event_dict[key] = (
                    value[:max_length] + f"...[truncated, {len(value)} chars total]"
                )
        return event_dict

    return processor
