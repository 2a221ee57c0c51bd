"""Operation status enumeration.

Classifies the outcome of a provider operation so dispatch can tell a
retryable vendor hiccup from a failure that will never succeed.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Vendor accepted the request
        TRANSIENT_ERROR: Retryable error (network, timeout, rate limit, 5xx)
        PERMANENT_ERROR: Non-retryable error (rejected payload, bad recipient)
        UNAUTHORIZED: Vendor rejected the configured credentials
        NOT_FOUND: Vendor resource (account, project, endpoint) not found
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"

    @property
    def is_retryable(self) -> bool:
        return self is OperationStatus.TRANSIENT_ERROR
