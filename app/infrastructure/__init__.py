"""Infrastructure modules for the notification dispatch service.

Centralized infrastructure components:
- configuration: Settings management (settings, DispatchSettings)
- logging: Structured logging and dispatch context (logger, get_module_logger)
- notifications: Notification dispatch engine
- operations: Operation results and error classification
- resilience: Circuit breakers for provider calls
"""

# Configuration
from infrastructure.configuration import settings

# Observability
from infrastructure.logging import get_module_logger, logger

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    # Configuration
    "settings",
    # Observability
    "get_module_logger",
    "logger",
    # Operations
    "OperationResult",
    "OperationStatus",
]
