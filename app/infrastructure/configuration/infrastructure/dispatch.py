"""Dispatch coordinator infrastructure settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import InfrastructureSettings


class DispatchSettings(InfrastructureSettings):
    """Dispatch worker pool and provider call configuration.

    Environment Variables:
        DISPATCH_MAX_WORKERS: Size of the bounded provider worker pool (default: 8)
        DISPATCH_PROVIDER_TIMEOUT_SECONDS: Upper bound on a single provider send (default: 10s)
        DISPATCH_FALLBACK_AFTER_FAILURES: Failed attempts on a channel before fallback routing (default: 2)
        NOTIFICATION_MAX_RETRIES: Default retry budget for new notifications (default: 3)

    Example:
        ```python
        from infrastructure.configuration import settings

        pool_size = settings.dispatch.max_workers
        timeout = settings.dispatch.provider_timeout_seconds
        ```
    """

    max_workers: int = Field(
        default=8,
        alias="DISPATCH_MAX_WORKERS",
        description="Maximum concurrent provider sends per process",
    )
    provider_timeout_seconds: float = Field(
        default=10.0,
        alias="DISPATCH_PROVIDER_TIMEOUT_SECONDS",
        description="Seconds to wait for a provider send before recording a timeout",
    )
    fallback_after_failures: int = Field(
        default=2,
        alias="DISPATCH_FALLBACK_AFTER_FAILURES",
        description="Failed attempts on a channel before the fallback provider is routed",
    )
    default_max_retries: int = Field(
        default=3,
        alias="NOTIFICATION_MAX_RETRIES",
        description="Retry budget assigned to notifications created without one",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Ensure the worker pool has at least one worker."""
        if v < 1:
            raise ValueError("DISPATCH_MAX_WORKERS must be at least 1")
        return v

    @field_validator("provider_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Provider sends must always be bounded."""
        if v <= 0:
            raise ValueError("DISPATCH_PROVIDER_TIMEOUT_SECONDS must be positive")
        return v
