"""Delivery scheduler infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class SchedulerSettings(InfrastructureSettings):
    """Deferred delivery sweep configuration.

    The sweep promotes due notifications into the dispatch path; the purge
    drops scheduled notifications that expired before they became due.

    Environment Variables:
        SCHEDULER_ENABLED: Run the background sweep loop (default: True)
        SCHEDULER_SWEEP_INTERVAL_SECONDS: Seconds between due-notification sweeps (default: 30)
        SCHEDULER_PURGE_INTERVAL_SECONDS: Seconds between expired-entry purges (default: 300)
        SCHEDULER_LOOP_INTERVAL_SECONDS: Tick of the background job loop (default: 1.0)

    Example:
        ```python
        from infrastructure.configuration import settings

        if settings.scheduler.enabled:
            every = settings.scheduler.sweep_interval_seconds
        ```
    """

    enabled: bool = Field(
        default=True,
        alias="SCHEDULER_ENABLED",
        description="Run the background scheduler loop",
    )
    sweep_interval_seconds: int = Field(
        default=30,
        alias="SCHEDULER_SWEEP_INTERVAL_SECONDS",
        description="Seconds between due-notification sweeps",
    )
    purge_interval_seconds: int = Field(
        default=300,
        alias="SCHEDULER_PURGE_INTERVAL_SECONDS",
        description="Seconds between purges of expired scheduled notifications",
    )
    loop_interval_seconds: float = Field(
        default=1.0,
        alias="SCHEDULER_LOOP_INTERVAL_SECONDS",
        description="Tick interval of the background job loop",
    )
