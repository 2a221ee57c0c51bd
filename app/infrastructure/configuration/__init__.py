"""Infrastructure configuration module - public API.

Centralized configuration for the notification dispatch engine using
Pydantic BaseSettings with domain-based organization.

Exports:
    settings: Singleton Settings instance (main configuration object)
    Settings: Main settings class (for testing/overrides)
    DispatchSettings: Dispatch pool settings class (for testing)
    SchedulerSettings: Scheduler sweep settings class (for testing)

Example:
    ```python
    from infrastructure.configuration import settings

    timeout = settings.dispatch.provider_timeout_seconds
    sweep_every = settings.scheduler.sweep_interval_seconds
    ```
"""

from infrastructure.configuration.settings import Settings, settings
from infrastructure.configuration.infrastructure.dispatch import DispatchSettings
from infrastructure.configuration.infrastructure.scheduler import SchedulerSettings

__all__ = ["Settings", "settings", "DispatchSettings", "SchedulerSettings"]
