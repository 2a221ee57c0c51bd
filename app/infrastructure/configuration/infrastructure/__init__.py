"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.dispatch import DispatchSettings
from infrastructure.configuration.infrastructure.scheduler import SchedulerSettings

__all__ = [
    "DispatchSettings",
    "SchedulerSettings",
]
