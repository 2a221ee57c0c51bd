"""Channel preferences applied before a notification is routed.

Users can turn channels off and set quiet hours. Preferences travel with
the notification in ``metadata["preferences"]``:

    {
        "disabled_channels": ["sms"],
        "quiet_hours": {"start": "22:00", "end": "07:00", "timezone": "US/Eastern"},
    }

During quiet hours the interruptive channels (SMS and push by default) are
held back for that dispatch pass.
"""

import re
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator

from infrastructure.notifications.models import Notification, NotificationChannel

QUIET_HOURS_CHANNELS = (NotificationChannel.SMS, NotificationChannel.PUSH)

_CLOCK_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class QuietHours(BaseModel):
    """Daily window in a local timezone. ``start > end`` spans midnight.

    Attributes:
        start: Local start time, ``HH:MM``
        end: Local end time, ``HH:MM`` (inclusive)
        timezone: tz database name (default: UTC)
    """

    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    timezone: str = "UTC"

    @field_validator("start", "end")
    @classmethod
    def validate_clock_time(cls, v: str) -> str:
        if not _CLOCK_TIME_PATTERN.match(v):
            raise ValueError("must be HH:MM in 24-hour time")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"unknown timezone '{v}'")
        return v

    def contains(self, instant: datetime) -> bool:
        current = instant.astimezone(pytz.timezone(self.timezone)).strftime("%H:%M")
        if self.start > self.end:
            return current >= self.start or current <= self.end
        return self.start <= current <= self.end


class ChannelPreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    disabled_channels: List[NotificationChannel] = Field(default_factory=list)
    quiet_hours: Optional[QuietHours] = None


class PreferenceResolver(Protocol):
    """Decides which of a notification's channels may be used right now."""

    def enabled_channels(
        self, notification: Notification, now: datetime
    ) -> List[NotificationChannel]: ...


class MetadataPreferenceResolver:
    """Reads ``ChannelPreferences`` from ``metadata["preferences"]``.

    Notifications without preferences keep every channel. Malformed
    preferences raise pydantic's ``ValidationError``.

    Example:
        resolver = MetadataPreferenceResolver()
        resolver.enabled_channels(notification, clock.now())
        # [NotificationChannel.EMAIL]
    """

    def __init__(
        self, quiet_channels: Sequence[NotificationChannel] = QUIET_HOURS_CHANNELS
    ):
        self._quiet_channels = tuple(quiet_channels)

    def preferences_for(self, notification: Notification) -> ChannelPreferences:
        raw = notification.metadata.get("preferences")
        if not raw:
            return ChannelPreferences()
        return ChannelPreferences.model_validate(raw)

    def enabled_channels(
        self, notification: Notification, now: datetime
    ) -> List[NotificationChannel]:
        preferences = self.preferences_for(notification)
        blocked = set(preferences.disabled_channels)
        if preferences.quiet_hours is not None and preferences.quiet_hours.contains(now):
            blocked.update(self._quiet_channels)
        return [c for c in notification.channels if c not in blocked]
