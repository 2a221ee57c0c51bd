"""Unit tests for time sources."""

from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.notifications.clock import (
    Clock,
    ManualClock,
    SystemClock,
    ensure_utc,
)
from tests.factories.notifications import FIXED_NOW


@pytest.mark.unit
class TestClocks:
    def test_system_clock_is_utc_aware(self):
        now = SystemClock().now()

        assert now.tzinfo == timezone.utc
        assert isinstance(SystemClock(), Clock)

    def test_manual_clock_only_moves_when_told(self):
        clock = ManualClock(FIXED_NOW)

        assert clock.now() == FIXED_NOW
        assert clock.advance(minutes=5) == FIXED_NOW + timedelta(minutes=5)
        assert clock.now() == FIXED_NOW + timedelta(minutes=5)

    def test_manual_clock_rejects_going_backwards(self):
        clock = ManualClock(FIXED_NOW)

        with pytest.raises(ValueError):
            clock.advance(seconds=-1)

    def test_manual_clock_set(self):
        clock = ManualClock(FIXED_NOW)

        clock.set(datetime(2030, 1, 1))

        assert clock.now() == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_ensure_utc_converts_offsets(self):
        eastern = timezone(timedelta(hours=-5))

        converted = ensure_utc(datetime(2024, 1, 1, 7, 0, tzinfo=eastern))

        assert converted == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert converted.tzinfo == timezone.utc
