"""Test data factories for deterministic test data generation."""

from tests.factories.notifications import (
    FIXED_NOW,
    make_delivery,
    make_notification,
    make_send_request,
)

__all__ = [
    "FIXED_NOW",
    "make_delivery",
    "make_notification",
    "make_send_request",
]
