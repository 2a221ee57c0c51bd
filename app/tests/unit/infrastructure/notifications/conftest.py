"""Test fixtures for notification dispatch engine tests."""

from typing import Any, Callable, Optional, Sequence

import pytest

from infrastructure.notifications.clock import ManualClock
from infrastructure.notifications.dispatcher import NotificationDispatcher
from infrastructure.notifications.models import NotificationChannel, ProviderConfig
from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.notifications.registry import ProviderRegistry
from infrastructure.notifications.repositories import (
    InMemoryDeliveryRepository,
    InMemoryNotificationRepository,
)
from infrastructure.notifications.router import ChannelRouter
from tests.factories.notifications import FIXED_NOW
from tests.fixtures.notification_providers import FakeProvider


@pytest.fixture
def clock():
    return ManualClock(FIXED_NOW)


@pytest.fixture
def provider_factory() -> Callable[..., FakeProvider]:
    """Factory for FakeProvider instances.

    Example:
        sms = provider_factory("twilio", NotificationChannel.SMS, outcomes=["fail", "ok"])
    """

    def _factory(
        name: str = "fake-email",
        channel: NotificationChannel = NotificationChannel.EMAIL,
        outcomes: Optional[Sequence[Any]] = None,
        priority: int = 1,
        enabled: bool = True,
        configured: bool = True,
    ) -> FakeProvider:
        return FakeProvider(
            name,
            channel,
            outcomes=outcomes,
            config=ProviderConfig(enabled=enabled, priority=priority),
            configured=configured,
        )

    return _factory


@pytest.fixture
def registry():
    return ProviderRegistry()


@pytest.fixture
def router(registry):
    return ChannelRouter(registry)


@pytest.fixture
def register(registry, router):
    """Register a provider and route it with its configured priority."""

    def _register(provider: NotificationProvider, priority: Optional[int] = None):
        registry.register(provider)
        router.add_provider(
            provider.channel,
            provider.name,
            provider.config.priority if priority is None else priority,
        )
        return provider

    return _register


@pytest.fixture
def delivery_repository():
    return InMemoryDeliveryRepository()


@pytest.fixture
def notification_repository():
    return InMemoryNotificationRepository()


@pytest.fixture
def dispatcher(router, delivery_repository, notification_repository, clock):
    dispatcher = NotificationDispatcher(
        router=router,
        delivery_repository=delivery_repository,
        notification_repository=notification_repository,
        clock=clock,
        max_workers=4,
        provider_timeout_seconds=1.0,
        fallback_after_failures=2,
    )
    yield dispatcher
    dispatcher.shutdown(wait=False)
