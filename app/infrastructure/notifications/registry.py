"""Provider registry for notification providers.

Thread-safe catalogue of providers, queryable by name or by channel.
"""

import structlog
import threading
from typing import Dict, List, Optional

from infrastructure.notifications.models import NotificationChannel
from infrastructure.notifications.providers.base import NotificationProvider


logger = structlog.get_logger()


class ProviderRegistry:
    """Thread-safe registry for notification providers.

    Providers are keyed by ``provider.name``. Registering a name that is
    already present replaces the provider in place, keeping its original
    registration position. Ordering by priority is the router's job; the
    registry only knows registration order.

    Attributes:
        _providers: Dict mapping provider name to NotificationProvider instances.
        _lock: Threading lock for thread-safe operations.
    """

    def __init__(self):
        self._providers: Dict[str, NotificationProvider] = {}
        self._lock = threading.Lock()

    def register(self, provider: NotificationProvider) -> None:
        """Register a provider, replacing any provider with the same name."""
        name = provider.name
        with self._lock:
            replaced = name in self._providers
            self._providers[name] = provider
        logger.info(
            "provider_registered",
            provider=name,
            channel=provider.channel.value,
            version=provider.version,
            replaced=replaced,
        )

    def unregister(self, name: str) -> None:
        """Remove a provider; unknown names are ignored."""
        with self._lock:
            provider = self._providers.pop(name, None)
        if provider is not None:
            logger.info("provider_unregistered", provider=name)

    def get(self, name: str) -> Optional[NotificationProvider]:
        """Get a provider by name, or None when not registered."""
        with self._lock:
            return self._providers.get(name)

    def get_by_type(self, channel: NotificationChannel) -> List[NotificationProvider]:
        """All providers for ``channel`` in registration order."""
        with self._lock:
            return [p for p in self._providers.values() if p.channel == channel]

    def get_all(self) -> List[NotificationProvider]:
        with self._lock:
            return list(self._providers.values())

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._providers

    def count(self) -> int:
        with self._lock:
            return len(self._providers)

    def clear(self) -> None:
        """Remove all providers. Primarily used for testing."""
        with self._lock:
            self._providers.clear()
        logger.debug("provider_registry_cleared")


# Global registry instance
_global_registry: Optional[ProviderRegistry] = None
_global_registry_lock = threading.Lock()


def get_provider_registry() -> ProviderRegistry:
    """Get the process-wide provider registry singleton.

    Thread-safe singleton pattern. Creates the registry on first call.
    """
    global _global_registry

    if _global_registry is None:
        with _global_registry_lock:
            if _global_registry is None:
                _global_registry = ProviderRegistry()
                logger.debug("global_provider_registry_initialized")

    return _global_registry
