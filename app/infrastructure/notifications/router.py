"""Channel router selecting the provider for a channel.

The registry answers "which providers exist for this channel"; the router
owns preference order (routing table) and failover wiring (fallback map).
``route()`` calls take a shared read lock, table updates an exclusive
write lock.
"""

import copy
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import structlog

from infrastructure.notifications.exceptions import NoProviderAvailable
from infrastructure.notifications.locks import ReadWriteLock
from infrastructure.notifications.models import NotificationChannel
from infrastructure.notifications.providers.base import NotificationProvider
from infrastructure.notifications.registry import ProviderRegistry

logger = structlog.get_logger()

DEFAULT_ROUTING_MAX_RETRIES = 3


@dataclass(frozen=True)
class RoutingParams:
    """Inputs to a routing decision.

    Attributes:
        retry_count: Failed attempts so far
        max_retries: Attempts before the fallback is used (default: 3)
        fallback: Use the fallback regardless of the retry count
    """

    retry_count: int = 0
    max_retries: Optional[int] = None
    fallback: bool = False

    @property
    def wants_fallback(self) -> bool:
        limit = self.max_retries or DEFAULT_ROUTING_MAX_RETRIES
        return self.fallback or self.retry_count >= limit


@dataclass
class RoutingEntry:
    """One routing table row. Lower priority is preferred; 0 is never selected."""

    provider_name: str
    priority: int


class ChannelRouter:
    """Routes a channel to a registered provider.

    Algorithm:
        1. No provider registered for the channel: raise NoProviderAvailable.
        2. Walk the channel's routing entries by ascending priority (stable).
        3. The first entry with a registered provider and priority > 0 wins;
           when the params ask for the fallback and one is mapped and
           registered for that provider, the fallback is returned instead.
        4. Without a usable entry, return the first registered provider for
           the channel.

    Example:
        router = ChannelRouter(registry)
        router.add_provider(NotificationChannel.EMAIL, "sendgrid", priority=1)
        router.add_provider(NotificationChannel.EMAIL, "ses", priority=2)
        router.set_fallback(NotificationChannel.EMAIL, "sendgrid", "ses")

        provider = router.route(NotificationChannel.EMAIL, RoutingParams(retry_count=0))
    """

    def __init__(self, registry: ProviderRegistry):
        self._registry = registry
        self._routing_table: Dict[NotificationChannel, List[RoutingEntry]] = {}
        self._fallbacks: Dict[Tuple[NotificationChannel, str], str] = {}
        self._lock = ReadWriteLock()

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def route(
        self,
        channel: NotificationChannel,
        params: Optional[RoutingParams] = None,
    ) -> NotificationProvider:
        """Select the provider to use for ``channel``.

        Raises:
            NoProviderAvailable: No provider is registered for the channel.
        """
        params = params or RoutingParams()
        candidates = self._registry.get_by_type(channel)
        if not candidates:
            raise NoProviderAvailable(channel.value)

        with self._lock.read_locked():
            entries = sorted(
                self._routing_table.get(channel, []), key=lambda e: e.priority
            )
            fallbacks = dict(self._fallbacks)

        for entry in entries:
            if entry.priority <= 0:
                continue
            provider = self._registry.get(entry.provider_name)
            if provider is None or provider.channel != channel:
                continue

            if params.wants_fallback:
                fallback = self._resolve_fallback(channel, entry.provider_name, fallbacks)
                if fallback is not None:
                    logger.info(
                        "route_fallback_selected",
                        channel=channel.value,
                        preferred=entry.provider_name,
                        fallback=fallback.name,
                        retry_count=params.retry_count,
                    )
                    return fallback
            return provider

        return candidates[0]

    def _resolve_fallback(
        self,
        channel: NotificationChannel,
        from_name: str,
        fallbacks: Dict[Tuple[NotificationChannel, str], str],
    ) -> Optional[NotificationProvider]:
        fallback_name = fallbacks.get((channel, from_name))
        if fallback_name is None:
            return None
        fallback = self._registry.get(fallback_name)
        if fallback is None or fallback.channel != channel:
            return None
        return fallback

    def set_fallback(self, channel: NotificationChannel, from_name: str, to_name: str) -> None:
        """Use ``to_name`` when ``from_name``'s retry budget on ``channel`` is exhausted."""
        with self._lock.write_locked():
            self._fallbacks[(channel, from_name)] = to_name
        logger.info(
            "route_fallback_configured",
            channel=channel.value,
            from_provider=from_name,
            to_provider=to_name,
        )

    def remove_fallback(self, channel: NotificationChannel, from_name: str) -> None:
        with self._lock.write_locked():
            self._fallbacks.pop((channel, from_name), None)

    def get_fallback(self, channel: NotificationChannel, from_name: str) -> Optional[str]:
        with self._lock.read_locked():
            return self._fallbacks.get((channel, from_name))

    def add_provider(
        self, channel: NotificationChannel, provider_name: str, priority: int = 1
    ) -> None:
        """Add a routing entry, or update the priority of an existing one.

        Raises:
            ValueError: priority is negative.
        """
        if priority < 0:
            raise ValueError(f"Routing priority must be >= 0, got {priority}")

        with self._lock.write_locked():
            entries = self._routing_table.setdefault(channel, [])
            for entry in entries:
                if entry.provider_name == provider_name:
                    entry.priority = priority
                    break
            else:
                entries.append(RoutingEntry(provider_name=provider_name, priority=priority))
        logger.info(
            "route_provider_added",
            channel=channel.value,
            provider=provider_name,
            priority=priority,
        )

    def remove_provider(self, channel: NotificationChannel, provider_name: str) -> None:
        with self._lock.write_locked():
            entries = self._routing_table.get(channel)
            if not entries:
                return
            self._routing_table[channel] = [
                e for e in entries if e.provider_name != provider_name
            ]

    def get_routing_table(self) -> Dict[NotificationChannel, List[RoutingEntry]]:
        """Copy of the routing table; changes to it do not affect routing."""
        with self._lock.read_locked():
            return copy.deepcopy(self._routing_table)

    def get_channel_routing(self, channel: NotificationChannel) -> List[RoutingEntry]:
        with self._lock.read_locked():
            return copy.deepcopy(self._routing_table.get(channel, []))

    def clear(self) -> None:
        with self._lock.write_locked():
            self._routing_table.clear()
            self._fallbacks.clear()
        logger.debug("routing_tables_cleared")
