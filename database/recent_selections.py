"""
Recently selected delivery zones.

The only durable artifact of location resolution: a short, most-recent-first
list of zone names per client. Writes are read-modify-write per selection and
last writer wins, which is fine for a single customer on a single device.
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import List, Optional

from config.settings import settings

from .redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)


class RecentSelectionsRepository(ABC):
    """Capped, most-recent-first list of zone names."""

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items or settings.recent_selections_max

    @abstractmethod
    def get(self) -> List[str]:
        """Zone names, most recent first."""

    @abstractmethod
    def append(self, zone_name: str) -> List[str]:
        """Record a selection and return the updated list."""

    @abstractmethod
    def clear(self) -> None:
        """Forget every selection."""


class InMemoryRecentSelections(RecentSelectionsRepository):
    """Process-local list, used in tests and when no store is configured."""

    def __init__(self, max_items: Optional[int] = None, initial: Optional[List[str]] = None):
        super().__init__(max_items)
        self._items: List[str] = list(initial or [])[:self.max_items]

    def get(self) -> List[str]:
        return list(self._items)

    def append(self, zone_name: str) -> List[str]:
        items = [zone_name] + [name for name in self._items if name != zone_name]
        self._items = items[:self.max_items]
        return list(self._items)

    def clear(self) -> None:
        self._items = []


class RedisRecentSelections(RecentSelectionsRepository):
    """
    Redis-backed list keyed by client id.

    Storage failures are logged and degrade to an empty list so a Redis
    outage never blocks a customer from choosing a zone.
    """

    KEY_PREFIX = "recent_zones"

    def __init__(self, client_id: str, redis: Optional[RedisClient] = None, max_items: Optional[int] = None):
        super().__init__(max_items)
        self.client_id = client_id
        self.redis = redis or get_redis_client()
        self.key = f"{self.KEY_PREFIX}:{client_id}"

    def get(self) -> List[str]:
        try:
            return self.redis.list_range(self.key, self.max_items)
        except Exception as e:
            logger.error(f"Failed to read recent selections for {self.client_id}: {e}")
            return []

    def append(self, zone_name: str) -> List[str]:
        try:
            items = self.redis.list_push_unique(self.key, zone_name, self.max_items)
            logger.debug(f"Recorded recent selection {zone_name} for {self.client_id}")
            return items
        except Exception as e:
            logger.error(f"Failed to record recent selection for {self.client_id}: {e}")
            return []

    def clear(self) -> None:
        try:
            self.redis.delete(self.key)
        except Exception as e:
            logger.error(f"Failed to clear recent selections for {self.client_id}: {e}")


_memory_stores: "OrderedDict[str, InMemoryRecentSelections]" = OrderedDict()


def get_recent_selections(client_id: str, backend: str = "redis") -> RecentSelectionsRepository:
    """
    Repository for one client.

    Args:
        client_id (str): Browser/device identifier
        backend (str): ``"redis"`` or ``"memory"``
    """
    if backend == "memory":
        return _memory_store_for(client_id)
    return RedisRecentSelections(client_id)


def _memory_store_for(client_id: str) -> InMemoryRecentSelections:
    """Per-client store, least recently used client evicted past the configured cap."""
    store = _memory_stores.get(client_id)
    if store is not None:
        _memory_stores.move_to_end(client_id)
        return store

    store = InMemoryRecentSelections()
    _memory_stores[client_id] = store
    while len(_memory_stores) > settings.recent_selections_memory_clients:
        evicted, _ = _memory_stores.popitem(last=False)
        logger.debug(f"Evicted in-memory recent selections for {evicted}")
    return store
