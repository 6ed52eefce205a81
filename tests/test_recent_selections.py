"""
Tests for the recent-selections repositories and the Redis list helpers.
"""

from unittest.mock import Mock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from database import recent_selections
from database.recent_selections import (
    InMemoryRecentSelections,
    RedisRecentSelections,
    get_recent_selections,
)
from database.redis_client import RedisClient


class TestInMemoryRecentSelections:

    def test_most_recent_first_and_capped(self):
        recent = InMemoryRecentSelections(max_items=3)

        for zone in ["Kololo", "Nakawa", "Muyenga", "Ntinda"]:
            recent.append(zone)

        assert recent.get() == ["Ntinda", "Muyenga", "Nakawa"]

    def test_reselecting_moves_to_front(self):
        recent = InMemoryRecentSelections(max_items=3, initial=["Kololo", "Nakawa", "Muyenga"])

        assert recent.append("Muyenga") == ["Muyenga", "Kololo", "Nakawa"]

    def test_clear(self):
        recent = InMemoryRecentSelections(initial=["Kololo"])
        recent.clear()
        assert recent.get() == []

    def test_default_cap_from_settings(self):
        with patch('database.recent_selections.settings') as mock_settings:
            mock_settings.recent_selections_max = 2
            recent = InMemoryRecentSelections()

        recent.append("Kololo")
        recent.append("Nakawa")
        recent.append("Muyenga")
        assert recent.get() == ["Muyenga", "Nakawa"]

    def test_memory_backend_is_per_client(self):
        first = get_recent_selections("client-a", backend="memory")
        first.clear()
        first.append("Kololo")

        assert get_recent_selections("client-a", backend="memory") is first
        assert get_recent_selections("client-b", backend="memory").get() == []

    def test_memory_backend_evicts_least_recent_client(self):
        recent_selections._memory_stores.clear()
        with patch('database.recent_selections.settings') as mock_settings:
            mock_settings.recent_selections_memory_clients = 2
            mock_settings.recent_selections_max = 3

            oldest = get_recent_selections("client-1", backend="memory")
            oldest.append("Kololo")
            second = get_recent_selections("client-2", backend="memory")
            get_recent_selections("client-1", backend="memory")
            get_recent_selections("client-3", backend="memory")

            assert list(recent_selections._memory_stores) == ["client-1", "client-3"]
            assert get_recent_selections("client-1", backend="memory") is oldest
            assert get_recent_selections("client-2", backend="memory") is not second
            assert len(recent_selections._memory_stores) == 2

        recent_selections._memory_stores.clear()


class TestRedisRecentSelections:
    """Redis-backed repository with a mocked client."""

    @pytest.fixture
    def mock_redis(self):
        return Mock(spec=RedisClient)

    def test_key_and_cap(self, mock_redis):
        mock_redis.list_push_unique.return_value = ["Kololo"]
        recent = RedisRecentSelections("abc123", redis=mock_redis, max_items=3)

        assert recent.append("Kololo") == ["Kololo"]
        mock_redis.list_push_unique.assert_called_once_with("recent_zones:abc123", "Kololo", 3)

    def test_get(self, mock_redis):
        mock_redis.list_range.return_value = ["Nakawa", "Kololo"]
        recent = RedisRecentSelections("abc123", redis=mock_redis, max_items=3)

        assert recent.get() == ["Nakawa", "Kololo"]
        mock_redis.list_range.assert_called_once_with("recent_zones:abc123", 3)

    def test_clear(self, mock_redis):
        RedisRecentSelections("abc123", redis=mock_redis).clear()
        mock_redis.delete.assert_called_once_with("recent_zones:abc123")

    def test_outage_degrades_to_empty_list(self, mock_redis):
        mock_redis.list_range.side_effect = RedisConnectionError("down")
        mock_redis.list_push_unique.side_effect = RedisConnectionError("down")
        mock_redis.delete.side_effect = RedisConnectionError("down")
        recent = RedisRecentSelections("abc123", redis=mock_redis)

        assert recent.get() == []
        assert recent.append("Kololo") == []
        recent.clear()


class TestRedisClientLists:

    @pytest.fixture
    def client(self):
        client = RedisClient(redis_url="redis://localhost:6379/15")
        client._initialized = True
        client.client = MagicMock()
        return client

    def test_list_push_unique_pipeline(self, client):
        pipe = client.client.pipeline.return_value
        pipe.execute.return_value = [0, 1, True, ["Kololo", "Nakawa"]]

        items = client.list_push_unique("recent_zones:x", "Kololo", 3)

        assert items == ["Kololo", "Nakawa"]
        pipe.lrem.assert_called_once_with("recent_zones:x", 0, "Kololo")
        pipe.lpush.assert_called_once_with("recent_zones:x", "Kololo")
        pipe.ltrim.assert_called_once_with("recent_zones:x", 0, 2)

    def test_list_range(self, client):
        client.client.lrange.return_value = ["Kololo"]

        assert client.list_range("recent_zones:x", 3) == ["Kololo"]
        client.client.lrange.assert_called_once_with("recent_zones:x", 0, 2)

    def test_health_check_failure(self, client):
        client.client.ping.side_effect = RedisConnectionError("down")
        assert client.health_check() is False
