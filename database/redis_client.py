"""
Pooled Redis access for per-client storefront state.

Only a handful of list commands are needed (the recent-selections list), so
the client exposes those directly instead of a general key/value API.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import redis
from redis.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from config.settings import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Lazily connected Redis client backed by a connection pool.

    The pool is created on first use, so importing the application never
    requires a reachable Redis server.
    """

    def __init__(self, redis_url: Optional[str] = None, max_connections: int = 10):
        """
        Args:
            redis_url (str): Connection URL, defaults to ``settings.redis_url``
            max_connections (int): Pool size
        """
        self.redis_url = redis_url or settings.redis_url
        self.max_connections = max_connections
        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self._initialized = False

    def initialize(self) -> None:
        """Open the pool and verify the server answers."""
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                socket_timeout=2,
                socket_connect_timeout=2,
                retry_on_timeout=True,
                health_check_interval=30,
                decode_responses=True
            )
            self.client = redis.Redis(connection_pool=self.pool)
            self.client.ping()
        except RedisError as e:
            logger.error(f"Could not connect to Redis at {self.redis_url}: {e}")
            raise

        self._initialized = True
        logger.info(f"Connected to Redis at {self.redis_url}")

    @contextmanager
    def get_connection(self):
        """
        Yield the pooled client, connecting on first use.

        Redis errors are logged and re-raised; callers decide whether to degrade.
        """
        if not self._initialized:
            self.initialize()

        try:
            yield self.client
        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Lost connection to Redis: {e}")
            raise
        except RedisError as e:
            logger.error(f"Redis command failed: {e}")
            raise

    def list_range(self, key: str, limit: int) -> List[str]:
        """First ``limit`` items of the list at ``key``, head first."""
        with self.get_connection() as conn:
            return list(conn.lrange(key, 0, limit - 1))

    def list_push_unique(self, key: str, value: str, max_length: int) -> List[str]:
        """
        Move ``value`` to the head of a list and cap its length atomically.

        Args:
            key (str): List key
            value (str): Item to push; any earlier copies are removed
            max_length (int): Items kept after the push

        Returns:
            list: The list after the update
        """
        with self.get_connection() as conn:
            pipe = conn.pipeline(transaction=True)
            pipe.lrem(key, 0, value)
            pipe.lpush(key, value)
            pipe.ltrim(key, 0, max_length - 1)
            pipe.lrange(key, 0, max_length - 1)
            *_, items = pipe.execute()
        logger.debug(f"Pushed {value!r} onto {key}")
        return list(items)

    def delete(self, key: str) -> bool:
        with self.get_connection() as conn:
            return bool(conn.delete(key))

    def health_check(self) -> bool:
        """True when the server answers PING."""
        try:
            with self.get_connection() as conn:
                return bool(conn.ping())
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """Pool and server figures for the health endpoint."""
        if self.pool is None:
            return {"status": "not_initialized"}

        try:
            with self.get_connection() as conn:
                info = conn.info()
        except Exception as e:
            return {"status": "error", "error": str(e)}

        return {
            "status": "connected",
            "max_connections": self.max_connections,
            "connected_clients": info.get("connected_clients", 0),
            "used_memory": info.get("used_memory_human", "unknown"),
        }

    def close(self) -> None:
        """Disconnect every pooled connection; safe to call more than once."""
        if self.pool is not None:
            self.pool.disconnect()
            logger.info("Redis connection pool closed")
        self.pool = None
        self.client = None
        self._initialized = False


redis_client = RedisClient()


def close_redis() -> None:
    """Application shutdown hook."""
    redis_client.close()


def get_redis_client() -> RedisClient:
    return redis_client
