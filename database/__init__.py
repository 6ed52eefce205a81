"""
Database package for the storefront location engine.

Provides the pooled Redis client and the recent-selections repositories
built on it.
"""

import logging

from .redis_client import (
    redis_client,
    close_redis,
    get_redis_client,
    RedisClient
)
from .recent_selections import (
    RecentSelectionsRepository,
    InMemoryRecentSelections,
    RedisRecentSelections,
    get_recent_selections
)

# Package metadata
__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def get_database_status():
    """
    Get Redis status for monitoring.

    Returns:
        dict: Redis status information
    """
    return {
        "redis": {
            "status": "connected" if redis_client._initialized else "disconnected",
            "health": redis_client.health_check() if redis_client._initialized else False,
            "connection_info": redis_client.get_connection_info() if redis_client._initialized else {}
        }
    }


__all__ = [
    'redis_client', 'close_redis', 'get_redis_client', 'RedisClient',
    'RecentSelectionsRepository', 'InMemoryRecentSelections',
    'RedisRecentSelections', 'get_recent_selections',
    'get_database_status'
]
