"""
Cache Module
Redis connection for the usage commit ledger
"""

from .redis_client import check_redis_health, close_redis_client, get_redis_client, try_get_redis_client

__all__ = [
    "get_redis_client",
    "try_get_redis_client",
    "close_redis_client",
    "check_redis_health"
]
