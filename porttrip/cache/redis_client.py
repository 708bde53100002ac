"""
Redis Client Management
Handles the async Redis connection behind the usage commit ledger
"""

from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError
from loguru import logger

from ..config import settings

_client: Optional[redis.Redis] = None


async def get_redis_client() -> redis.Redis:
    """
    Get Redis client singleton

    Returns:
        redis.Redis: Connected async Redis client

    Raises:
        RedisError: If cannot connect to Redis
    """
    global _client
    if _client is not None:
        return _client

    client = redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
        db=settings.REDIS_DB,
        decode_responses=True,
        socket_timeout=2,
        socket_connect_timeout=2
    )

    try:
        # Test connection
        await client.ping()
    except RedisError as e:
        logger.error(f"Failed to connect to Redis: {e}")
        logger.warning(
            "Redis is not available. Usage commit ledger falls back to process memory. "
            "Make sure Redis is running: redis-server"
        )
        await client.aclose()
        raise

    logger.info(
        f"Redis connected: {settings.REDIS_HOST}:{settings.REDIS_PORT} "
        f"(DB: {settings.REDIS_DB})"
    )
    _client = client
    return client


async def try_get_redis_client() -> Optional[redis.Redis]:
    """Redis client, or None when Redis is unreachable"""
    try:
        return await get_redis_client()
    except RedisError:
        return None


async def close_redis_client():
    """Close the shared client (app shutdown)"""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Redis connection closed")


async def check_redis_health(client: Optional[redis.Redis]) -> bool:
    """
    Check if the ledger's Redis client answers

    Args:
        client: Client the ledger was built with; None means Redis was
            unreachable at startup and is reported down without a new
            connection attempt

    Returns:
        bool: True if Redis is accessible
    """
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return False
