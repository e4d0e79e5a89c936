"""Shared redis.asyncio client for the processing queue and health checks."""
import logging
from functools import lru_cache

import redis.asyncio as redis

from apps.invest.config import get_invest_settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_redis_client() -> redis.Redis:
    """Client built from the INVEST_REDIS_* settings on first use."""
    settings = get_invest_settings()
    timeout = settings.REDIS_TIMEOUT / 1000  # ms
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        db=settings.REDIS_DB,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        retry_on_timeout=True,
        health_check_interval=30,
        decode_responses=True
    )


async def redis_health_check() -> bool:
    try:
        return bool(await get_redis_client().ping())
    except (redis.RedisError, OSError) as e:
        logger.error(f"Redis ping failed: {e}")
        return False


async def init_redis_connection() -> bool:
    healthy = await redis_health_check()
    if healthy:
        settings = get_invest_settings()
        logger.info(f"Connected to Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    return healthy


async def close_redis_connection():
    client = get_redis_client()
    try:
        await client.aclose()
    except (redis.RedisError, OSError) as e:
        logger.error(f"Error closing Redis connection: {e}")
    finally:
        # A later init starts from a fresh client
        get_redis_client.cache_clear()
    logger.info("Redis connection closed")
