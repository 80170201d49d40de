# shared/redis_client.py
# Redis connection management for the analytics service
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from shared.errors import StoreUnavailable

logger = logging.getLogger("redis_client")


def create_redis(url: str) -> redis.Redis:
    """Build a Redis client with its own connection pool.

    Called once at service start-up; the client is then handed to whoever needs it.
    """
    pool = redis.ConnectionPool.from_url(url, decode_responses=True)
    return redis.Redis(connection_pool=pool)


@asynccontextmanager
async def store_call(op: str) -> AsyncIterator[None]:
    """Wrap one round trip to Redis; connectivity failures become StoreUnavailable."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"Redis {op} failed: {e}")
        raise StoreUnavailable(f"Redis {op} failed: {e}") from e


async def ping(r: redis.Redis) -> bool:
    async with store_call("ping"):
        return bool(await r.ping())
