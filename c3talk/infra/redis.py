"""
Redis infrastructure configuration

Redis client management and the device-local key-value store used for guest
identities and guest credit counters.
"""

from typing import Optional, Protocol

from redis import asyncio as aioredis
from redis.asyncio import Redis

from c3talk.core.config import settings

# Global redis pool
pool: Optional[aioredis.ConnectionPool] = None


class KeyValueStore(Protocol):
    """String key-value store that survives restarts on one device"""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class RedisKeyValueStore:
    def __init__(self, client: Redis, namespace: str = ""):
        self.client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        await self.client.set(self._key(key), value)


async def init_redis_pool():
    """Initialize Redis connection pool"""
    global pool
    pool = aioredis.ConnectionPool.from_url(
        settings.redis_url,
        db=settings.redis_db,
        encoding="utf-8",
        decode_responses=True,
    )


async def close_redis_pool():
    """Close Redis connection pool"""
    global pool
    if pool:
        await pool.disconnect()
        pool = None


async def get_redis() -> Redis:
    """Redis client bound to the shared pool"""
    if pool is None:
        await init_redis_pool()
    return aioredis.Redis(connection_pool=pool)


async def get_guest_store() -> RedisKeyValueStore:
    client = await get_redis()
    return RedisKeyValueStore(client, namespace=settings.guest_key_prefix)
