"""Key-value persistence for sync state.

The registry, the auto-sync configuration and the trailing sync log are each
serialized as one JSON string under a fixed key. Any store exposing async
``get``/``set`` on strings works; two are provided:

- InMemoryKeyValueStore: process-local dict, used in development and tests.
- RedisKeyValueStore: durable store on top of redis.asyncio, keys prefixed
  with ``{prefix}:`` so several deployments can share one Redis.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import redis.asyncio as aioredis

from src.campaign_sync.config import Settings, StorageBackend, get_settings

CONNECTIONS_KEY = "crm_connections"
AUTO_SYNC_CONFIG_KEY = "auto_sync_config"
SYNC_LOGS_KEY = "sync_logs"


class KeyValueStore(ABC):
    """String key-value store used for all sync persistence."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored string, or None if the key is absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a string under key, replacing any previous value."""
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store with automatic key prefixing."""

    def __init__(self, redis_client: aioredis.Redis, prefix: str = "") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        """Generate a prefixed key: {prefix}:{key}."""
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(self._key(key), value)


# ── Module-level Redis pool (lazy init) ─────────────────────────────────────

_redis_pool: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


def create_store(settings: Settings | None = None) -> KeyValueStore:
    """Build the store selected by STORAGE_BACKEND."""
    settings = settings or get_settings()
    if settings.STORAGE_BACKEND == StorageBackend.redis:
        return RedisKeyValueStore(get_redis_pool(), prefix=settings.STORAGE_PREFIX)
    return InMemoryKeyValueStore()
