"""Redis adapter - async state backend via redis.asyncio."""

from __future__ import annotations

import asyncio
import pickle
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis store with a semaphore bounding parallel ops.

    Values are pickled, so the same payloads round-trip as with the
    diskcache adapter. Entries written without a TTL never expire.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        max_concurrent: int = 50,
    ) -> None:
        self.url = url
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> RedisAdapter:
        """Create the client and check the connection with PING."""
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=False)
            try:
                await self._client.ping()
                log.info("redis_connected", url=self.url)
            except RedisError as e:
                log.error("redis_connection_failed", url=self.url, error=str(e))
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    def _require_open(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with cache:'")
        return self._client

    async def get(self, key: str) -> Any | None:
        client = self._require_open()
        async with self._semaphore:
            try:
                raw = await client.get(key)
                if raw is None:
                    log.debug("cache_miss", key=key)
                    return None
                return pickle.loads(raw)
            except (RedisError, pickle.PickleError) as e:
                log.error("redis_get_error", key=key, error=str(e))
                return None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """SET, with EX only when ``ttl`` is given.

        Raises:
            RedisError: When the write fails; persisted state must not be
                silently lost.
        """
        client = self._require_open()
        packed = pickle.dumps(value)
        async with self._semaphore:
            try:
                await client.set(key, packed, ex=ttl)
            except RedisError as e:
                log.error("redis_set_error", key=key, error=str(e))
                raise
            log.debug("cache_set", key=key, ttl=ttl, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                deleted = await self._client.delete(key)
                log.debug("cache_delete", key=key, deleted=deleted > 0)
                return deleted > 0
            except RedisError as e:
                log.error("redis_delete_error", key=key, error=str(e))
                return False

    async def exists(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                return await self._client.exists(key) > 0
            except RedisError as e:
                log.error("redis_exists_error", key=key, error=str(e))
                return False

    async def clear(self) -> None:
        """FLUSHDB (deletes every key in the current DB)."""
        if self._client is None:
            return
        async with self._semaphore:
            try:
                await self._client.flushdb()
                log.warning("redis_flushed")
            except RedisError as e:
                log.error("redis_flush_error", error=str(e))
