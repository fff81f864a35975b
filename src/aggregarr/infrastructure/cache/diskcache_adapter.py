"""Diskcache adapter - SQLite-backed state without a daemon process."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)


class DiskcacheAdapter:
    """Async wrapper for diskcache.Cache (sync-only library).

    - Uses `asyncio.to_thread` for I/O (no blocking of the event loop).
    - Semaphore prevents too many parallel disk writes (SQLite lock contention).
    - Implements context manager (`async with`).

    Entries written without a TTL never expire.
    """

    def __init__(
        self,
        directory: str | Path = "./.cache/aggregarr",
        max_concurrent: int = 10,
    ) -> None:
        self.directory = Path(directory)
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> DiskcacheAdapter:
        """Open the SQLite store (idempotent)."""
        if self._cache is None:
            self._cache = await asyncio.to_thread(DiskCache, str(self.directory))
            log.info("diskcache_opened", path=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", directory=str(self.directory))

    def _require_open(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "Cache not initialized. Use 'async with cache:' "
                "or await cache.__aenter__()"
            )
        return self._cache

    async def get(self, key: str) -> Optional[Any]:
        cache = self._require_open()
        async with self._semaphore:
            value = await asyncio.to_thread(cache.get, key, default=None)
            log.debug("cache_get", key=key, hit=value is not None)
            return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """Write ``value``; ``ttl=None`` keeps it until deleted."""
        cache = self._require_open()
        async with self._semaphore:
            await asyncio.to_thread(cache.set, key, value, expire=ttl)
            log.debug("cache_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        async with self._semaphore:
            deleted = await asyncio.to_thread(self._cache.delete, key)
            log.debug("cache_delete", key=key, deleted=deleted)
            return deleted

    async def exists(self, key: str) -> bool:
        cache = self._cache
        if cache is None:
            return False
        async with self._semaphore:
            # __contains__ also honours expiry.
            return await asyncio.to_thread(cache.__contains__, key)

    async def clear(self) -> None:
        if self._cache is None:
            return
        async with self._semaphore:
            await asyncio.to_thread(self._cache.clear)
            log.warning("cache_cleared", directory=str(self.directory))
