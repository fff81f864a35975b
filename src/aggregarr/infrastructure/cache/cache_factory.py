"""Builds the state backend selected in the cache config."""

from __future__ import annotations

from typing import Literal

import structlog

from aggregarr.domain.ports.cache import CachePort
from aggregarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from aggregarr.infrastructure.cache.redis_adapter import RedisAdapter

log = structlog.get_logger(__name__)

CacheBackend = Literal["diskcache", "redis"]

# Redis copes with far more parallel ops than one SQLite file.
_REDIS_MAX_CONCURRENT = 50


def create_cache(
    backend: CacheBackend = "diskcache",
    *,
    directory: str = "./.cache/aggregarr",
    redis_url: str = "redis://localhost:6379/0",
    max_concurrent: int = 10,
) -> CachePort:
    """Create the adapter for ``backend``.

    Raises:
        ValueError: If ``backend`` is unknown.
    """
    if backend == "diskcache":
        log.info(
            "cache_factory_create",
            backend=backend,
            directory=directory,
            max_concurrent=max_concurrent,
        )
        return DiskcacheAdapter(directory=directory, max_concurrent=max_concurrent)
    elif backend == "redis":
        log.info(
            "cache_factory_create",
            backend=backend,
            url=redis_url,
            max_concurrent=_REDIS_MAX_CONCURRENT,
        )
        return RedisAdapter(url=redis_url, max_concurrent=_REDIS_MAX_CONCURRENT)
    else:
        raise ValueError(
            f"Unknown cache backend: {backend!r}. Must be 'diskcache' or 'redis'."
        )
