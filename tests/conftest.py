"""Shared test fixtures for the aggregarr test suite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from aggregarr.domain.entities.addon import (
    AddonResource,
    AddonSource,
    ManifestCatalog,
)
from aggregarr.domain.entities.media import BehaviorHints, Stream
from aggregarr.infrastructure.persistence.continue_watching import (
    ContinueWatchingHiddenStore,
)
from aggregarr.infrastructure.persistence.profiles import (
    ActiveProfileEvents,
    ProfileStore,
)
from aggregarr.infrastructure.persistence.versioned_store import VersionedStateStore
from aggregarr.infrastructure.persistence.watch_ledger import WatchLedger

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


def _make_source(
    addon_id: str = "cinemeta",
    *,
    resources: tuple[str, ...] = ("catalog", "meta", "stream", "subtitles"),
    types: tuple[str, ...] = ("movie", "series"),
    id_prefixes: tuple[str, ...] = ("tt",),
    catalogs: tuple[ManifestCatalog, ...] = (),
) -> AddonSource:
    return AddonSource(
        id=addon_id,
        manifest_url=f"https://{addon_id}.example.com/manifest.json",
        name=addon_id.title(),
        version="1.0.0",
        declared_types=types,
        resources=tuple(AddonResource(name=r) for r in resources),
        id_prefixes=id_prefixes,
        catalogs=catalogs,
    )


def _make_stream(
    url: str | None = "https://cdn.example.com/a.mp4",
    *,
    external_url: str | None = None,
    yt_id: str | None = None,
    binge_group: str | None = None,
    addon_id: str = "cinemeta",
) -> Stream:
    return Stream(
        url=url,
        external_url=external_url,
        yt_id=yt_id,
        behavior_hints=BehaviorHints(binge_group=binge_group),
        addon_id=addon_id,
        addon_name=addon_id.title(),
    )


@pytest.fixture()
def make_source():
    """Factory for AddonSource values."""
    return _make_source


@pytest.fixture()
def make_stream():
    """Factory for Stream values."""
    return _make_stream


@pytest.fixture()
def source() -> AddonSource:
    return _make_source()


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


@dataclass
class InMemoryCache:
    """Dict-backed CachePort for persistence tests."""

    data: dict[str, Any] = field(default_factory=dict)
    set_calls: list[tuple[str, int | None]] = field(default_factory=list)

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        self.set_calls.append((key, ttl))
        self.data[key] = value

    async def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def clear(self) -> None:
        self.data.clear()

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> InMemoryCache:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


@pytest.fixture()
def memory_cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort (async methods)."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    return cache


@pytest.fixture()
def notifier() -> MagicMock:
    """Mock NotifierPort (synchronous notify)."""
    return MagicMock()


@pytest.fixture()
def opener() -> AsyncMock:
    """Mock StreamOpenerPort; opens succeed by default."""
    mock = AsyncMock()
    mock.open = AsyncMock(return_value=True)
    return mock


@pytest.fixture()
def backend() -> AsyncMock:
    """Mock PlaybackBackendPort."""
    return AsyncMock()


# ---------------------------------------------------------------------------
# Persistence fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def state_store(memory_cache: InMemoryCache) -> VersionedStateStore:
    return VersionedStateStore(memory_cache)


@pytest.fixture()
def events() -> ActiveProfileEvents:
    return ActiveProfileEvents()


@pytest.fixture()
def profile_store(
    state_store: VersionedStateStore, events: ActiveProfileEvents, clock: FakeClock
) -> ProfileStore:
    return ProfileStore(state=state_store, events=events, clock=clock)


@pytest.fixture()
def hidden_store(
    state_store: VersionedStateStore, events: ActiveProfileEvents
) -> ContinueWatchingHiddenStore:
    return ContinueWatchingHiddenStore(state=state_store, events=events)


@pytest.fixture()
def ledger(
    state_store: VersionedStateStore,
    events: ActiveProfileEvents,
    hidden_store: ContinueWatchingHiddenStore,
    clock: FakeClock,
) -> WatchLedger:
    return WatchLedger(
        state=state_store, events=events, hidden=hidden_store, clock=clock
    )
