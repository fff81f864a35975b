"""Composition root: builds and tears down every engine component."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx
import structlog

from aggregarr.application.use_cases.addon_queries import AddonQueryUseCase
from aggregarr.application.use_cases.autoplay import AutoplayOrchestrator
from aggregarr.application.use_cases.fan_out import FanOutQueryExecutor
from aggregarr.application.use_cases.playback_fallback import (
    PlaybackFallbackController,
)
from aggregarr.application.use_cases.playback_session import (
    NextEpisodeStarter,
    PlaybackContext,
    PlaybackSession,
)
from aggregarr.application.use_cases.query_scheduler import QueryScheduler
from aggregarr.domain.ports.cache import CachePort
from aggregarr.domain.ports.playback import (
    NotifierPort,
    PlaybackBackendPort,
    StreamOpenerPort,
)
from aggregarr.infrastructure.addons.client import HttpxAddonClient
from aggregarr.infrastructure.addons.registry import AddonRegistry
from aggregarr.infrastructure.cache.cache_factory import create_cache
from aggregarr.infrastructure.config.schema import AppConfig
from aggregarr.infrastructure.persistence.continue_watching import (
    ContinueWatchingHiddenStore,
)
from aggregarr.infrastructure.persistence.playback_prefs import (
    PlaybackPreferencesStore,
)
from aggregarr.infrastructure.persistence.profile_settings import (
    ProfileSettingsStore,
)
from aggregarr.infrastructure.persistence.profiles import (
    ActiveProfileEvents,
    ProfileStore,
)
from aggregarr.infrastructure.persistence.versioned_store import VersionedStateStore
from aggregarr.infrastructure.persistence.watch_ledger import WatchLedger
from aggregarr.infrastructure.subtitles.loader import SubtitleLoader

log = structlog.get_logger(__name__)


@dataclass
class Engine:
    """Every long-lived component, wired once per process."""

    config: AppConfig
    cache: CachePort
    http_client: httpx.AsyncClient
    state: VersionedStateStore
    addon_client: HttpxAddonClient
    registry: AddonRegistry
    executor: FanOutQueryExecutor
    queries: AddonQueryUseCase
    events: ActiveProfileEvents
    profiles: ProfileStore
    hidden: ContinueWatchingHiddenStore
    ledger: WatchLedger
    playback_prefs: PlaybackPreferencesStore
    profile_settings: ProfileSettingsStore
    subtitle_loader: SubtitleLoader
    scheduler: QueryScheduler

    def autoplay(
        self, *, opener: StreamOpenerPort, notifier: NotifierPort
    ) -> AutoplayOrchestrator:
        return AutoplayOrchestrator(
            ledger=self.ledger,
            opener=opener,
            notifier=notifier,
            max_attempts=self.config.playback.max_autoplay_attempts,
        )

    def playback_session(
        self,
        context: PlaybackContext,
        *,
        backend: PlaybackBackendPort,
        notifier: NotifierPort,
        start_next_episode: NextEpisodeStarter | None = None,
    ) -> PlaybackSession:
        """A session using the active profile's backend and fallback setting."""
        settings = self.profile_settings.get()
        fallback = PlaybackFallbackController(
            configured=settings.player,
            automatic_fallback=settings.automatic_fallback,
            notifier=notifier,
        )
        return PlaybackSession(
            context=context,
            ledger=self.ledger,
            backend=backend,
            fallback=fallback,
            preferences=self.playback_prefs,
            start_next_episode=start_next_episode,
            persist_interval_seconds=self.config.playback.persist_interval_seconds,
        )


@asynccontextmanager
async def engine_lifespan(config: AppConfig) -> AsyncIterator[Engine]:
    """Initialize and clean up all resources.

    Order matters:
        1. State backend (everything persisted depends on it)
        2. HTTP client (addon transport + subtitle downloads)
        3. Profiles first, then the per-profile stores that follow them
        4. Addon registry and query use cases
    """
    cache = create_cache(
        backend=config.cache.backend,
        directory=str(config.cache.directory),
        redis_url=config.cache.redis_url,
        max_concurrent=config.cache.max_concurrent,
    )
    await cache.__aenter__()
    log.info("cache_initialized", backend=config.cache.backend)

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )
    scheduler = QueryScheduler()

    try:
        state = VersionedStateStore(cache)

        events = ActiveProfileEvents()
        profiles = ProfileStore(state=state, events=events)
        hidden = ContinueWatchingHiddenStore(state=state, events=events)
        ledger = WatchLedger(
            state=state,
            events=events,
            hidden=hidden,
            min_ratio=config.playback.min_ratio,
            finished_ratio=config.playback.finished_ratio,
        )
        playback_prefs = PlaybackPreferencesStore(state=state, events=events)
        profile_settings = ProfileSettingsStore(state=state, events=events)
        for store in (hidden, ledger, playback_prefs, profile_settings):
            await store.load()
        # Publishes the active profile to the stores above.
        await profiles.initialize()

        addon_client = HttpxAddonClient(
            http_client=http_client,
            manifest_timeout_seconds=config.fanout.manifest_timeout_seconds,
            resource_timeout_seconds=config.fanout.source_timeout_seconds,
        )
        registry = AddonRegistry(client=addon_client, state=state)
        await registry.load()
        executor = FanOutQueryExecutor(client=addon_client, config=config.fanout)

        engine = Engine(
            config=config,
            cache=cache,
            http_client=http_client,
            state=state,
            addon_client=addon_client,
            registry=registry,
            executor=executor,
            queries=AddonQueryUseCase(registry=registry, executor=executor),
            events=events,
            profiles=profiles,
            hidden=hidden,
            ledger=ledger,
            playback_prefs=playback_prefs,
            profile_settings=profile_settings,
            subtitle_loader=SubtitleLoader(
                http_client=http_client,
                timeout_seconds=config.subtitles.fetch_timeout_seconds,
            ),
            scheduler=scheduler,
        )
        log.info(
            "engine_startup_complete",
            addons=len(registry.list_sources()),
            active_profile=events.active_profile_id,
        )
        yield engine
    finally:
        await scheduler.aclose()
        await http_client.aclose()
        log.info("http_client_closed")
        await cache.aclose()
        log.info("engine_shutdown_complete")
