"""Tests for the per-profile watch ledger."""

from __future__ import annotations

import pytest

from aggregarr.domain.entities.media import PlaybackTarget
from aggregarr.domain.entities.watch import WatchHistoryItem, WatchState
from aggregarr.infrastructure.persistence.watch_ledger import WatchLedger


def _item(
    progress: float,
    duration: float = 100.0,
    *,
    meta_id: str = "tt1",
    video_id: str | None = "tt1:1:1",
    target: PlaybackTarget | None = None,
) -> WatchHistoryItem:
    return WatchHistoryItem(
        id=meta_id,
        content_type="series",
        video_id=video_id,
        progress_seconds=progress,
        duration_seconds=duration,
        last_stream_target=target,
    )


@pytest.fixture()
async def active(profile_store):
    return await profile_store.initialize()


class TestMinimumRatio:
    async def test_first_report_below_threshold_not_created(
        self, ledger: WatchLedger, active
    ) -> None:
        await ledger.upsert(_item(4))
        assert ledger.get_item("tt1", "tt1:1:1") is None

    async def test_created_at_threshold_then_updated_freely(
        self, ledger: WatchLedger, active
    ) -> None:
        await ledger.upsert(_item(5))
        await ledger.upsert(_item(1))

        item = ledger.get_item("tt1", "tt1:1:1")
        assert item is not None
        assert item.progress_seconds == 1

    async def test_unknown_duration_not_created(
        self, ledger: WatchLedger, active
    ) -> None:
        await ledger.upsert(_item(50, 0))
        assert ledger.all_items() == []


class TestUpsert:
    async def test_no_active_profile_is_noop(self, ledger: WatchLedger) -> None:
        await ledger.upsert(_item(50))
        assert ledger.all_items() == []

    async def test_stamps_last_watched_at(
        self, ledger: WatchLedger, active, clock
    ) -> None:
        clock.advance(42)
        await ledger.upsert(_item(50))

        item = ledger.get_item("tt1", "tt1:1:1")
        assert item is not None
        assert item.last_watched_at == clock.now

    async def test_keeps_existing_target(self, ledger: WatchLedger, active) -> None:
        target = PlaybackTarget(type="url", value="https://cdn/a.mp4")
        await ledger.upsert(_item(50, target=target))
        await ledger.upsert(_item(60))

        item = ledger.get_item("tt1", "tt1:1:1")
        assert item is not None
        assert item.last_stream_target == target

    async def test_unhides_title(
        self, ledger: WatchLedger, hidden_store, active
    ) -> None:
        await hidden_store.set_hidden("tt1", True)

        await ledger.upsert(_item(50))

        assert not hidden_store.is_hidden("tt1")

    async def test_persisted_across_reload(
        self, ledger: WatchLedger, active, state_store, events, hidden_store
    ) -> None:
        await ledger.upsert(_item(50))

        reloaded = WatchLedger(state=state_store, events=events, hidden=hidden_store)
        await reloaded.load()

        assert reloaded.get_item("tt1", "tt1:1:1") == ledger.get_item("tt1", "tt1:1:1")

    async def test_profile_cleared_mid_write_is_noop(
        self,
        ledger: WatchLedger,
        hidden_store,
        events,
        memory_cache,
        active,
        monkeypatch,
    ) -> None:
        await hidden_store.set_hidden("tt1", True)
        cache_set = memory_cache.set

        async def set_then_clear_profile(key, value, *, ttl=None):
            await cache_set(key, value, ttl=ttl)
            events.publish(None)

        monkeypatch.setattr(memory_cache, "set", set_then_clear_profile)

        await ledger.upsert(_item(50))

        assert "tt1" not in ledger._by_profile.get(active.id, {})

    async def test_profiles_isolated(
        self, ledger: WatchLedger, profile_store, active
    ) -> None:
        await ledger.upsert(_item(50))
        other = await profile_store.create("Other")
        await profile_store.switch(other.id)

        assert ledger.get_item("tt1", "tt1:1:1") is None

        await profile_store.switch(active.id)
        assert ledger.get_item("tt1", "tt1:1:1") is not None


class TestQueries:
    async def test_update_progress_existing_only(
        self, ledger: WatchLedger, active
    ) -> None:
        await ledger.update_progress("tt1", "tt1:1:1", 50, 100)
        assert ledger.get_item("tt1", "tt1:1:1") is None

        await ledger.upsert(_item(50))
        await ledger.update_progress("tt1", "tt1:1:1", 70, 100)

        assert ledger.get_progress_ratio("tt1", "tt1:1:1") == pytest.approx(0.7)

    async def test_watch_state(self, ledger: WatchLedger, active) -> None:
        await ledger.upsert(_item(95, video_id="e1"))
        await ledger.upsert(_item(30, video_id="e2"))

        assert ledger.get_watch_state("tt1", "e1") is WatchState.WATCHED
        assert ledger.get_watch_state("tt1", "e2") is WatchState.IN_PROGRESS
        assert ledger.get_watch_state("tt1", "e3") is WatchState.NOT_WATCHED
        assert ledger.has_watched_episode("tt1", "e1")

    async def test_latest_item_for_meta(
        self, ledger: WatchLedger, active, clock
    ) -> None:
        await ledger.upsert(_item(30, video_id="e1"))
        clock.advance(5)
        await ledger.upsert(_item(30, video_id="e2"))

        latest = ledger.latest_item_for_meta("tt1")
        assert latest is not None
        assert latest.video_id == "e2"

    async def test_continue_watching_items_sorted(
        self, ledger: WatchLedger, active, clock
    ) -> None:
        await ledger.upsert(_item(30, meta_id="a", video_id=None))
        clock.advance(1)
        await ledger.upsert(_item(95, meta_id="b", video_id=None))
        clock.advance(1)
        await ledger.upsert(_item(60, meta_id="c", video_id="c:1:1"))

        assert [i.id for i in ledger.continue_watching_items()] == ["c", "a"]


class TestStreamTargets:
    async def test_target_creates_zero_progress_entry(
        self, ledger: WatchLedger, active
    ) -> None:
        target = PlaybackTarget(type="external", value="https://ext/1")

        await ledger.set_last_stream_target("tt1", "e1", "series", target)

        item = ledger.get_item("tt1", "e1")
        assert item is not None
        assert item.progress_seconds == 0
        assert ledger.get_last_stream_target("tt1", "e1") == target

    async def test_episode_falls_back_to_title_target(
        self, ledger: WatchLedger, active
    ) -> None:
        target = PlaybackTarget(type="yt", value="abc")
        await ledger.set_last_stream_target("tt1", None, "series", target)

        assert ledger.get_last_stream_target("tt1", "e9") == target

    async def test_no_target(self, ledger: WatchLedger, active) -> None:
        assert ledger.get_last_stream_target("tt1", "e1") is None


class TestRemoval:
    async def test_reset_progress_to_start(self, ledger: WatchLedger, active) -> None:
        await ledger.upsert(_item(80))

        await ledger.reset_progress_to_start("tt1", "tt1:1:1", 120)

        item = ledger.get_item("tt1", "tt1:1:1")
        assert item is not None
        assert (item.progress_seconds, item.duration_seconds) == (0.0, 120)

    async def test_remove_last_part_drops_title(
        self, ledger: WatchLedger, active
    ) -> None:
        await ledger.upsert(_item(50))

        await ledger.remove("tt1", "tt1:1:1")

        assert ledger.items_for_meta("tt1") == []
        assert "tt1" not in ledger._partition()

    async def test_remove_meta(self, ledger: WatchLedger, active) -> None:
        await ledger.upsert(_item(50, video_id="e1"))
        await ledger.upsert(_item(50, video_id="e2"))

        await ledger.remove_meta("tt1")

        assert ledger.all_items() == []
