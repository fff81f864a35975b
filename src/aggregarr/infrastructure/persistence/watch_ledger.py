"""Per-profile watch progress ledger.

State layout: ``{"by_profile": {profile_id: {meta_id: {video_key: item}}}}``
where ``video_key`` is the part id, or ``"_"`` for movies.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

import structlog

from aggregarr.domain.entities.media import PlaybackTarget
from aggregarr.domain.entities.watch import (
    CONTINUE_WATCHING_MIN_RATIO,
    FINISHED_RATIO,
    WatchHistoryItem,
    WatchState,
    is_continue_watching,
    video_key,
)
from aggregarr.infrastructure.persistence.continue_watching import (
    ContinueWatchingHiddenStore,
)
from aggregarr.infrastructure.persistence.migrations import WATCH_HISTORY_VERSION
from aggregarr.infrastructure.persistence.profile_scoped import ProfileScopedStore
from aggregarr.infrastructure.persistence.profiles import ActiveProfileEvents
from aggregarr.infrastructure.persistence.versioned_store import VersionedStateStore

log = structlog.get_logger(__name__)

_TARGET_TYPES = ("url", "external", "yt")


def _serialize_item(item: WatchHistoryItem) -> dict[str, Any]:
    target = item.last_stream_target
    return {
        "id": item.id,
        "type": item.content_type,
        "video_id": item.video_id,
        "progress_seconds": item.progress_seconds,
        "duration_seconds": item.duration_seconds,
        "last_stream_target": None
        if target is None
        else {"type": target.type, "value": target.value},
        "last_watched_at": item.last_watched_at,
    }


def _deserialize_item(d: dict[str, Any]) -> WatchHistoryItem | None:
    try:
        raw_target = d.get("last_stream_target")
        target = None
        if isinstance(raw_target, dict) and raw_target.get("type") in _TARGET_TYPES:
            target = PlaybackTarget(
                type=raw_target["type"], value=str(raw_target["value"])
            )
        return WatchHistoryItem(
            id=str(d["id"]),
            content_type=str(d["type"]),
            video_id=d.get("video_id"),
            progress_seconds=float(d.get("progress_seconds", 0.0)),
            duration_seconds=float(d.get("duration_seconds", 0.0)),
            last_stream_target=target,
            last_watched_at=float(d.get("last_watched_at", 0.0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        log.error("watch_item_deserialize_error", error=str(e))
        return None


class WatchLedger(ProfileScopedStore):
    """Progress for every part the active profile has watched.

    Writes without an active profile are no-ops; reads return nothing.
    """

    store_name = "watch_history"
    version = WATCH_HISTORY_VERSION

    def __init__(
        self,
        *,
        state: VersionedStateStore,
        events: ActiveProfileEvents,
        hidden: ContinueWatchingHiddenStore,
        clock: Callable[[], float] = time.time,
        min_ratio: float = CONTINUE_WATCHING_MIN_RATIO,
        finished_ratio: float = FINISHED_RATIO,
    ) -> None:
        super().__init__(state=state, events=events)
        self._hidden = hidden
        self._clock = clock
        self.min_ratio = min_ratio
        self.finished_ratio = finished_ratio

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _meta_bucket(self, meta_id: str) -> dict[str, Any]:
        bucket = (self._partition() or {}).get(meta_id)
        return bucket if isinstance(bucket, dict) else {}

    def get_item(self, meta_id: str, video_id: str | None) -> WatchHistoryItem | None:
        raw = self._meta_bucket(meta_id).get(video_key(video_id))
        return _deserialize_item(raw) if isinstance(raw, dict) else None

    def items_for_meta(self, meta_id: str) -> list[WatchHistoryItem]:
        items = (
            _deserialize_item(raw)
            for raw in self._meta_bucket(meta_id).values()
            if isinstance(raw, dict)
        )
        return [item for item in items if item is not None]

    def latest_item_for_meta(self, meta_id: str) -> WatchHistoryItem | None:
        items = self.items_for_meta(meta_id)
        if not items:
            return None
        return max(items, key=lambda item: item.last_watched_at)

    def all_items(self) -> list[WatchHistoryItem]:
        items: list[WatchHistoryItem] = []
        for meta_id in self._partition() or {}:
            items.extend(self.items_for_meta(meta_id))
        return items

    def get_last_stream_target(
        self, meta_id: str, video_id: str | None
    ) -> PlaybackTarget | None:
        """Target remembered for the part, else the one remembered for the title."""
        if video_id:
            item = self.get_item(meta_id, video_id)
            if item is not None and item.last_stream_target is not None:
                return item.last_stream_target
        meta_item = self.get_item(meta_id, None)
        return meta_item.last_stream_target if meta_item else None

    def get_progress_ratio(self, meta_id: str, video_id: str | None) -> float:
        item = self.get_item(meta_id, video_id)
        return item.progress_ratio if item else 0.0

    def get_watch_state(self, meta_id: str, video_id: str | None) -> WatchState:
        ratio = self.get_progress_ratio(meta_id, video_id)
        if ratio >= self.finished_ratio:
            return WatchState.WATCHED
        if ratio > 0:
            return WatchState.IN_PROGRESS
        return WatchState.NOT_WATCHED

    def has_watched_episode(self, meta_id: str, video_id: str) -> bool:
        return self.get_progress_ratio(meta_id, video_id) >= self.finished_ratio

    def continue_watching_items(self) -> list[WatchHistoryItem]:
        """Qualifying items, most recently watched first."""
        items = [
            item
            for item in self.all_items()
            if is_continue_watching(
                item.progress_seconds,
                item.duration_seconds,
                item.video_id,
                min_ratio=self.min_ratio,
                finished_ratio=self.finished_ratio,
            )
        ]
        items.sort(key=lambda item: item.last_watched_at, reverse=True)
        return items

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _write(self, item: WatchHistoryItem) -> bool:
        """No-op returning False when the active profile went away meanwhile."""
        partition = self._partition(create=True)
        if partition is None:
            log.debug("ledger_no_active_profile", meta_id=item.id)
            return False
        bucket = partition.setdefault(item.id, {})
        bucket[item.key] = _serialize_item(item)
        await self._persist()
        return True

    async def upsert(self, item: WatchHistoryItem) -> None:
        """Record progress for one part.

        A first report only creates an entry once the duration is known and
        at least ``min_ratio`` of it has been watched. Watching a title
        again un-hides it in the continue-watching row.
        """
        if self._profile_id is None:
            log.debug("ledger_no_active_profile", meta_id=item.id)
            return

        await self._hidden.set_hidden(item.id, False)

        existing = self.get_item(item.id, item.video_id)
        if existing is None:
            if item.duration_seconds <= 0 or item.progress_ratio < self.min_ratio:
                log.debug(
                    "ledger_upsert_skipped",
                    meta_id=item.id,
                    video_id=item.video_id,
                    progress_seconds=item.progress_seconds,
                    duration_seconds=item.duration_seconds,
                )
                return

        target = item.last_stream_target
        if target is None and existing is not None:
            target = existing.last_stream_target
        await self._write(
            replace(item, last_stream_target=target, last_watched_at=self._clock())
        )

    async def update_progress(
        self,
        meta_id: str,
        video_id: str | None,
        progress_seconds: float,
        duration_seconds: float,
    ) -> None:
        """Update an existing entry only."""
        existing = self.get_item(meta_id, video_id)
        if existing is None:
            return
        await self.upsert(
            replace(
                existing,
                progress_seconds=progress_seconds,
                duration_seconds=duration_seconds,
            )
        )

    async def set_last_stream_target(
        self,
        meta_id: str,
        video_id: str | None,
        content_type: str,
        target: PlaybackTarget,
    ) -> None:
        """Remember the target, creating a zero-progress entry when needed."""
        if self._profile_id is None:
            return
        existing = self.get_item(meta_id, video_id)
        if existing is None:
            existing = WatchHistoryItem(
                id=meta_id, content_type=content_type, video_id=video_id
            )
        written = await self._write(
            replace(existing, last_stream_target=target, last_watched_at=self._clock())
        )
        if not written:
            return
        log.debug(
            "ledger_stream_target_saved",
            meta_id=meta_id,
            video_id=video_id,
            target_type=target.type,
        )

    async def reset_progress_to_start(
        self, meta_id: str, video_id: str | None, duration_seconds: float
    ) -> None:
        if duration_seconds <= 0 or self._profile_id is None:
            return
        existing = self.get_item(meta_id, video_id)
        if existing is None:
            return
        await self._write(
            replace(
                existing,
                progress_seconds=0.0,
                duration_seconds=duration_seconds,
                last_watched_at=self._clock(),
            )
        )

    async def remove(self, meta_id: str, video_id: str | None) -> None:
        partition = self._partition()
        if not partition or meta_id not in partition:
            return
        bucket = partition[meta_id]
        if bucket.pop(video_key(video_id), None) is None:
            return
        if not bucket:
            del partition[meta_id]
        await self._persist()
        log.debug("ledger_item_removed", meta_id=meta_id, video_id=video_id)

    async def remove_meta(self, meta_id: str) -> None:
        partition = self._partition()
        if not partition or partition.pop(meta_id, None) is None:
            return
        await self._persist()
        log.debug("ledger_meta_removed", meta_id=meta_id)
