"""Port for the watch-progress ledger as seen by playback use cases."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from aggregarr.domain.entities.media import PlaybackTarget
from aggregarr.domain.entities.watch import WatchHistoryItem


@runtime_checkable
class WatchLedgerPort(Protocol):
    """Per-profile watch progress.

    Reads are served from memory and are synchronous; writes persist and
    are awaited.
    """

    def get_item(
        self, meta_id: str, video_id: str | None
    ) -> WatchHistoryItem | None: ...

    def items_for_meta(self, meta_id: str) -> list[WatchHistoryItem]: ...

    def get_last_stream_target(
        self, meta_id: str, video_id: str | None
    ) -> PlaybackTarget | None: ...

    async def upsert(self, item: WatchHistoryItem) -> None: ...

    async def set_last_stream_target(
        self,
        meta_id: str,
        video_id: str | None,
        content_type: str,
        target: PlaybackTarget,
    ) -> None: ...
