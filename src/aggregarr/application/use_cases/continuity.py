"""Continue-watching and up-next resolution.

Pure functions over ledger items and title metadata. Callers re-run them
whenever the ledger, the hidden set or the metadata changes.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from aggregarr.domain.entities.media import MetaDetail, MetaVideo
from aggregarr.domain.entities.watch import (
    CONTINUE_WATCHING_MIN_RATIO,
    FINISHED_RATIO,
    ContinueWatchingEntry,
    WatchHistoryItem,
    entry_key,
    is_continue_watching,
)


def _entry_from_item(
    item: WatchHistoryItem,
    *,
    is_up_next: bool,
    video: MetaVideo | None = None,
    meta: MetaDetail | None = None,
) -> ContinueWatchingEntry:
    return ContinueWatchingEntry(
        key=entry_key(item.id, item.video_id),
        meta_id=item.id,
        content_type=item.content_type,
        progress_seconds=item.progress_seconds,
        duration_seconds=item.duration_seconds,
        progress_ratio=item.progress_ratio,
        last_watched_at=item.last_watched_at,
        is_up_next=is_up_next,
        video_id=item.video_id,
        video=video,
        meta_name=meta.name if meta else None,
        image_url=meta.image_url if meta else None,
    )


def home_entries(
    items: Iterable[WatchHistoryItem],
    hidden: Iterable[str] = (),
    *,
    min_ratio: float = CONTINUE_WATCHING_MIN_RATIO,
    finished_ratio: float = FINISHED_RATIO,
) -> list[ContinueWatchingEntry]:
    """One entry per title for the home row, most recent first.

    Only qualifying items compete for a title's slot. ``is_up_next`` is
    preliminary here; ``entry_for_meta`` resolves the actual next part
    once metadata is known.
    """
    hidden_ids = set(hidden)
    latest: dict[str, WatchHistoryItem] = {}
    for item in items:
        if not is_continue_watching(
            item.progress_seconds,
            item.duration_seconds,
            item.video_id,
            min_ratio=min_ratio,
            finished_ratio=finished_ratio,
        ):
            continue
        current = latest.get(item.id)
        if current is None or item.last_watched_at > current.last_watched_at:
            latest[item.id] = item

    ordered = sorted(latest.values(), key=lambda i: i.last_watched_at, reverse=True)
    return [
        _entry_from_item(
            item,
            is_up_next=item.progress_ratio >= finished_ratio and bool(item.video_id),
        )
        for item in ordered
        if item.id not in hidden_ids
    ]


def _find_next_unwatched(
    videos: Sequence[MetaVideo],
    current_index: int,
    ratio_for: dict[str, float],
    finished_ratio: float,
) -> MetaVideo | None:
    for video in videos[current_index + 1 :]:
        if ratio_for.get(video.id, 0.0) < finished_ratio:
            return video
    return None


def entry_for_meta(
    items: Sequence[WatchHistoryItem],
    meta: MetaDetail | None,
    *,
    finished_ratio: float = FINISHED_RATIO,
) -> ContinueWatchingEntry | None:
    """Resolve what to offer on a title's detail view.

    Single-part titles offer "continue" until finished. Multi-part titles
    offer "continue" for an unfinished current part, or "up next" for the
    first later part that is not finished yet. ``meta.videos`` must already
    be in play order (see ``sort_videos``).
    """
    if not items:
        return None
    latest = items[0]
    for item in items[1:]:
        if item.last_watched_at > latest.last_watched_at:
            latest = item

    videos = meta.videos if meta else ()
    finished = latest.progress_ratio >= finished_ratio

    if len(videos) <= 1:
        if finished:
            return None
        return _entry_from_item(
            latest,
            is_up_next=False,
            video=videos[0] if videos else None,
            meta=meta,
        )

    current_index = -1
    if latest.video_id:
        current_index = next(
            (i for i, v in enumerate(videos) if v.id == latest.video_id), -1
        )

    if not finished:
        video = videos[current_index] if current_index >= 0 else None
        return _entry_from_item(latest, is_up_next=False, video=video, meta=meta)

    ratio_for = {item.video_id: item.progress_ratio for item in items if item.video_id}
    upcoming = _find_next_unwatched(videos, current_index, ratio_for, finished_ratio)
    if upcoming is None:
        return None
    return ContinueWatchingEntry(
        key=entry_key(latest.id, upcoming.id),
        meta_id=latest.id,
        content_type=latest.content_type,
        progress_seconds=0.0,
        duration_seconds=0.0,
        progress_ratio=0.0,
        last_watched_at=latest.last_watched_at,
        is_up_next=True,
        video_id=upcoming.id,
        video=upcoming,
        meta_name=meta.name if meta else None,
        image_url=meta.image_url if meta else None,
    )


def next_video(
    videos: Sequence[MetaVideo], current_video_id: str | None
) -> MetaVideo | None:
    """The part right after the current one, regardless of watch history."""
    if not current_video_id:
        return None
    for index, video in enumerate(videos):
        if video.id == current_video_id:
            return videos[index + 1] if index + 1 < len(videos) else None
    return None
