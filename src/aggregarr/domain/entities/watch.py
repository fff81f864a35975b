"""Domain entities for watch progress and continuity."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .media import MetaVideo, PlaybackTarget

# Ledger key used for items that have no part id (movies).
MOVIE_VIDEO_KEY = "_"

# Below this ratio a first progress report does not create an entry.
CONTINUE_WATCHING_MIN_RATIO = 0.05
# At or above this ratio a part counts as finished.
FINISHED_RATIO = 0.9


def video_key(video_id: str | None) -> str:
    return video_id or MOVIE_VIDEO_KEY


class WatchState(str, Enum):
    NOT_WATCHED = "not_watched"
    IN_PROGRESS = "in_progress"
    WATCHED = "watched"


@dataclass(frozen=True)
class Profile:
    """A local user profile. ``pin`` gates switching when set."""

    id: str
    name: str
    created_at: float
    last_used_at: float
    pin: str | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class WatchHistoryItem:
    """Persisted progress for one part of one title within one profile.

    ``last_watched_at`` is a unix timestamp in seconds.
    """

    id: str
    content_type: str
    video_id: str | None = None
    progress_seconds: float = 0.0
    duration_seconds: float = 0.0
    last_stream_target: PlaybackTarget | None = None
    last_watched_at: float = 0.0

    @property
    def key(self) -> str:
        return video_key(self.video_id)

    @property
    def progress_ratio(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.progress_seconds / self.duration_seconds


@dataclass(frozen=True)
class ContinueWatchingEntry:
    """Derived resume/up-next entry. Never persisted."""

    key: str
    meta_id: str
    content_type: str
    progress_seconds: float
    duration_seconds: float
    progress_ratio: float
    last_watched_at: float
    is_up_next: bool
    video_id: str | None = None
    video: MetaVideo | None = None
    meta_name: str | None = None
    image_url: str | None = None


def entry_key(meta_id: str, video_id: str | None) -> str:
    return f"{meta_id}::{video_id}" if video_id else meta_id


def is_continue_watching(
    progress_seconds: float,
    duration_seconds: float,
    video_id: str | None = None,
    *,
    min_ratio: float = CONTINUE_WATCHING_MIN_RATIO,
    finished_ratio: float = FINISHED_RATIO,
) -> bool:
    """Whether an item belongs in the continue-watching row.

    In-progress items qualify. Finished items qualify only when they name a
    specific part, since the next part may be up next.
    """
    if duration_seconds <= 0:
        return False
    ratio = progress_seconds / duration_seconds
    if min_ratio <= ratio < finished_ratio:
        return True
    return ratio >= finished_ratio and bool(video_id)
