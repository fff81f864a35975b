"""Domain entities for metadata and streams returned by addons."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

PlaybackTargetType = Literal["url", "external", "yt"]

_YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={}"


@dataclass(frozen=True)
class MetaVideo:
    """One playable part of a title (an episode, or the single movie video)."""

    id: str
    title: str | None = None
    season: int | None = None
    episode: int | None = None
    released: str | None = None
    thumbnail: str | None = None
    overview: str | None = None


def _video_sort_key(video: MetaVideo) -> tuple[int, int, int]:
    season = video.season if video.season is not None else 0
    episode = video.episode if video.episode is not None else 0
    # Specials (season 0) go after every numbered season.
    return (1 if season == 0 else 0, season, episode)


def sort_videos(
    videos: list[MetaVideo] | tuple[MetaVideo, ...],
) -> tuple[MetaVideo, ...]:
    """Order parts by (season, episode) with season-0 specials last.

    Stable: parts with equal keys keep their incoming order.
    """
    return tuple(sorted(videos, key=_video_sort_key))


@dataclass(frozen=True)
class MetaPreview:
    """Catalog item."""

    id: str
    type: str
    name: str
    poster: str | None = None
    description: str | None = None
    release_info: str | None = None


@dataclass(frozen=True)
class MetaDetail:
    """Full metadata for a title."""

    id: str
    type: str
    name: str
    poster: str | None = None
    background: str | None = None
    logo: str | None = None
    description: str | None = None
    release_info: str | None = None
    videos: tuple[MetaVideo, ...] = ()

    @property
    def image_url(self) -> str | None:
        return self.background or self.poster

    def find_video(self, video_id: str | None) -> MetaVideo | None:
        if video_id is None:
            return None
        for video in self.videos:
            if video.id == video_id:
                return video
        return None


@dataclass(frozen=True)
class BehaviorHints:
    """Subset of stream behaviour hints the engine acts on."""

    binge_group: str | None = None
    country_whitelist: tuple[str, ...] = ()
    not_web_ready: bool = False


@dataclass(frozen=True)
class PlaybackTarget:
    """A remembered way to open a title: direct URL, external link, or YouTube id."""

    type: PlaybackTargetType
    value: str

    @property
    def open_url(self) -> str:
        if self.type == "yt":
            return _YOUTUBE_WATCH_URL.format(self.value)
        return self.value


@dataclass(frozen=True)
class Stream:
    """A stream candidate tagged with the addon that produced it."""

    url: str | None = None
    external_url: str | None = None
    yt_id: str | None = None
    name: str | None = None
    title: str | None = None
    description: str | None = None
    behavior_hints: BehaviorHints = field(default_factory=BehaviorHints)
    addon_id: str = ""
    addon_name: str = ""
    addon_manifest_url: str = ""

    @property
    def is_available(self) -> bool:
        return bool(self.url or self.external_url or self.yt_id)

    def to_target(self) -> PlaybackTarget | None:
        """The playback target this stream resolves to, URL first."""
        if self.url:
            return PlaybackTarget(type="url", value=self.url)
        if self.external_url:
            return PlaybackTarget(type="external", value=self.external_url)
        if self.yt_id:
            return PlaybackTarget(type="yt", value=self.yt_id)
        return None
