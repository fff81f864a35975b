"""Domain entities for subtitle tracks and cues."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

TrackSource = Literal["video", "addon"]


@dataclass(frozen=True)
class AddonSubtitle:
    """A subtitle file offered by an addon.

    After aggregation ``id`` is namespaced as ``"{addon_id}:{original_id}"``.
    """

    id: str
    url: str
    lang: str | None = None
    addon_id: str | None = None
    addon_name: str | None = None
    addon_manifest_url: str | None = None


@dataclass(frozen=True)
class SubtitleTrack:
    """A selectable subtitle track: embedded in the video or fetched from an addon."""

    source: TrackSource
    index: int
    language: str | None = None
    title: str | None = None
    uri: str | None = None
    addon_id: str | None = None
    addon_name: str | None = None
    # Index the playback backend uses for embedded tracks.
    player_index: int | None = None


@dataclass(frozen=True)
class SubtitleCue:
    """A timed subtitle line, times in seconds."""

    index: int
    start: float
    end: float
    text: str
