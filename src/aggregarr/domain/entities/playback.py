"""Domain entities for playback settings, autoplay and backend fallback."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from .subtitles import TrackSource

PlayerBackend = Literal["exoplayer", "vlc"]

BACKEND_DISPLAY_NAMES: dict[str, str] = {
    "exoplayer": "ExoPlayer",
    "vlc": "VLC",
}


def alternate_backend(backend: PlayerBackend) -> PlayerBackend:
    return "vlc" if backend == "exoplayer" else "exoplayer"


class AutoplayState(str, Enum):
    IDLE = "idle"
    CHECKING_LAST_TARGET = "checking_last_target"
    RESOLVED = "resolved"
    TRYING_CANDIDATE = "trying_candidate"
    PLAYING = "playing"
    EXHAUSTED = "exhausted"


class FallbackDecision(str, Enum):
    FALLBACK = "fallback"
    SURFACED = "surfaced"


@dataclass(frozen=True)
class SubtitleStyle:
    font_size: int = 18
    text_color: str = "#FFFFFF"
    background_color: str = "rgba(0, 0, 0, 0.75)"
    outline_color: str = "#000000"
    outline_width: int = 0
    bottom_offset: int = 20


@dataclass(frozen=True)
class ProfilePlaybackSettings:
    """Per-profile playback settings."""

    player: PlayerBackend = "exoplayer"
    automatic_fallback: bool = True
    autoplay_first_stream: bool = False
    preferred_audio_languages: tuple[str, ...] | None = None
    preferred_subtitle_languages: tuple[str, ...] | None = None
    subtitle_style: SubtitleStyle | None = None


@dataclass(frozen=True)
class SubtitlePreference:
    """The last subtitle choice, re-applied automatically on later sessions."""

    source: TrackSource
    language: str | None = None
    addon_id: str | None = None
    addon_name: str | None = None
