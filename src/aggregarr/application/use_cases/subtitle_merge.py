"""Subtitle merge and ordering.

Combines tracks embedded in the video with tracks offered by addons into
one ordered, de-duplicated, language-grouped list with dense indices.
All functions here are pure.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

import structlog

from aggregarr.domain.entities.playback import SubtitlePreference
from aggregarr.domain.entities.subtitles import AddonSubtitle, SubtitleTrack
from aggregarr.domain.languages import (
    DEFAULT_PREFERRED_LANGUAGES,
    UNKNOWN_LANGUAGE_NAME,
    language_display_name,
    normalize_language_code,
    preferred_language_codes,
)

log = structlog.get_logger(__name__)


def _addon_subtitle_to_track(sub: AddonSubtitle) -> SubtitleTrack:
    return SubtitleTrack(
        source="addon",
        index=0,
        language=sub.lang,
        title=sub.addon_name or sub.addon_id or "Addon",
        uri=sub.url,
        addon_id=sub.addon_id,
        addon_name=sub.addon_name,
    )


def _dedupe_by_uri(tracks: list[SubtitleTrack]) -> list[SubtitleTrack]:
    seen: set[str] = set()
    out: list[SubtitleTrack] = []
    for track in tracks:
        if not track.uri:
            out.append(track)
            continue
        if track.uri in seen:
            continue
        seen.add(track.uri)
        out.append(track)
    return out


def _group_display_name(code: str | None) -> str:
    if code is None:
        return UNKNOWN_LANGUAGE_NAME
    return language_display_name(code)


def _within_group_key(track: SubtitleTrack) -> tuple[int, str, str]:
    title = (track.title or "").casefold()
    if track.source == "addon":
        return (0, (track.addon_name or "").casefold(), title)
    return (1, "", title)


def _ordered_group_keys(
    groups: dict[str | None, list[SubtitleTrack]],
    preferred_languages: Sequence[str] | None,
    default_languages: Sequence[str],
) -> list[str | None]:
    preferred_keys: list[str | None] = [
        code
        for code in preferred_language_codes(preferred_languages, default_languages)
        if code in groups
    ]
    remaining = [key for key in groups if key not in preferred_keys]
    remaining.sort(key=lambda key: _group_display_name(key).casefold())
    return preferred_keys + remaining


def combine_subtitles(
    video_tracks: Sequence[SubtitleTrack] | None,
    addon_subtitles: Sequence[AddonSubtitle] | None,
    preferred_languages: Sequence[str] | None = None,
    *,
    default_languages: Sequence[str] = DEFAULT_PREFERRED_LANGUAGES,
) -> list[SubtitleTrack]:
    """Merge video and addon subtitle tracks into one ordered list.

    Order: preferred language groups first (in preference order), then the
    remaining groups by display name. Inside a group addon tracks come
    first ordered by (addon name, title), then video tracks by title.
    Addon tracks win URI de-duplication. Indices are reassigned 0..N-1.
    """
    addon_tracks = [_addon_subtitle_to_track(sub) for sub in addon_subtitles or ()]
    embedded = [replace(track, source="video") for track in video_tracks or ()]

    all_tracks = addon_tracks + embedded
    tracks = _dedupe_by_uri(all_tracks)
    if not tracks:
        return []

    groups: dict[str | None, list[SubtitleTrack]] = {}
    for track in tracks:
        groups.setdefault(normalize_language_code(track.language), []).append(track)

    ordered: list[SubtitleTrack] = []
    for key in _ordered_group_keys(groups, preferred_languages, default_languages):
        ordered.extend(sorted(groups[key], key=_within_group_key))

    result = [replace(track, index=idx) for idx, track in enumerate(ordered)]
    log.debug(
        "subtitles_combined",
        total=len(result),
        removed_duplicates=len(all_tracks) - len(tracks),
        addon_count=sum(1 for t in result if t.source == "addon"),
        video_count=sum(1 for t in result if t.source == "video"),
    )
    return result


def build_subtitle_label(track: SubtitleTrack) -> str:
    """Human-readable label: ``"Source | Language"`` or just the language."""
    code = normalize_language_code(track.language)
    lang_label = language_display_name(code) if code else UNKNOWN_LANGUAGE_NAME

    if track.source == "addon":
        name = track.addon_name or track.title or "Addon"
        return f"{name} | {lang_label}"

    if track.title and track.title != track.language:
        return f"{track.title} | {lang_label}"
    return lang_label


def select_preferred_track(
    tracks: Sequence[SubtitleTrack], preference: SubtitlePreference | None
) -> SubtitleTrack | None:
    """Pick the track that best matches a remembered subtitle choice.

    Priority: same addon and language, then same source and language,
    then same language from any source.
    """
    if preference is None:
        return None

    language = normalize_language_code(preference.language)
    same_language = [
        t for t in tracks if normalize_language_code(t.language) == language
    ]

    if preference.source == "addon" and preference.addon_id:
        for track in same_language:
            if track.source == "addon" and track.addon_id == preference.addon_id:
                return track

    for track in same_language:
        if track.source == preference.source:
            return track

    if same_language:
        return same_language[0]
    return None


def preference_from_track(track: SubtitleTrack) -> SubtitlePreference:
    return SubtitlePreference(
        source=track.source,
        language=normalize_language_code(track.language) or track.language,
        addon_id=track.addon_id,
        addon_name=track.addon_name,
    )
