"""SRT and WebVTT cue parsing."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Literal

import structlog

from aggregarr.domain.entities.subtitles import SubtitleCue

log = structlog.get_logger(__name__)

SubtitleFormat = Literal["srt", "vtt"]

_POSITION_TAG_RE = re.compile(r"\{\\an[1-9]\}", re.IGNORECASE)
_MARKUP_TAG_RE = re.compile(r"</?[^>]+(>|$)")
_WHITESPACE_RE = re.compile(r"\s+")
_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")
_VTT_HEADER_RE = re.compile(r"^WEBVTT[^\n]*\n")
_VTT_TIMESTAMP_RE = re.compile(r"\d{2}:\d{2}:\d{2}\.\d{3}")
_CUE_NUMBER_RE = re.compile(r"^\d+$")

_TIMING_ARROW = "-->"


def parse_timestamp(value: str) -> float:
    """``HH:MM:SS,mmm`` / ``HH:MM:SS.mmm`` / ``MM:SS.mmm`` to seconds.

    Malformed input yields 0.0.
    """
    parts = value.strip().replace(",", ".").split(":")
    if len(parts) == 2:
        parts.insert(0, "0")
    if len(parts) != 3:
        return 0.0
    try:
        hours = int(parts[0] or 0)
        minutes = int(parts[1] or 0)
        seconds = float(parts[2] or 0)
    except ValueError:
        return 0.0
    return hours * 3600 + minutes * 60 + seconds


def strip_markup(text: str) -> str:
    """Drop ``{\\anN}`` position tags and HTML-style tags, collapse whitespace."""
    text = _POSITION_TAG_RE.sub("", text)
    text = _MARKUP_TAG_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def detect_format(content: str, url: str | None = None) -> SubtitleFormat:
    if url:
        lowered = url.lower()
        if ".vtt" in lowered or "webvtt" in lowered:
            return "vtt"
        if ".srt" in lowered:
            return "srt"

    stripped = content.strip()
    if stripped.startswith("WEBVTT"):
        return "vtt"
    # VTT uses a period before milliseconds, SRT a comma
    if _VTT_TIMESTAMP_RE.search(stripped):
        return "vtt"
    return "srt"


def _normalize_newlines(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def _blocks(content: str) -> list[list[str]]:
    out: list[list[str]] = []
    for block in _BLOCK_SPLIT_RE.split(content.strip()):
        lines = [line for line in block.strip().split("\n") if line.strip()]
        if lines:
            out.append(lines)
    return out


def _parse_timing(line: str) -> tuple[float, float] | None:
    parts = line.split(_TIMING_ARROW)
    if len(parts) != 2:
        return None
    start = parse_timestamp(parts[0])
    # Cue settings may follow the end timestamp
    end_tokens = parts[1].split()
    end = parse_timestamp(end_tokens[0]) if end_tokens else 0.0
    return start, end


def _find_timing_line(lines: list[str], limit: int | None) -> int:
    window = lines if limit is None else lines[:limit]
    for idx, line in enumerate(window):
        if _TIMING_ARROW in line:
            return idx
    return -1


def parse_srt(content: str) -> list[SubtitleCue]:
    cues: list[SubtitleCue] = []
    for lines in _blocks(_normalize_newlines(content)):
        if len(lines) < 2:
            continue
        timing_idx = _find_timing_line(lines, 3)
        if timing_idx == -1:
            continue
        timing = _parse_timing(lines[timing_idx])
        if timing is None:
            continue

        text_lines = [
            line for line in lines[timing_idx + 1 :] if not _CUE_NUMBER_RE.match(line)
        ]
        raw = "\n".join(text_lines).strip()
        if not raw:
            continue
        start, end = timing
        cues.append(
            SubtitleCue(index=len(cues), start=start, end=end, text=strip_markup(raw))
        )
    return cues


def parse_vtt(content: str) -> list[SubtitleCue]:
    body = _VTT_HEADER_RE.sub("", _normalize_newlines(content), count=1)
    cues: list[SubtitleCue] = []
    for lines in _blocks(body):
        if lines[0].startswith("NOTE"):
            continue
        timing_idx = _find_timing_line(lines, None)
        if timing_idx == -1:
            continue
        timing = _parse_timing(lines[timing_idx])
        if timing is None:
            continue

        raw = "\n".join(lines[timing_idx + 1 :]).strip()
        if not raw:
            continue
        start, end = timing
        cues.append(
            SubtitleCue(index=len(cues), start=start, end=end, text=strip_markup(raw))
        )
    return cues


def parse_subtitles(content: str, url: str | None = None) -> list[SubtitleCue]:
    """Auto-detect the format and parse ``content`` into cues."""
    if not content or not content.strip():
        return []
    fmt = detect_format(content, url)
    cues = parse_vtt(content) if fmt == "vtt" else parse_srt(content)
    log.debug("subtitles_parsed", format=fmt, cue_count=len(cues))
    return cues


def find_current_cue(cues: Sequence[SubtitleCue], t: float) -> SubtitleCue | None:
    """Cue active at time ``t`` (bounds inclusive), by binary search.

    ``cues`` must be sorted by start time.
    """
    lo, hi = 0, len(cues) - 1
    while lo <= hi:
        mid = (lo + hi) // 2
        cue = cues[mid]
        if t < cue.start:
            hi = mid - 1
        elif t > cue.end:
            lo = mid + 1
        else:
            return cue
    return None
