"""Fetches addon subtitle files and parses them into cues."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import httpx
import structlog

from aggregarr.domain.entities.subtitles import SubtitleCue, SubtitleTrack
from aggregarr.infrastructure.subtitles.parser import parse_subtitles

log = structlog.get_logger(__name__)

_DEFAULT_FETCH_TIMEOUT = 15.0


class SubtitleLoader:
    """Loads external subtitle tracks over HTTP.

    A track that fails to download or parse is omitted from ``load_many``;
    it never fails the other tracks.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = _DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._http = http_client
        self._timeout = timeout_seconds

    async def load(self, url: str) -> list[SubtitleCue]:
        """Download and parse one subtitle file.

        Raises:
            httpx.HTTPError: On transport failure, timeout or non-2xx status.
        """
        resp = await self._http.get(url, timeout=self._timeout)
        resp.raise_for_status()
        cues = parse_subtitles(resp.text, url)
        log.debug("subtitle_loaded", url=url, cue_count=len(cues))
        return cues

    async def _load_track(
        self, track: SubtitleTrack
    ) -> tuple[SubtitleTrack, list[SubtitleCue]] | None:
        assert track.uri is not None
        try:
            return track, await self.load(track.uri)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.warning(
                "subtitle_load_failed",
                url=track.uri,
                addon_id=track.addon_id,
                error=str(e),
            )
            return None
        except ValueError as e:
            log.warning(
                "subtitle_parse_failed",
                url=track.uri,
                addon_id=track.addon_id,
                error=str(e),
            )
            return None

    async def load_many(
        self, tracks: Sequence[SubtitleTrack]
    ) -> dict[int, list[SubtitleCue]]:
        """Load every track with a URI concurrently, keyed by track index."""
        pending = [track for track in tracks if track.uri]
        results = await asyncio.gather(*(self._load_track(t) for t in pending))

        loaded: dict[int, list[SubtitleCue]] = {}
        for result in results:
            if result is None:
                continue
            track, cues = result
            loaded[track.index] = cues
        log.info(
            "subtitles_loaded",
            requested=len(pending),
            loaded=len(loaded),
            failed=len(pending) - len(loaded),
        )
        return loaded
