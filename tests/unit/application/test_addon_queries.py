"""Tests for AddonQueryUseCase against a fake addon client."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from aggregarr.application.use_cases.addon_queries import AddonQueryUseCase
from aggregarr.application.use_cases.fan_out import FanOutQueryExecutor
from aggregarr.domain.entities.addon import AddonFlags, AddonSource, ManifestCatalog
from aggregarr.domain.entities.errors import AddonNetworkError
from aggregarr.domain.entities.media import MetaDetail, MetaPreview, Stream
from aggregarr.domain.entities.query import AggregateStatus, QueryDescriptor

_CONFIG = SimpleNamespace(
    source_timeout_seconds=1.0, retries=0, max_concurrent_sources=8
)


def _use_case(sources: list[AddonSource], fetch: Any) -> AddonQueryUseCase:
    client = AsyncMock()
    client.fetch_resource = AsyncMock(side_effect=fetch)
    registry = MagicMock()
    registry.list_sources.return_value = sources
    executor = FanOutQueryExecutor(client=client, config=_CONFIG)
    return AddonQueryUseCase(registry=registry, executor=executor)


class TestMetaAndStreams:
    async def test_meta_first_success(self, make_source) -> None:
        a, b = make_source("a"), make_source("b")

        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            if source.id == "a":
                raise AddonNetworkError("HTTP 503")
            return MetaDetail(id=d.id, type=d.content_type, name="Found")

        result = await _use_case([a, b], fetch).meta("movie", "tt1")

        assert result.status is AggregateStatus.SUCCESS
        assert result.data is not None
        assert result.data.name == "Found"

    async def test_streams_error_when_every_source_fails(self, make_source) -> None:
        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            raise AddonNetworkError(f"{source.id} down")

        result = await _use_case(
            [make_source("a"), make_source("b")], fetch
        ).streams("movie", "tt1")

        assert result.is_error
        assert result.error is not None
        assert result.error.message == "a down"
        assert result.data == []

    async def test_streams_without_compatible_sources_is_empty_success(
        self, make_source
    ) -> None:
        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            return [Stream(url="u")]

        use_case = _use_case([make_source(types=("series",))], fetch)
        result = await use_case.streams("movie", "tt1")

        assert result.status is AggregateStatus.SUCCESS
        assert result.data == []

    async def test_subtitles_pass_video_hash(self, make_source) -> None:
        seen: list[QueryDescriptor] = []

        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            seen.append(d)
            return []

        await _use_case([make_source()], fetch).subtitles(
            "movie", "tt1", video_hash="abc"
        )

        assert seen[0].extra == {"videoHash": "abc"}

    async def test_registry_snapshot_read_once(self, make_source) -> None:
        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            return []

        use_case = _use_case([make_source()], fetch)
        await use_case.streams("movie", "tt1")

        use_case._registry.list_sources.assert_called_once()


class TestCatalogs:
    async def test_search_uses_searchable_catalogs_of_enabled_addons(
        self, make_source
    ) -> None:
        searchable = ManifestCatalog("movie", "search", "Search", ("search",))
        browse = ManifestCatalog("movie", "top", "Top")
        a = make_source("a", catalogs=(searchable, browse))
        b = replace(
            make_source("b", catalogs=(searchable,)),
            flags=AddonFlags(use_in_search=False),
        )
        seen: list[tuple[str, QueryDescriptor]] = []

        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            seen.append((source.id, d))
            return [MetaPreview(id="tt1", type="movie", name="Hit")]

        result = await _use_case([a, b], fetch).search("  matrix ")

        assert [(sid, d.id, dict(d.extra)) for sid, d in seen] == [
            ("a", "search", {"search": "matrix"})
        ]
        (group,) = result.data
        assert group.catalog_name == "Search"

    async def test_blank_search_issues_nothing(self, make_source) -> None:
        fetch = AsyncMock()
        result = await _use_case([make_source()], fetch).search("   ")

        assert result.data == []
        fetch.assert_not_called()

    async def test_home_skips_required_extra_and_disabled(self, make_source) -> None:
        top = ManifestCatalog("movie", "top", "Top")
        search_only = ManifestCatalog(
            "movie", "search", "Search", ("search",), ("search",)
        )
        a = make_source("a", catalogs=(top, search_only))
        b = replace(
            make_source("b", catalogs=(top,)), flags=AddonFlags(use_on_home=False)
        )
        seen: list[tuple[str, str]] = []

        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            seen.append((source.id, d.id))
            return [MetaPreview(id="tt1", type="movie", name="M")]

        result = await _use_case([a, b], fetch).home_catalogs(skip=20)

        assert seen == [("a", "top")]
        assert result.data[0].catalog_id == "top"


class TestProgressive:
    async def test_watch_streams_snapshots(self, make_source) -> None:
        a, b = make_source("a"), make_source("b")

        async def fetch(source: AddonSource, d: QueryDescriptor, **kw: Any):
            if source.id == "a":
                await asyncio.sleep(0.03)
            return [Stream(url=f"https://{source.id}/s.mp4")]

        snapshots = [
            snap
            async for snap in _use_case([a, b], fetch).watch_streams("movie", "tt1")
        ]

        assert [s.status for s in snapshots] == [
            AggregateStatus.LOADING,
            AggregateStatus.LOADING,
            AggregateStatus.SUCCESS,
        ]
        assert [len(s.data) for s in snapshots] == [0, 1, 2]
        # Final snapshot is in registry order regardless of arrival order.
        assert [st.addon_id for st in snapshots[-1].data] == ["a", "b"]

    async def test_watch_meta_without_sources(self, make_source) -> None:
        fetch = AsyncMock()
        use_case = _use_case([make_source(types=("series",))], fetch)

        snapshots = [snap async for snap in use_case.watch_meta("movie", "tt1")]

        assert len(snapshots) == 1
        assert snapshots[0].status is AggregateStatus.SUCCESS
        assert snapshots[0].data is None
