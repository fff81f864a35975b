"""Addon query use case: metadata, streams, subtitles, catalogs and search.

registry snapshot -> fan-out -> aggregate -> AggregateResult.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any, Protocol

import structlog

from aggregarr.application.use_cases.aggregate import (
    first_success,
    group_catalog_results,
    union_streams,
    union_subtitles,
)
from aggregarr.application.use_cases.fan_out import (
    FanOutQueryExecutor,
    compatible_sources,
)
from aggregarr.domain.entities.addon import AddonSource, ManifestCatalog, ResourceKind
from aggregarr.domain.entities.media import MetaDetail, Stream
from aggregarr.domain.entities.query import (
    AggregateResult,
    CatalogGroup,
    QueryDescriptor,
    SourceResult,
)
from aggregarr.domain.entities.subtitles import AddonSubtitle

log = structlog.get_logger(__name__)


class _SourceProvider(Protocol):
    """Provides the installed sources in registry order."""

    def list_sources(self) -> list[AddonSource]: ...


_Aggregator = Callable[[Sequence[SourceResult[Any]], int], AggregateResult[Any]]


class AddonQueryUseCase:
    """Runs aggregate queries against a snapshot of the installed sources.

    The source list is read once per call, so registry mutations during a
    query never affect it.
    """

    def __init__(
        self,
        *,
        registry: _SourceProvider,
        executor: FanOutQueryExecutor,
    ) -> None:
        self._registry = registry
        self._executor = executor

    # ------------------------------------------------------------------
    # All settled
    # ------------------------------------------------------------------

    async def meta(
        self, content_type: str, meta_id: str
    ) -> AggregateResult[MetaDetail | None]:
        descriptor = QueryDescriptor(ResourceKind.META, content_type, meta_id)
        sources = self._registry.list_sources()
        results = await self._executor.execute(descriptor, sources)
        return first_success(results)

    async def streams(
        self, content_type: str, video_id: str
    ) -> AggregateResult[list[Stream]]:
        descriptor = QueryDescriptor(ResourceKind.STREAM, content_type, video_id)
        sources = self._registry.list_sources()
        results = await self._executor.execute(descriptor, sources)
        return union_streams(results)

    async def subtitles(
        self,
        content_type: str,
        video_id: str,
        *,
        video_hash: str | None = None,
    ) -> AggregateResult[list[AddonSubtitle]]:
        extra = {"videoHash": video_hash} if video_hash else {}
        descriptor = QueryDescriptor(
            ResourceKind.SUBTITLES, content_type, video_id, extra
        )
        sources = self._registry.list_sources()
        results = await self._executor.execute(descriptor, sources)
        return union_subtitles(results)

    async def search(self, query: str) -> AggregateResult[list[CatalogGroup]]:
        """Search every searchable catalog of every addon enabled for search."""
        query = query.strip()
        if not query:
            return group_catalog_results([])

        targets: list[tuple[AddonSource, ManifestCatalog]] = [
            (source, catalog)
            for source in self._registry.list_sources()
            if source.flags.use_in_search
            for catalog in source.catalogs
            if catalog.is_searchable
        ]
        log.info("catalog_search", query=query, catalogs=len(targets))
        return await self._run_catalogs(targets, {"search": query})

    async def home_catalogs(
        self, *, skip: int = 0
    ) -> AggregateResult[list[CatalogGroup]]:
        """Browse rows for addons enabled on the home screen.

        Catalogs that require extra input (such as search-only catalogs)
        are skipped.
        """
        targets: list[tuple[AddonSource, ManifestCatalog]] = [
            (source, catalog)
            for source in self._registry.list_sources()
            if source.flags.use_on_home
            for catalog in source.catalogs
            if not catalog.required_extra_names
        ]
        extra = {"skip": str(skip)} if skip > 0 else {}
        return await self._run_catalogs(targets, extra)

    async def _run_catalogs(
        self,
        targets: list[tuple[AddonSource, ManifestCatalog]],
        extra: dict[str, str],
    ) -> AggregateResult[list[CatalogGroup]]:
        pairs = [
            (
                source,
                QueryDescriptor(ResourceKind.CATALOG, catalog.type, catalog.id, extra),
            )
            for source, catalog in targets
        ]
        results = await self._executor.execute_targets(pairs)
        return group_catalog_results(
            [(catalog, result) for (_, catalog), result in zip(targets, results)]
        )

    # ------------------------------------------------------------------
    # Any settled: progressive snapshots
    # ------------------------------------------------------------------

    async def _progressive(
        self, descriptor: QueryDescriptor, aggregate: _Aggregator
    ) -> AsyncIterator[AggregateResult[Any]]:
        sources = self._registry.list_sources()
        order = {source.id: idx for idx, source in enumerate(sources)}
        expected = len(compatible_sources(sources, descriptor))

        settled: list[SourceResult[Any]] = []
        yield aggregate([], expected)
        async for result in self._executor.stream(descriptor, sources):
            settled.append(result)
            settled.sort(key=lambda r: order.get(r.source.id, len(order)))
            yield aggregate(list(settled), expected - len(settled))

    def watch_meta(
        self, content_type: str, meta_id: str
    ) -> AsyncIterator[AggregateResult[MetaDetail | None]]:
        """Snapshots of the metadata aggregate, one per settled source."""
        descriptor = QueryDescriptor(ResourceKind.META, content_type, meta_id)
        return self._progressive(descriptor, first_success)

    def watch_streams(
        self, content_type: str, video_id: str
    ) -> AsyncIterator[AggregateResult[list[Stream]]]:
        """Snapshots of the stream aggregate; streams appear as sources answer."""
        descriptor = QueryDescriptor(ResourceKind.STREAM, content_type, video_id)
        return self._progressive(descriptor, union_streams)
