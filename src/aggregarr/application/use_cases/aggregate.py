"""Result aggregation: combine per-source results into one status-bearing value.

Pure functions. ``pending`` is the number of sources that have not settled
yet, so the same functions serve progressive snapshots and final results.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from aggregarr.domain.entities.addon import AddonSource, ManifestCatalog
from aggregarr.domain.entities.media import MetaDetail, MetaPreview, Stream, sort_videos
from aggregarr.domain.entities.query import (
    AggregateResult,
    AggregateStatus,
    CatalogGroup,
    SourceFailure,
    SourceResult,
    SourceSuccess,
)
from aggregarr.domain.entities.subtitles import AddonSubtitle


def _failures(results: Sequence[SourceResult[Any]]) -> tuple[SourceFailure, ...]:
    return tuple(r for r in results if isinstance(r, SourceFailure))


def aggregate_status(
    results: Sequence[SourceResult[Any]], pending: int = 0
) -> AggregateStatus:
    """``loading`` while any source is pending; ``error`` only when there was
    at least one source and every one of them failed."""
    if pending > 0:
        return AggregateStatus.LOADING
    if results and all(isinstance(r, SourceFailure) for r in results):
        return AggregateStatus.ERROR
    return AggregateStatus.SUCCESS


def _first_error(
    status: AggregateStatus, failures: tuple[SourceFailure, ...]
) -> SourceFailure | None:
    if status is AggregateStatus.ERROR and failures:
        return failures[0]
    return None


def first_success(
    results: Sequence[SourceResult[Any]], pending: int = 0
) -> AggregateResult[MetaDetail | None]:
    """Metadata: the first successful, non-empty payload in source order."""
    meta: MetaDetail | None = None
    for result in results:
        if isinstance(result, SourceSuccess) and result.payload is not None:
            meta = result.payload
            break

    if meta is not None:
        meta = replace(meta, videos=sort_videos(meta.videos))

    failures = _failures(results)
    status = aggregate_status(results, pending)
    return AggregateResult(
        status=status,
        data=meta,
        error=_first_error(status, failures),
        failures=failures,
    )


def _tag_stream(stream: Stream, source: AddonSource) -> Stream:
    return replace(
        stream,
        addon_id=source.id,
        addon_name=source.name,
        addon_manifest_url=source.manifest_url,
    )


def _tag_subtitle(sub: AddonSubtitle, source: AddonSource) -> AddonSubtitle:
    return replace(
        sub,
        id=f"{source.id}:{sub.id}",
        addon_id=source.id,
        addon_name=source.name,
        addon_manifest_url=source.manifest_url,
    )


def _union(
    results: Sequence[SourceResult[Any]], pending: int, tag: Any
) -> AggregateResult[list[Any]]:
    items: list[Any] = []
    for result in results:
        if isinstance(result, SourceSuccess):
            items.extend(tag(item, result.source) for item in result.payload or ())

    failures = _failures(results)
    status = aggregate_status(results, pending)
    return AggregateResult(
        status=status,
        data=items,
        error=_first_error(status, failures),
        failures=failures,
    )


def union_streams(
    results: Sequence[SourceResult[Any]], pending: int = 0
) -> AggregateResult[list[Stream]]:
    """Streams: every source's candidates, tagged with the originating addon."""
    return _union(results, pending, _tag_stream)


def union_subtitles(
    results: Sequence[SourceResult[Any]], pending: int = 0
) -> AggregateResult[list[AddonSubtitle]]:
    """Subtitles: every source's files, ids namespaced by addon."""
    return _union(results, pending, _tag_subtitle)


def group_catalog_results(
    results: Sequence[tuple[ManifestCatalog, SourceResult[Any]]], pending: int = 0
) -> AggregateResult[list[CatalogGroup]]:
    """Catalog rows: one group per catalog, omitting catalogs with no items."""
    groups: list[CatalogGroup] = []
    for catalog, result in results:
        if not isinstance(result, SourceSuccess) or not result.payload:
            continue
        items: list[MetaPreview] = list(result.payload)
        groups.append(
            CatalogGroup(
                addon_id=result.source.id,
                addon_name=result.source.name,
                catalog_id=catalog.id,
                catalog_type=catalog.type,
                catalog_name=catalog.name,
                items=tuple(items),
            )
        )

    settled = [result for _, result in results]
    failures = _failures(settled)
    status = aggregate_status(settled, pending)
    return AggregateResult(
        status=status,
        data=groups,
        error=_first_error(status, failures),
        failures=failures,
    )
