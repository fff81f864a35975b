"""Pydantic models for decoding addon responses, plus domain conversion.

Models are lenient: unknown keys are ignored and only the fields the
engine consumes are declared.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from aggregarr.domain.entities.addon import (
    AddonResource,
    AddonSource,
    ManifestCatalog,
)
from aggregarr.domain.entities.media import (
    BehaviorHints,
    MetaDetail,
    MetaPreview,
    MetaVideo,
    Stream,
)
from aggregarr.domain.entities.subtitles import AddonSubtitle


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ExtraProperty(_WireModel):
    name: str
    is_required: bool = Field(default=False, alias="isRequired")
    options: list[str] | None = None


class CatalogDescriptor(_WireModel):
    type: str
    id: str
    name: str = ""
    extra: list[ExtraProperty] = Field(default_factory=list)


class ResourceDescriptor(_WireModel):
    name: str
    types: list[str] | None = None
    id_prefixes: list[str] | None = Field(default=None, alias="idPrefixes")


class Manifest(_WireModel):
    id: str
    name: str
    version: str = ""
    description: str = ""
    types: list[str] = Field(default_factory=list)
    resources: list[str | ResourceDescriptor] = Field(default_factory=list)
    id_prefixes: list[str] | None = Field(default=None, alias="idPrefixes")
    catalogs: list[CatalogDescriptor] = Field(default_factory=list)


class Video(_WireModel):
    id: str
    title: str | None = None
    name: str | None = None
    season: int | None = None
    episode: int | None = None
    number: int | None = None
    released: str | None = None
    thumbnail: str | None = None
    overview: str | None = None

    @field_validator("season", "episode", "number", mode="before")
    @classmethod
    def _coerce_int(cls, v: Any) -> Any:
        if isinstance(v, str):
            return int(v) if v.strip().isdigit() else None
        return v


class Meta(_WireModel):
    id: str
    type: str
    name: str = ""
    poster: str | None = None
    background: str | None = None
    logo: str | None = None
    description: str | None = None
    release_info: str | None = Field(default=None, alias="releaseInfo")
    videos: list[Video] = Field(default_factory=list)

    @field_validator("release_info", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v


class MetaResponse(_WireModel):
    meta: Meta | None = None


class CatalogResponse(_WireModel):
    metas: list[Meta] = Field(default_factory=list)


class WireBehaviorHints(_WireModel):
    binge_group: str | None = Field(
        default=None, validation_alias=AliasChoices("bingeGroup", "group")
    )
    country_whitelist: list[str] | None = Field(default=None, alias="countryWhitelist")
    not_web_ready: bool = Field(default=False, alias="notWebReady")


class WireStream(_WireModel):
    url: str | None = None
    external_url: str | None = Field(default=None, alias="externalUrl")
    yt_id: str | None = Field(default=None, alias="ytId")
    name: str | None = None
    title: str | None = None
    description: str | None = None
    behavior_hints: WireBehaviorHints = Field(
        default_factory=WireBehaviorHints, alias="behaviorHints"
    )


class StreamsResponse(_WireModel):
    streams: list[WireStream] = Field(default_factory=list)


class WireSubtitle(_WireModel):
    id: str | None = None
    url: str
    lang: str | None = None


class SubtitlesResponse(_WireModel):
    subtitles: list[WireSubtitle] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Domain conversion
# ---------------------------------------------------------------------------


def manifest_to_source(manifest: Manifest, manifest_url: str) -> AddonSource:
    resources: list[AddonResource] = []
    for res in manifest.resources:
        if isinstance(res, str):
            resources.append(AddonResource(name=res))
        else:
            resources.append(
                AddonResource(
                    name=res.name,
                    types=tuple(res.types) if res.types is not None else None,
                    id_prefixes=tuple(res.id_prefixes) if res.id_prefixes else None,
                )
            )

    catalogs = tuple(
        ManifestCatalog(
            type=cat.type,
            id=cat.id,
            name=cat.name,
            extra_names=tuple(extra.name for extra in cat.extra),
            required_extra_names=tuple(
                extra.name for extra in cat.extra if extra.is_required
            ),
        )
        for cat in manifest.catalogs
    )

    return AddonSource(
        id=manifest.id,
        manifest_url=manifest_url,
        name=manifest.name,
        version=manifest.version,
        description=manifest.description,
        declared_types=tuple(manifest.types),
        resources=tuple(resources),
        id_prefixes=tuple(manifest.id_prefixes or ()),
        catalogs=catalogs,
        installed_at=datetime.now(timezone.utc),
    )


def _video_to_domain(video: Video) -> MetaVideo:
    return MetaVideo(
        id=video.id,
        title=video.title or video.name,
        season=video.season,
        episode=video.episode if video.episode is not None else video.number,
        released=video.released,
        thumbnail=video.thumbnail,
        overview=video.overview,
    )


def meta_to_domain(meta: Meta) -> MetaDetail:
    # Videos are sorted by the aggregator, not here.
    return MetaDetail(
        id=meta.id,
        type=meta.type,
        name=meta.name,
        poster=meta.poster,
        background=meta.background,
        logo=meta.logo,
        description=meta.description,
        release_info=meta.release_info,
        videos=tuple(_video_to_domain(v) for v in meta.videos),
    )


def meta_to_preview(meta: Meta) -> MetaPreview:
    return MetaPreview(
        id=meta.id,
        type=meta.type,
        name=meta.name,
        poster=meta.poster,
        description=meta.description,
        release_info=meta.release_info,
    )


def stream_to_domain(stream: WireStream) -> Stream:
    hints = stream.behavior_hints
    return Stream(
        url=stream.url,
        external_url=stream.external_url,
        yt_id=stream.yt_id,
        name=stream.name,
        title=stream.title,
        description=stream.description,
        behavior_hints=BehaviorHints(
            binge_group=hints.binge_group,
            country_whitelist=tuple(hints.country_whitelist or ()),
            not_web_ready=hints.not_web_ready,
        ),
    )


def subtitle_to_domain(sub: WireSubtitle) -> AddonSubtitle:
    return AddonSubtitle(id=sub.id or sub.url, url=sub.url, lang=sub.lang)
