"""Domain entities for fan-out queries and their aggregated outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar, Union

from .addon import AddonSource, ResourceKind
from .media import MetaPreview

T = TypeVar("T")


@dataclass(frozen=True)
class QueryDescriptor:
    """What to ask every compatible source for."""

    resource: ResourceKind
    content_type: str
    id: str
    extra: Mapping[str, str] = field(default_factory=dict)

    @property
    def cache_key(self) -> tuple[Any, ...]:
        return (
            self.resource.value,
            self.content_type,
            self.id,
            tuple(sorted(self.extra.items())),
        )


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    DECODE = "decode"


@dataclass(frozen=True)
class SourceSuccess(Generic[T]):
    source: AddonSource
    payload: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class SourceFailure:
    source: AddonSource
    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False


SourceResult = Union[SourceSuccess[T], SourceFailure]


class AggregateStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class AggregateResult(Generic[T]):
    """Combined outcome of one fan-out query.

    ``error`` holds the first source failure when every source failed.
    """

    status: AggregateStatus
    data: T
    error: SourceFailure | None = None
    failures: tuple[SourceFailure, ...] = ()

    @property
    def is_loading(self) -> bool:
        return self.status is AggregateStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.status is AggregateStatus.ERROR


@dataclass(frozen=True)
class CatalogGroup:
    """Items of one catalog from one addon (search and home rows)."""

    addon_id: str
    addon_name: str
    catalog_id: str
    catalog_type: str
    catalog_name: str
    items: tuple[MetaPreview, ...] = ()
