"""Core types for the consigncache library."""

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

# Upstream entities are plain JSON objects carrying at least an "id"
Entity = dict[str, Any]
QueryParams = dict[str, Any]

EntityType = Literal["items", "sales", "accounts", "categories", "locations", "batches"]

ENTITY_TYPES: tuple[EntityType, ...] = (
    "items",
    "sales",
    "accounts",
    "categories",
    "locations",
    "batches",
)

# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or seconds


@dataclass(frozen=True, slots=True)
class QueryRecord:
    """The filters that returned an entity, and when."""

    params: QueryParams
    fetched_at: float  # Unix timestamp, seconds


@dataclass(slots=True)
class EntityRecord:
    """A cached entity plus every query that has returned it."""

    id: str
    data: Entity
    queries: list[QueryRecord] = field(default_factory=list)


@dataclass(slots=True)
class CacheTable:
    """All entities cached for one type, expiring as a unit."""

    entries: dict[str, EntityRecord]
    last_updated: float
    expires_at: float
    unique_queries: set[str]


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Snapshot of one table's contents and its cache's hit rate."""

    total_items: int
    unique_queries: int
    last_updated: str  # ISO-8601
    expires_at: str  # ISO-8601
    hit_rate: float
    size_estimate_mb: float


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""

    data: list[T]
    next_cursor: str | None = None
