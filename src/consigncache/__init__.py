"""consigncache - Query-aware caching in front of the ConsignCloud API."""

# Per-type cache and routing
from consigncache.bulk_cache import BulkCache

# Orchestrator
from consigncache.caching_client import INVALIDATION_MAP, CachingClient, mutation

# Upstream
from consigncache.client import ConsignCloudClient
from consigncache.config import DEFAULT_TTLS, CacheConfig, id_cache_key

# Duration parsing
from consigncache.duration import parse_duration
from consigncache.errors import UpstreamConnectionError, UpstreamError
from consigncache.manager import CacheManager

# Query fingerprints
from consigncache.query import PAGINATION_KEYS, fingerprint, is_compatible

# Core types
from consigncache.types import (
    ENTITY_TYPES,
    CacheStats,
    CacheTable,
    Duration,
    Entity,
    EntityRecord,
    Page,
    QueryRecord,
)
from consigncache.upstream import UpstreamClient

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TTLS",
    "ENTITY_TYPES",
    "INVALIDATION_MAP",
    "PAGINATION_KEYS",
    "BulkCache",
    "CacheConfig",
    "CacheManager",
    "CacheStats",
    "CacheTable",
    "CachingClient",
    "ConsignCloudClient",
    "Duration",
    "Entity",
    "EntityRecord",
    "Page",
    "QueryRecord",
    "UpstreamClient",
    "UpstreamConnectionError",
    "UpstreamError",
    "fingerprint",
    "id_cache_key",
    "is_compatible",
    "mutation",
    "parse_duration",
]
