"""Routing of cache operations to per-type bulk caches."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from consigncache.bulk_cache import BulkCache
from consigncache.config import CacheConfig, id_cache_key
from consigncache.types import CacheStats, Entity

logger = logging.getLogger(__name__)

WILDCARD_SUFFIX = ":*"


class CacheManager:
    """Owns one BulkCache per entity type.

    Bulk tables are keyed by type name ("items"); single-entity tables are
    separate caches keyed "<type>:id". Caches are created on first use.

    Usage:
        manager = CacheManager(CacheConfig(ttl={"items": "30m"}))
        manager.set("items", {"status": "active"}, items)
        manager.get("items", {"status": "active"})
        manager.invalidate(["items", "items:*"])
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._caches: dict[str, BulkCache] = {}
        logger.info(
            "Cache initialized - enabled: %s, threshold: %d",
            self._config.enabled,
            self._config.warning_threshold,
        )

    @property
    def config(self) -> CacheConfig:
        return self._config

    def is_enabled(self) -> bool:
        """Check if caching is enabled."""
        return self._config.enabled

    def _cache(self, key: str) -> BulkCache:
        """Get or create the cache for a key."""
        cache = self._caches.get(key)
        if cache is None:
            cache = BulkCache(
                key,
                self._config.ttl_for(key),
                self._config.warning_threshold,
                clock=self._clock,
            )
            self._caches[key] = cache
        return cache

    def get(self, type: str, params: Mapping[str, Any]) -> list[Entity] | None:
        """Get cached entities for a query, None on a miss."""
        if not self._config.enabled:
            return None
        return self._cache(type).get(params)

    def set(self, type: str, params: Mapping[str, Any], items: Iterable[Entity]) -> None:
        """Merge a query's results into the type's bulk table."""
        if not self._config.enabled:
            return
        self._cache(type).set(params, items)

    def get_by_id(self, type: str, id: str) -> Entity | None:
        """Get one entity from the type's single-entity table."""
        if not self._config.enabled:
            return None
        return self._cache(id_cache_key(type)).get_by_id(id)

    def set_by_id(self, type: str, id: str, item: Entity) -> None:
        """Store one entity in the type's single-entity table."""
        if not self._config.enabled:
            return
        key = id_cache_key(type)
        self._cache(key).set_by_id(id, item, self._config.ttl_for(key))

    def invalidate(self, types: str | Iterable[str]) -> None:
        """Invalidate one or more caches.

        A plain type ("items") drops its bulk table. A wildcard
        ("items:*") drops the type's single-entity table only.
        """
        keys = [types] if isinstance(types, str) else list(types)
        for key in keys:
            if key.endswith(WILDCARD_SUFFIX):
                key = id_cache_key(key[: -len(WILDCARD_SUFFIX)])
            cache = self._caches.get(key)
            if cache is not None:
                cache.invalidate()

    def clear_all(self) -> None:
        """Invalidate every cache."""
        for cache in self._caches.values():
            cache.invalidate()
        logger.info("Cleared all caches")

    def get_stats(self, type: str) -> CacheStats | None:
        """Stats for one cache key, None if it holds nothing."""
        cache = self._caches.get(type)
        return cache.get_stats() if cache is not None else None

    def get_all_stats(self) -> dict[str, CacheStats | None]:
        """Stats for every cache created so far."""
        return {key: cache.get_stats() for key, cache in self._caches.items()}
