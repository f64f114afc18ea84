"""Per-type bulk cache with query-aware merging."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from consigncache.query import fingerprint, is_compatible
from consigncache.types import CacheStats, CacheTable, Entity, EntityRecord, QueryRecord

logger = logging.getLogger(__name__)

WARNING_TIER = 50_000
CRITICAL_TIER = 100_000

# Rough per-entity footprint for stats, in KB
_ENTITY_SIZE_KB = 2


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class BulkCache:
    """Cache of every entity fetched for one type.

    Entities returned by different queries are merged into one table keyed
    by id. Each entity remembers the filters of every query that returned
    it, which is what lets a later query be answered from the table. The
    whole table shares one expiry: once it passes, everything is dropped
    and the next ``set`` starts over.
    """

    def __init__(
        self,
        type: str,
        ttl: float,
        warning_threshold: int,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._type = type
        self._ttl = ttl
        self._warning_threshold = warning_threshold
        self._clock = clock
        self._table: CacheTable | None = None
        self._warned_tier = 0
        self._hits = 0
        self._misses = 0

    @property
    def type(self) -> str:
        return self._type

    @property
    def ttl(self) -> float:
        return self._ttl

    def is_valid(self) -> bool:
        """Check if the table exists and has not expired."""
        if self._table is None:
            return False
        return self._clock() < self._table.expires_at

    def get(self, params: Mapping[str, Any]) -> list[Entity] | None:
        """Get cached entities for a query, or None on a miss.

        Only queries whose exact filter combination was stored before can
        hit. On a hit every entity with a compatible query record is
        returned.
        """
        table = self._table
        if table is None or self._clock() >= table.expires_at:
            self._misses += 1
            return None

        key = fingerprint(params)
        if key not in table.unique_queries:
            self._misses += 1
            logger.debug("%s MISS for query %s", self._type, key)
            return None

        self._hits += 1
        results = [
            entry.data
            for entry in table.entries.values()
            if any(is_compatible(q.params, params) for q in entry.queries)
        ]
        logger.debug("%s HIT for query %s - %d items", self._type, key, len(results))
        return results

    def set(self, params: Mapping[str, Any], items: Iterable[Entity]) -> None:
        """Merge a query's full result set into the table."""
        now = self._clock()
        key = fingerprint(params)
        table = self._ensure_table(now, self._ttl)
        table.unique_queries.add(key)
        table.last_updated = now

        record = QueryRecord(params=dict(params), fetched_at=now)
        count = 0
        for item in items:
            count += 1
            entry = table.entries.get(item["id"])
            if entry is not None:
                entry.data = item
                entry.queries.append(record)
            else:
                table.entries[item["id"]] = EntityRecord(
                    id=item["id"], data=item, queries=[record]
                )

        total = len(table.entries)
        self._check_threshold(total)
        logger.debug(
            "%s SET for query %s - %d items (total cached: %d)",
            self._type,
            key,
            count,
            total,
        )

    def get_by_id(self, id: str) -> Entity | None:
        """Get a single cached entity by id."""
        table = self._table
        if table is None or self._clock() >= table.expires_at:
            self._misses += 1
            return None

        entry = table.entries.get(id)
        if entry is None:
            self._misses += 1
            return None

        self._hits += 1
        logger.debug("%s:%s HIT", self._type, id)
        return entry.data

    def set_by_id(self, id: str, item: Entity, ttl: float | None = None) -> None:
        """Store a single entity, replacing any earlier record for its id.

        ``ttl`` only applies when this call creates the table.
        """
        now = self._clock()
        table = self._ensure_table(now, self._ttl if ttl is None else ttl)
        table.entries[id] = EntityRecord(
            id=id, data=item, queries=[QueryRecord(params={"id": id}, fetched_at=now)]
        )
        table.last_updated = now
        self._check_threshold(len(table.entries))
        logger.debug("%s:%s SET", self._type, id)

    def invalidate(self) -> None:
        """Drop the table."""
        if self._table is not None:
            logger.info(
                "%s INVALIDATED - cleared %d items",
                self._type,
                len(self._table.entries),
            )
        self._table = None
        self._warned_tier = 0

    def get_stats(self) -> CacheStats | None:
        """Snapshot of the table, or None if nothing is cached.

        Hit rate covers every lookup since construction, across
        invalidations.
        """
        if self._table is None:
            return None

        total_items = len(self._table.entries)
        total_requests = self._hits + self._misses
        hit_rate = self._hits / total_requests if total_requests else 0.0
        return CacheStats(
            total_items=total_items,
            unique_queries=len(self._table.unique_queries),
            last_updated=_iso(self._table.last_updated),
            expires_at=_iso(self._table.expires_at),
            hit_rate=round(hit_rate, 2),
            size_estimate_mb=round(total_items * _ENTITY_SIZE_KB / 1024, 2),
        )

    def _ensure_table(self, now: float, ttl: float) -> CacheTable:
        """Return the live table, replacing an absent or expired one."""
        if self._table is None or not self.is_valid():
            self._table = CacheTable(
                entries={},
                last_updated=now,
                expires_at=now + ttl,
                unique_queries=set(),
            )
            self._warned_tier = 0
        return self._table

    def _check_threshold(self, count: int) -> None:
        """Warn once per size tier as the table grows.

        A single set that crosses several tiers reports each of them, lowest
        first.
        """
        if count >= CRITICAL_TIER:
            tier = 3
        elif count >= WARNING_TIER:
            tier = 2
        elif count >= self._warning_threshold:
            tier = 1
        else:
            return

        for level in range(self._warned_tier + 1, tier + 1):
            if level == 1 and count < self._warning_threshold:
                continue
            self._log_tier(level, count)
        self._warned_tier = max(self._warned_tier, tier)

    def _log_tier(self, level: int, count: int) -> None:
        if level == 3:
            logger.error(
                "CRITICAL: %s cache has %s items! Consider clearing cache.",
                self._type,
                f"{count:,}",
            )
        elif level == 2:
            logger.warning(
                "WARNING: %s cache has %s items (threshold: %s)",
                self._type,
                f"{count:,}",
                f"{self._warning_threshold:,}",
            )
        else:
            logger.warning(
                "%s cache has %s items (threshold: %s)",
                self._type,
                f"{count:,}",
                f"{self._warning_threshold:,}",
            )
