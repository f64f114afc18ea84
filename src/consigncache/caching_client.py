"""Caching wrapper around the upstream client.

Provides:
- CachingClient: list/get reads served from the CacheManager, with
  cursor draining on a miss
- INVALIDATION_MAP: which caches each mutation clears
- @mutation: decorator running an upstream write, then its invalidation
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine, Iterable, Mapping
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Concatenate, ParamSpec, TypeVar

from consigncache.manager import CacheManager
from consigncache.query import fingerprint, strip_pagination
from consigncache.types import ENTITY_TYPES, CacheStats, Entity, Page
from consigncache.upstream import UpstreamClient

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

DEFAULT_PAGE_SIZE = 100

# Keys only the aggregate computations read; never part of a listing
AGGREGATE_ONLY_KEYS = frozenset({"group_by", "date_interval", "date_from", "date_to"})

# Operation -> caches to clear once the upstream write succeeds.
# Sales and batch status changes also move item statuses.
INVALIDATION_MAP: Mapping[str, tuple[str, ...]] = {
    # Items
    "create_item": ("items", "items:*"),
    "update_item": ("items", "items:*"),
    "delete_item": ("items", "items:*"),
    "restore_item": ("items", "items:*"),
    "bulk_edit_items": ("items", "items:*"),
    "update_item_statuses": ("items", "items:*"),
    # Sales
    "create_sale": ("sales", "sales:*", "items"),
    "update_sale": ("sales", "sales:*", "items"),
    "void_sale": ("sales", "sales:*", "items"),
    "refund_sale": ("sales", "sales:*", "items"),
    # Accounts
    "create_account": ("accounts", "accounts:*"),
    "update_account": ("accounts", "accounts:*"),
    "delete_account": ("accounts", "accounts:*"),
    # Categories
    "create_category": ("categories", "categories:*"),
    "update_category": ("categories", "categories:*"),
    "delete_category": ("categories", "categories:*"),
    # Locations
    "create_location": ("locations", "locations:*"),
    "update_location": ("locations", "locations:*"),
    "delete_location": ("locations", "locations:*"),
    # Batches
    "create_batch": ("batches", "batches:*"),
    "update_batch": ("batches", "batches:*"),
    "update_batch_status": ("batches", "batches:*", "items"),
}


def mutation(
    fn: Callable[Concatenate[CachingClient, P], Awaitable[R]],
) -> Callable[Concatenate[CachingClient, P], Awaitable[R]]:
    """Decorator that runs an upstream write, then invalidates its caches.

    The method name is the operation looked up in INVALIDATION_MAP, and
    must be present there. Nothing is invalidated if the write raises.
    """
    operation = fn.__name__
    if operation not in INVALIDATION_MAP:
        raise TypeError(f"@mutation on {operation}: no INVALIDATION_MAP entry")

    @wraps(fn)
    async def wrapper(self: CachingClient, *args: P.args, **kwargs: P.kwargs) -> R:
        result = await fn(self, *args, **kwargs)
        self.invalidate_for(operation)
        return result

    return wrapper


def _filter_subset(params: Mapping[str, Any] | None) -> dict[str, Any]:
    return {
        k: v
        for k, v in (params or {}).items()
        if k not in AGGREGATE_ONLY_KEYS and v is not None
    }


class CachingClient:
    """Upstream client wrapper that caches reads and invalidates on writes.

    Usage:
        cache = CacheManager(CacheConfig.from_env())
        async with ConsignCloudClient(api_key) as upstream:
            client = CachingClient(upstream, cache)
            items = await client.list_items({"status": "available"})
            await client.void_sale("sale-1")  # clears sales and items
    """

    def __init__(
        self,
        client: UpstreamClient,
        cache: CacheManager,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        coalesce: bool = False,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._client = client
        self._cache = cache
        self._page_size = page_size
        self._coalesce_enabled = coalesce
        self._in_flight: dict[str, asyncio.Task[list[Entity]]] = {}
        self.last_request_was_cached = False
        self.last_cache_timestamp: str | None = None

    @property
    def cache(self) -> CacheManager:
        return self._cache

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    async def list_items(self, params: dict[str, Any] | None = None) -> list[Entity]:
        return await self._fetch_list("items", params, self._client.list_items)

    async def list_sales(self, params: dict[str, Any] | None = None) -> list[Entity]:
        return await self._fetch_list("sales", params, self._client.list_sales)

    async def list_accounts(self, params: dict[str, Any] | None = None) -> list[Entity]:
        return await self._fetch_list("accounts", params, self._client.list_accounts)

    async def list_categories(
        self, params: dict[str, Any] | None = None
    ) -> list[Entity]:
        return await self._fetch_list(
            "categories", params, self._client.list_categories
        )

    async def list_locations(
        self, params: dict[str, Any] | None = None
    ) -> list[Entity]:
        return await self._fetch_list("locations", params, self._client.list_locations)

    async def list_batches(self, params: dict[str, Any] | None = None) -> list[Entity]:
        return await self._fetch_list("batches", params, self._client.list_batches)

    # -------------------------------------------------------------------------
    # Single entities
    # -------------------------------------------------------------------------

    async def get_item(self, id: str) -> Entity:
        return await self._fetch_by_id("items", id, self._client.get_item)

    async def get_sale(self, id: str) -> Entity:
        return await self._fetch_by_id("sales", id, self._client.get_sale)

    async def get_account(self, id: str) -> Entity:
        return await self._fetch_by_id("accounts", id, self._client.get_account)

    async def get_category(self, id: str) -> Entity:
        return await self._fetch_by_id("categories", id, self._client.get_category)

    async def get_location(self, id: str) -> Entity:
        return await self._fetch_by_id("locations", id, self._client.get_location)

    async def get_batch(self, id: str) -> Entity:
        return await self._fetch_by_id("batches", id, self._client.get_batch)

    # -------------------------------------------------------------------------
    # Aggregates: warm the listings they read, then delegate
    # -------------------------------------------------------------------------

    async def get_item_stats(self) -> Any:
        await self.list_items({})
        return await self._client.get_item_stats()

    async def get_account_stats(self, id: str) -> Any:
        await self.list_items({"account": id})
        await self.list_sales({})
        return await self._client.get_account_stats(id)

    async def get_sales_trends(
        self, start_date: str, end_date: str, bucket_size: str
    ) -> Any:
        await self.list_sales({})
        return await self._client.get_sales_trends(start_date, end_date, bucket_size)

    async def calculate_inventory_value(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        await self.list_items(_filter_subset(params))
        return await self._client.calculate_inventory_value(params)

    async def calculate_sales_totals(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        await self.list_sales(_filter_subset(params))
        return await self._client.calculate_sales_totals(params)

    async def calculate_account_metrics(
        self,
        account_id: str,
        *,
        date_from: str | None = None,
        date_to: str | None = None,
        inventory_type: str | None = None,
    ) -> dict[str, Any]:
        await self.list_items({"account": account_id})
        await self.list_sales({})
        return await self._client.calculate_account_metrics(
            account_id,
            date_from=date_from,
            date_to=date_to,
            inventory_type=inventory_type,
        )

    # -------------------------------------------------------------------------
    # Uncached reads
    # -------------------------------------------------------------------------

    async def search(self, query: str, entities: list[str] | None = None) -> Any:
        self._mark_fresh(None)
        return await self._client.search(query, entities)

    async def suggest_field_values(self, entity: str, field: str, value: str) -> Any:
        self._mark_fresh(None)
        return await self._client.suggest_field_values(entity, field, value)

    async def list_balance_entries(self, params: dict[str, Any] | None = None) -> Any:
        self._mark_fresh(None)
        return await self._client.list_balance_entries(params)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @mutation
    async def create_item(self, data: dict[str, Any]) -> Entity:
        return await self._client.create_item(data)

    @mutation
    async def update_item(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._client.update_item(id, data)

    @mutation
    async def delete_item(self, id: str) -> None:
        await self._client.delete_item(id)

    @mutation
    async def restore_item(self, id: str) -> Entity:
        return await self._client.restore_item(id)

    @mutation
    async def bulk_edit_items(self, data: dict[str, Any]) -> Any:
        return await self._client.bulk_edit_items(data)

    @mutation
    async def update_item_statuses(self, item_ids: list[str], status: str) -> Any:
        return await self._client.update_item_statuses(item_ids, status)

    @mutation
    async def create_sale(self, data: dict[str, Any]) -> Entity:
        return await self._client.create_sale(data)

    @mutation
    async def update_sale(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._client.update_sale(id, data)

    @mutation
    async def void_sale(self, id: str) -> Entity:
        return await self._client.void_sale(id)

    @mutation
    async def refund_sale(self, id: str, data: dict[str, Any] | None = None) -> Entity:
        return await self._client.refund_sale(id, data)

    @mutation
    async def create_account(self, data: dict[str, Any]) -> Entity:
        return await self._client.create_account(data)

    @mutation
    async def update_account(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._client.update_account(id, data)

    @mutation
    async def delete_account(self, id: str) -> None:
        await self._client.delete_account(id)

    @mutation
    async def create_category(self, data: dict[str, Any]) -> Entity:
        return await self._client.create_category(data)

    @mutation
    async def update_category(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._client.update_category(id, data)

    @mutation
    async def delete_category(self, id: str) -> None:
        await self._client.delete_category(id)

    @mutation
    async def create_location(self, data: dict[str, Any]) -> Entity:
        return await self._client.create_location(data)

    @mutation
    async def update_location(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._client.update_location(id, data)

    @mutation
    async def delete_location(self, id: str) -> None:
        await self._client.delete_location(id)

    @mutation
    async def create_batch(self, data: dict[str, Any]) -> Entity:
        return await self._client.create_batch(data)

    @mutation
    async def update_batch(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._client.update_batch(id, data)

    @mutation
    async def update_batch_status(self, id: str, status: str) -> Entity:
        return await self._client.update_batch_status(id, status)

    # -------------------------------------------------------------------------
    # Cache control
    # -------------------------------------------------------------------------

    def invalidate_for(self, operation: str) -> None:
        """Clear the caches an operation affects.

        Unknown operations clear nothing.
        """
        keys = INVALIDATION_MAP.get(operation)
        if keys:
            self._cache.invalidate(keys)

    def clear_cache(self, types: str | Iterable[str]) -> None:
        """Clear specific caches, or everything with "all"."""
        keys = [types] if isinstance(types, str) else list(types)
        if "all" in keys:
            self._cache.clear_all()
            return
        for key in keys:
            self._cache.invalidate(key)
            logger.info("Cleared %s cache", key)

    async def refresh_cache(self, type: str) -> None:
        """Drop a type's bulk table and fetch it again in full."""
        list_fns: dict[str, Callable[[dict[str, Any]], Awaitable[list[Entity]]]] = {
            "items": self.list_items,
            "sales": self.list_sales,
            "accounts": self.list_accounts,
            "categories": self.list_categories,
            "locations": self.list_locations,
            "batches": self.list_batches,
        }
        if type not in list_fns:
            raise ValueError(f"Unknown cache type: {type}")

        self._cache.invalidate(type)
        logger.info("Refreshing %s cache...", type)
        await list_fns[type]({})
        logger.info("%s cache refreshed", type)

    async def refresh_all(self) -> list[str]:
        """Refresh every entity type, returning those that failed."""
        failed = []
        for type in ENTITY_TYPES:
            try:
                await self.refresh_cache(type)
            except Exception:
                logger.exception("Failed to refresh %s", type)
                failed.append(type)
        return failed

    def get_cache_stats(self) -> dict[str, CacheStats | None]:
        """Stats for every cache, also written to the log."""
        stats = self._cache.get_all_stats()
        for key, stat in stats.items():
            if stat is None:
                logger.info("%s: empty", key)
            else:
                logger.info(
                    "%s: items=%d queries=%d hit_rate=%.1f%% size_mb=%s expires=%s",
                    key,
                    stat.total_items,
                    stat.unique_queries,
                    stat.hit_rate * 100,
                    stat.size_estimate_mb,
                    stat.expires_at,
                )
        return stats

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _mark_cached(self, type: str) -> None:
        self.last_request_was_cached = True
        stats = self._cache.get_stats(type)
        self.last_cache_timestamp = stats.last_updated if stats else None

    def _mark_fresh(self, timestamp: str | None) -> None:
        self.last_request_was_cached = False
        self.last_cache_timestamp = timestamp

    async def _fetch_list(
        self,
        type: str,
        params: dict[str, Any] | None,
        fetch: Callable[[dict[str, Any]], Awaitable[Page[Entity]]],
    ) -> list[Entity]:
        """Serve a listing from cache, or drain every page and cache it."""
        query = strip_pagination(params or {})
        page_size = (params or {}).get("limit") or self._page_size
        cached = self._cache.get(type, query)
        if cached is not None:
            self._mark_cached(type)
            return cached

        async def drain() -> list[Entity]:
            logger.info("Fetching %s from API...", type)
            # Always start from the first page; a caller's cursor is ignored
            page_params: dict[str, Any] = {"limit": page_size, **query}
            results: list[Entity] = []
            while True:
                page = await fetch(dict(page_params))
                results.extend(page.data)
                if not page.next_cursor:
                    break
                page_params["cursor"] = page.next_cursor
            logger.info("Fetched %d %s from API", len(results), type)
            # Only complete result sets reach the cache
            self._cache.set(type, query, results)
            return results

        if self._coalesce_enabled:
            results = await self._coalesce(f"{type}:{fingerprint(query)}", drain)
        else:
            results = await drain()
        self._mark_fresh(_now_iso())
        return results

    async def _fetch_by_id(
        self,
        type: str,
        id: str,
        fetch: Callable[[str], Awaitable[Entity]],
    ) -> Entity:
        """Serve one entity from cache, or fetch and cache it."""
        cached = self._cache.get_by_id(type, id)
        if cached is not None:
            self._mark_cached(f"{type}:id")
            return cached

        logger.info("Fetching %s:%s from API...", type, id)
        item = await fetch(id)
        self._cache.set_by_id(type, id, item)
        self._mark_fresh(_now_iso())
        return item

    async def _coalesce(
        self, key: str, fetch: Callable[[], Coroutine[Any, Any, list[Entity]]]
    ) -> list[Entity]:
        """Share one in-flight drain between concurrent identical misses."""
        task = self._in_flight.get(key)
        if task is None:
            # The drain runs as its own task so cancelling any caller,
            # the first included, leaves it running for the others
            task = asyncio.create_task(fetch())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._drain_finished(key, done))
        return list(await asyncio.shield(task))

    def _drain_finished(self, key: str, task: asyncio.Task[list[Entity]]) -> None:
        self._in_flight.pop(key, None)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Shared fetch %s failed: %r", key, task.exception())


def _now_iso() -> str:
    return datetime.fromtimestamp(time.time(), tz=timezone.utc).isoformat()
