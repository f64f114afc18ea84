"""Shared pytest fixtures."""

import asyncio
from typing import Any

import pytest

from consigncache import CacheConfig, CacheManager, Page


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """In-memory stand-in for the upstream API.

    Listings are served from ``tables`` in pages of ``limit`` and filtered
    by exact match on every non-pagination param. Every call is recorded.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = tables or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_with: Exception | None = None

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        return [args for called, args in self.calls if called == name]

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with

    async def _page(self, name: str, type: str, params: dict[str, Any] | None) -> Page:
        params = dict(params or {})
        await self._record(name, dict(params))
        limit = int(params.pop("limit", 100))
        start = int(params.pop("cursor", 0))
        rows = [
            row
            for row in self.tables.get(type, [])
            if all(row.get(k) == v for k, v in params.items())
        ]
        end = start + limit
        return Page(data=rows[start:end], next_cursor=str(end) if end < len(rows) else None)

    async def _get(self, name: str, type: str, id: str) -> dict[str, Any]:
        await self._record(name, id)
        return next(row for row in self.tables.get(type, []) if row["id"] == id)

    async def list_items(self, params=None):
        return await self._page("list_items", "items", params)

    async def list_sales(self, params=None):
        return await self._page("list_sales", "sales", params)

    async def list_accounts(self, params=None):
        return await self._page("list_accounts", "accounts", params)

    async def list_categories(self, params=None):
        return await self._page("list_categories", "categories", params)

    async def list_locations(self, params=None):
        return await self._page("list_locations", "locations", params)

    async def list_batches(self, params=None):
        return await self._page("list_batches", "batches", params)

    async def get_item(self, id):
        return await self._get("get_item", "items", id)

    async def get_sale(self, id):
        return await self._get("get_sale", "sales", id)

    async def get_account(self, id):
        return await self._get("get_account", "accounts", id)

    async def get_category(self, id):
        return await self._get("get_category", "categories", id)

    async def get_location(self, id):
        return await self._get("get_location", "locations", id)

    async def get_batch(self, id):
        return await self._get("get_batch", "batches", id)

    def __getattr__(self, name: str) -> Any:
        # Mutations, searches and aggregates just record and echo
        if name.startswith("_"):
            raise AttributeError(name)

        async def call(*args: Any, **kwargs: Any) -> dict[str, Any]:
            await self._record(name, *args, *kwargs.values())
            return {"operation": name, "args": list(args)}

        return call


def _item(n: int) -> dict[str, Any]:
    return {
        "id": f"item-{n}",
        "status": "available" if n % 2 else "sold",
        "category": "cat1",
        "created": "2024-01-01T00:00:00Z",
    }


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock for each test."""
    return FakeClock()


@pytest.fixture
def manager(clock: FakeClock) -> CacheManager:
    """Create a CacheManager driven by the fake clock."""
    return CacheManager(CacheConfig(), clock=clock)


@pytest.fixture
def upstream() -> FakeUpstream:
    """Create a fake upstream with a few of every entity."""
    return FakeUpstream(
        {
            "items": [_item(n) for n in range(1, 251)],
            "sales": [
                {"id": "sale-1", "status": "completed", "created": "2024-01-02T10:00:00Z"},
                {"id": "sale-2", "status": "voided", "created": "2024-01-03T10:00:00Z"},
            ],
            "accounts": [{"id": "acct-1", "number": "100"}],
            "categories": [{"id": "cat1", "name": "Shoes"}],
            "locations": [{"id": "loc-1", "name": "Main"}],
            "batches": [{"id": "batch-1", "status": "draft"}],
        }
    )
