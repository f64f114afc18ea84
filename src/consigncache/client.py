"""Async HTTP client for the ConsignCloud back-office API."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from consigncache.errors import UpstreamConnectionError, UpstreamError
from consigncache.types import Entity, Page

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.consigncloud.com/api/v1"
PAGE_SIZE = 100

_INVENTORY_GROUP_DEFAULTS = {
    "category": "uncategorized",
    "location": "no_location",
    "account": "no_account",
}


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 date or timestamp, assuming UTC when naive."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _within_dates(
    entity: Entity, date_from: str | None, date_to: str | None
) -> bool:
    """Check an entity's ``created`` timestamp against a date window."""
    if not date_from and not date_to:
        return True
    created = entity.get("created")
    if not created:
        return False
    when = _parse_timestamp(created)
    if date_from and when < _parse_timestamp(date_from):
        return False
    if date_to and when > _parse_timestamp(date_to):
        return False
    return True


def _date_bucket(created: str, interval: str | None) -> str:
    """Group key for a sale date: day, Sunday-start week, or month."""
    if interval is None:
        return created.split("T")[0]
    when = _parse_timestamp(created)
    if interval == "week":
        when -= timedelta(days=(when.weekday() + 1) % 7)
    elif interval == "month":
        return f"{when.year}-{when.month:02d}"
    return when.date().isoformat()


def _compact(params: dict[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (params or {}).items() if v is not None}


class ConsignCloudClient:
    """Async client for the ConsignCloud REST API.

    List methods return a single page; the ``calculate_*`` aggregates walk
    every page themselves.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ConsignCloudClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Make a request to the API and decode the JSON body."""
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(
                method, path, params=_compact(params), json=json
            )
        except httpx.RequestError as exc:
            raise UpstreamConnectionError(
                f"Network error: No response from {self._base_url}"
                " - Check your internet connection",
                method=method,
                url=path,
            ) from exc

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise UpstreamError.from_response(
                response.status_code, body, method=method, url=path
            )

        if not response.content:
            return None
        return response.json()

    async def _list(self, path: str, params: dict[str, Any] | None) -> Page[Entity]:
        body = await self._request("GET", path, params=params)
        return Page(data=body["data"], next_cursor=body.get("next_cursor"))

    async def _drain(
        self,
        list_fn: Callable[[dict[str, Any]], Awaitable[Page[Entity]]],
        params: dict[str, Any],
    ) -> list[Entity]:
        """Follow cursors until the listing is exhausted."""
        query = {"limit": PAGE_SIZE, **params}
        results: list[Entity] = []
        while True:
            page = await list_fn(query)
            results.extend(page.data)
            if not page.next_cursor:
                return results
            query = {**query, "cursor": page.next_cursor}

    # Items

    async def list_items(self, params: dict[str, Any] | None = None) -> Page[Entity]:
        return await self._list("/items", params)

    async def get_item(self, id: str) -> Entity:
        return await self._request("GET", f"/items/{id}")

    async def create_item(self, data: dict[str, Any]) -> Entity:
        return await self._request("POST", "/items", json=data)

    async def update_item(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._request("PATCH", f"/items/{id}", json=data)

    async def delete_item(self, id: str) -> None:
        await self._request("DELETE", f"/items/{id}")

    async def restore_item(self, id: str) -> Entity:
        return await self._request("POST", f"/items/{id}/restore")

    async def get_item_stats(self) -> Any:
        return await self._request("GET", "/items/stats")

    async def bulk_edit_items(self, data: dict[str, Any]) -> Any:
        return await self._request("POST", "/items/bulk-edits", json=data)

    async def update_item_statuses(self, item_ids: list[str], status: str) -> Any:
        return await self._request(
            "POST",
            "/items/update-statuses-bulk",
            json={"items": item_ids, "status": status},
        )

    # Sales

    async def list_sales(self, params: dict[str, Any] | None = None) -> Page[Entity]:
        return await self._list("/sales", params)

    async def get_sale(self, id: str) -> Entity:
        return await self._request("GET", f"/sales/{id}")

    async def create_sale(self, data: dict[str, Any]) -> Entity:
        return await self._request("POST", "/sales", json=data)

    async def update_sale(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._request("PATCH", f"/sales/{id}", json=data)

    async def void_sale(self, id: str) -> Entity:
        return await self._request("POST", f"/sales/{id}/void")

    async def refund_sale(self, id: str, data: dict[str, Any] | None = None) -> Entity:
        return await self._request("POST", f"/sales/{id}/refund", json=data)

    # Accounts

    async def list_accounts(self, params: dict[str, Any] | None = None) -> Page[Entity]:
        return await self._list("/accounts", params)

    async def get_account(self, id: str) -> Entity:
        return await self._request("GET", f"/accounts/{id}")

    async def create_account(self, data: dict[str, Any]) -> Entity:
        return await self._request("POST", "/accounts", json=data)

    async def update_account(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._request("PATCH", f"/accounts/{id}", json=data)

    async def delete_account(self, id: str) -> None:
        await self._request("DELETE", f"/accounts/{id}")

    async def get_account_stats(self, id: str) -> Any:
        return await self._request("GET", f"/accounts/{id}/stats")

    # Batches

    async def list_batches(self, params: dict[str, Any] | None = None) -> Page[Entity]:
        return await self._list("/batches", params)

    async def get_batch(self, id: str) -> Entity:
        return await self._request("GET", f"/batches/{id}")

    async def create_batch(self, data: dict[str, Any]) -> Entity:
        return await self._request("POST", "/batches", json=data)

    async def update_batch(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._request("PATCH", f"/batches/{id}", json=data)

    async def update_batch_status(self, id: str, status: str) -> Entity:
        return await self._request(
            "POST", f"/batches/{id}/status", json={"status": status}
        )

    # Item categories

    async def list_categories(
        self, params: dict[str, Any] | None = None
    ) -> Page[Entity]:
        return await self._list("/item-categories", params)

    async def get_category(self, id: str) -> Entity:
        return await self._request("GET", f"/item-categories/{id}")

    async def create_category(self, data: dict[str, Any]) -> Entity:
        return await self._request("POST", "/item-categories", json=data)

    async def update_category(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._request("PATCH", f"/item-categories/{id}", json=data)

    async def delete_category(self, id: str) -> None:
        await self._request("DELETE", f"/item-categories/{id}")

    # Locations

    async def list_locations(
        self, params: dict[str, Any] | None = None
    ) -> Page[Entity]:
        return await self._list("/locations", params)

    async def get_location(self, id: str) -> Entity:
        return await self._request("GET", f"/locations/{id}")

    async def create_location(self, data: dict[str, Any]) -> Entity:
        return await self._request("POST", "/locations", json=data)

    async def update_location(self, id: str, data: dict[str, Any]) -> Entity:
        return await self._request("PATCH", f"/locations/{id}", json=data)

    async def delete_location(self, id: str) -> None:
        await self._request("DELETE", f"/locations/{id}")

    # Search, suggestions, trends, balances

    async def search(self, query: str, entities: list[str] | None = None) -> Any:
        params: dict[str, Any] = {"query": query}
        if entities:
            params["entities[]"] = entities
        return await self._request("GET", "/search", params=params)

    async def suggest_field_values(self, entity: str, field: str, value: str) -> Any:
        return await self._request(
            "GET",
            "/suggest",
            params={"entity": entity, "field": field, "value": value},
        )

    async def get_sales_trends(
        self, start_date: str, end_date: str, bucket_size: str
    ) -> Any:
        return await self._request(
            "GET",
            "/trends/sales",
            params={
                "start_date": start_date,
                "end_date": end_date,
                "bucket_size": bucket_size,
            },
        )

    async def list_balance_entries(self, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", "/balance-entries", params=params)

    # Aggregates

    async def calculate_inventory_value(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Total tag-price value of matching items.

        Filters are sent to the API except ``date_from``/``date_to``, which
        the API does not support and are applied to ``created`` here.
        ``group_by`` adds a breakdown by category, location, account,
        inventory_type or status.
        """
        filters = _compact(params)
        group_by = filters.pop("group_by", None)
        date_from = filters.pop("date_from", None)
        date_to = filters.pop("date_to", None)

        items = await self._drain(self.list_items, filters)
        items = [item for item in items if _within_dates(item, date_from, date_to)]

        total_value = 0
        total_items = 0
        breakdown: dict[str, dict[str, int]] = defaultdict(
            lambda: {"value": 0, "count": 0}
        )
        for item in items:
            quantity = item.get("quantity") or 1
            value = (item.get("tag_price") or 0) * quantity
            total_value += value
            total_items += quantity
            if group_by:
                key = item.get(group_by) or _INVENTORY_GROUP_DEFAULTS.get(group_by, "all")
                breakdown[key]["value"] += value
                breakdown[key]["count"] += quantity

        applied = {**filters, "date_from": date_from, "date_to": date_to}
        return {
            "total_value": total_value,
            "total_items": total_items,
            "average_value": round(total_value / total_items) if total_items else 0,
            "breakdown": dict(breakdown) if group_by else None,
            "filters_applied": [f"{k}={v}" for k, v in _compact(applied).items()],
        }

    async def calculate_sales_totals(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Revenue and tax totals over matching sales.

        ``group_by`` is one of status, location or date; dates bucket by
        ``date_interval`` (day, week or month).
        """
        filters = _compact(params)
        group_by = filters.pop("group_by", None)
        date_interval = filters.pop("date_interval", None)
        date_from = filters.pop("date_from", None)
        date_to = filters.pop("date_to", None)

        sales = await self._drain(self.list_sales, filters)
        sales = [sale for sale in sales if _within_dates(sale, date_from, date_to)]

        total_revenue = 0
        total_tax = 0
        breakdown: dict[str, dict[str, int]] = defaultdict(
            lambda: {"revenue": 0, "tax": 0, "count": 0}
        )
        for sale in sales:
            revenue = sale.get("total") or 0
            tax = sale.get("tax") or 0
            total_revenue += revenue
            total_tax += tax
            if group_by:
                if group_by == "status":
                    key = sale.get("status") or "unknown"
                elif group_by == "location":
                    key = sale.get("location") or "no_location"
                elif group_by == "date":
                    key = _date_bucket(sale["created"], date_interval)
                else:
                    key = "all"
                breakdown[key]["revenue"] += revenue
                breakdown[key]["tax"] += tax
                breakdown[key]["count"] += 1

        applied = {**filters, "date_from": date_from, "date_to": date_to}
        return {
            "total_revenue": total_revenue,
            "total_tax": total_tax,
            "total_sales": len(sales),
            "average_sale": round(total_revenue / len(sales)) if sales else 0,
            "breakdown": dict(breakdown) if group_by else None,
            "filters_applied": [f"{k}={v}" for k, v in _compact(applied).items()],
        }

    async def calculate_account_metrics(
        self,
        account_id: str,
        *,
        date_from: str | None = None,
        date_to: str | None = None,
        inventory_type: str | None = None,
    ) -> dict[str, Any]:
        """Inventory, sales revenue and commission for one consignor."""
        account = await self.get_account(account_id)

        item_filters = _compact({"account": account_id, "inventory_type": inventory_type})
        items = await self._drain(self.list_items, item_filters)
        items_by_id = {item["id"]: item for item in items}

        inventory_value = 0
        items_available = 0
        items_sold = 0
        for item in items:
            quantity = item.get("quantity") or 1
            if item.get("status") == "sold":
                items_sold += quantity
            elif item.get("status") == "available":
                inventory_value += (item.get("tag_price") or 0) * quantity
                items_available += quantity

        sales = await self._drain(self.list_sales, {})
        revenue = 0
        commission = 0
        for sale in sales:
            if sale.get("status") != "completed":
                continue
            if not _within_dates(sale, date_from, date_to):
                continue
            for line in sale.get("items") or []:
                item = items_by_id.get(line.get("item"))
                if item is None:
                    continue
                price = line.get("price") or 0
                revenue += price
                commission += round(price * (item.get("split") or 0))

        name = " ".join(
            part for part in (account.get("first_name"), account.get("last_name")) if part
        )
        applied = {
            "account_id": account_id,
            "date_from": date_from,
            "date_to": date_to,
            "inventory_type": inventory_type,
        }
        return {
            "account_id": account["id"],
            "account_name": name or account.get("company") or account.get("number"),
            "current_balance": account.get("balance"),
            "inventory_value": inventory_value,
            "items_available": items_available,
            "items_sold": items_sold,
            "total_sales_revenue": revenue,
            "commission_owed": commission,
            "filters_applied": [f"{k}={v}" for k, v in _compact(applied).items()],
        }
