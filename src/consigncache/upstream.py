"""Protocol for the upstream back-office API the cache sits in front of."""

from typing import Any, Protocol, runtime_checkable

from consigncache.types import Entity, Page


@runtime_checkable
class UpstreamClient(Protocol):
    """Async upstream API interface.

    List methods return one page at a time; pass ``cursor`` from
    ``Page.next_cursor`` to get the next one.
    """

    async def list_items(self, params: dict[str, Any] | None = None) -> Page[Entity]: ...

    async def list_sales(self, params: dict[str, Any] | None = None) -> Page[Entity]: ...

    async def list_accounts(self, params: dict[str, Any] | None = None) -> Page[Entity]: ...

    async def list_categories(
        self, params: dict[str, Any] | None = None
    ) -> Page[Entity]: ...

    async def list_locations(
        self, params: dict[str, Any] | None = None
    ) -> Page[Entity]: ...

    async def list_batches(self, params: dict[str, Any] | None = None) -> Page[Entity]: ...

    async def get_item(self, id: str) -> Entity: ...

    async def get_sale(self, id: str) -> Entity: ...

    async def get_account(self, id: str) -> Entity: ...

    async def get_category(self, id: str) -> Entity: ...

    async def get_location(self, id: str) -> Entity: ...

    async def get_batch(self, id: str) -> Entity: ...

    async def create_item(self, data: dict[str, Any]) -> Entity: ...

    async def update_item(self, id: str, data: dict[str, Any]) -> Entity: ...

    async def delete_item(self, id: str) -> None: ...

    async def restore_item(self, id: str) -> Entity: ...

    async def bulk_edit_items(self, data: dict[str, Any]) -> Any: ...

    async def update_item_statuses(self, item_ids: list[str], status: str) -> Any: ...

    async def get_item_stats(self) -> Any: ...

    async def create_sale(self, data: dict[str, Any]) -> Entity: ...

    async def update_sale(self, id: str, data: dict[str, Any]) -> Entity: ...

    async def void_sale(self, id: str) -> Entity: ...

    async def refund_sale(self, id: str, data: dict[str, Any] | None = None) -> Entity: ...

    async def create_account(self, data: dict[str, Any]) -> Entity: ...

    async def update_account(self, id: str, data: dict[str, Any]) -> Entity: ...

    async def delete_account(self, id: str) -> None: ...

    async def get_account_stats(self, id: str) -> Any: ...

    async def create_category(self, data: dict[str, Any]) -> Entity: ...

    async def update_category(self, id: str, data: dict[str, Any]) -> Entity: ...

    async def delete_category(self, id: str) -> None: ...

    async def create_location(self, data: dict[str, Any]) -> Entity: ...

    async def update_location(self, id: str, data: dict[str, Any]) -> Entity: ...

    async def delete_location(self, id: str) -> None: ...

    async def create_batch(self, data: dict[str, Any]) -> Entity: ...

    async def update_batch(self, id: str, data: dict[str, Any]) -> Entity: ...

    async def update_batch_status(self, id: str, status: str) -> Entity: ...

    async def search(self, query: str, entities: list[str] | None = None) -> Any: ...

    async def suggest_field_values(self, entity: str, field: str, value: str) -> Any: ...

    async def get_sales_trends(
        self, start_date: str, end_date: str, bucket_size: str
    ) -> Any: ...

    async def list_balance_entries(self, params: dict[str, Any] | None = None) -> Any: ...

    async def calculate_inventory_value(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...

    async def calculate_sales_totals(
        self, params: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...

    async def calculate_account_metrics(
        self,
        account_id: str,
        *,
        date_from: str | None = None,
        date_to: str | None = None,
        inventory_type: str | None = None,
    ) -> dict[str, Any]: ...
