from __future__ import annotations

from .base import ServiceClient, items_of


class StockClient(ServiceClient):
    """Stock records and stock requests held by the stock service."""

    service_name = "stock-service"

    def list_for_branch(self, branch_id: int) -> list[dict]:
        return items_of(self._get(f"/api/stocks/branch/{branch_id}"))

    def list_for_branch_product(self, branch_id: int, product_id: int) -> list[dict]:
        return items_of(self._get(f"/api/stocks/branch/{branch_id}/product/{product_id}"))

    def list_for_warehouse(self, warehouse_id: int) -> list[dict]:
        return items_of(self._get(f"/api/stocks/warehouse/{warehouse_id}"))

    def set_quantity(self, stock_id: int, quantity: int, *, expected_version: int | None = None) -> dict:
        """
        Write a new quantity.

        With expected_version the stock service only applies the write if the
        record is still at that version, otherwise it answers 409
        (UpstreamConflict).
        """
        body = {"quantity": quantity}
        if expected_version is not None:
            body["version_id"] = expected_version
        return self._put(f"/api/stocks/{stock_id}", json=body)

    def create_stock_request(self, *, warehouse_id: int, branch_id: int, product_id: int, quantity: int) -> dict:
        return self._post(
            "/api/stocks/stock-requests",
            json={
                "warehouse_id": warehouse_id,
                "branch_id": branch_id,
                "product_id": product_id,
                "quantity": quantity,
            },
        )

    def approve_stock_request(self, request_id: int) -> dict:
        return self._post(f"/api/stocks/stock-requests/{request_id}/approve")

    def reject_stock_request(self, request_id: int) -> dict:
        return self._post(f"/api/stocks/stock-requests/{request_id}/reject")
