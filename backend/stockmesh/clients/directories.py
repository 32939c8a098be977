from __future__ import annotations

from .base import ServiceClient, UpstreamNotFound, items_of


class WarehouseDirectory(ServiceClient):
    service_name = "warehouse-service"

    def get(self, warehouse_id: int) -> dict:
        return self._get(f"/api/warehouses/{warehouse_id}")


class BranchDirectory(ServiceClient):
    service_name = "branch-service"

    def list_for_warehouse(self, warehouse_id: int) -> list[dict]:
        # A 404 from the branch service means "no branches", not a failure.
        try:
            return items_of(self._get(f"/api/branches/warehouse/{warehouse_id}"))
        except UpstreamNotFound:
            return []


class CompanyClient(ServiceClient):
    service_name = "company-service"

    def create_replenish_request(self, company_id: int, *, warehouse_id: int, product_id: int, quantity: int) -> dict:
        return self._post(
            f"/api/company/{company_id}/replenish-requests",
            json={"warehouse_id": warehouse_id, "product_id": product_id, "quantity": quantity},
        )
