from __future__ import annotations

from .base import ServiceClient, UpstreamNotFound


class ProductLookup(ServiceClient):
    """Read-only view of the product catalog service."""

    service_name = "product-service"

    def fetch(self, product_id: int) -> dict:
        """Full product record. Raises UpstreamNotFound for unknown ids."""
        return self._get(f"/api/products/{product_id}")

    def exists(self, product_id: int) -> bool:
        try:
            self.fetch(product_id)
        except UpstreamNotFound:
            return False
        return True
