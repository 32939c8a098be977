# Overview: Typed clients for sibling services, built once per app from Config.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .base import (
    ServiceClient,
    ServiceUnavailable,
    UpstreamConflict,
    UpstreamError,
    UpstreamNotFound,
)
from .directories import BranchDirectory, CompanyClient, WarehouseDirectory
from .products import ProductLookup
from .stock import StockClient

EXTENSION_KEY = "stockmesh.clients"


@dataclass
class ServiceClients:
    """
    The sibling capabilities an orchestrating service depends on.

    Tests swap any member for a local fake with the same methods.
    """
    products: ProductLookup
    stock: StockClient
    warehouses: WarehouseDirectory
    branches: BranchDirectory
    companies: CompanyClient


def build_clients(config) -> ServiceClients:
    timeout = float(config["SERVICE_TIMEOUT_SECONDS"])
    return ServiceClients(
        products=ProductLookup(config["PRODUCT_SERVICE_URL"], timeout=timeout),
        stock=StockClient(config["STOCK_SERVICE_URL"], timeout=timeout),
        warehouses=WarehouseDirectory(config["WAREHOUSE_SERVICE_URL"], timeout=timeout),
        branches=BranchDirectory(config["BRANCH_SERVICE_URL"], timeout=timeout),
        companies=CompanyClient(config["COMPANY_SERVICE_URL"], timeout=timeout),
    )


def get_clients() -> ServiceClients:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "EXTENSION_KEY",
    "ServiceClients",
    "build_clients",
    "get_clients",
    "ServiceClient",
    "ProductLookup",
    "StockClient",
    "WarehouseDirectory",
    "BranchDirectory",
    "CompanyClient",
    "UpstreamError",
    "UpstreamNotFound",
    "UpstreamConflict",
    "ServiceUnavailable",
]
