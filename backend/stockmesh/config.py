# backend/stockmesh/config.py
from __future__ import annotations
import os


ALL_SERVICES = ("identity", "products", "branches", "warehouses", "stocks")


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """
    Process-wide configuration, read once when the app is created.

    Every deployment runs the same code; STOCKMESH_SERVICES selects which
    blueprints a given process serves. Sibling base URLs are only consulted
    when the clients bundle is built in create_app().
    """
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Signing secret for bearer tokens. Left unset on purpose: login refuses
    # to issue tokens without it.
    TOKEN_SECRET = os.environ.get("TOKEN_SECRET")
    TOKEN_MAX_AGE_SECONDS = int(os.environ.get("TOKEN_MAX_AGE_SECONDS", str(24 * 60 * 60)))

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///stockmesh.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    ENABLED_SERVICES = _env_list("STOCKMESH_SERVICES", ",".join(ALL_SERVICES))

    PRODUCT_SERVICE_URL = os.environ.get("PRODUCT_SERVICE_URL", "http://localhost:5002")
    WAREHOUSE_SERVICE_URL = os.environ.get("WAREHOUSE_SERVICE_URL", "http://localhost:5003")
    BRANCH_SERVICE_URL = os.environ.get("BRANCH_SERVICE_URL", "http://localhost:5004")
    STOCK_SERVICE_URL = os.environ.get("STOCK_SERVICE_URL", "http://localhost:5005")
    COMPANY_SERVICE_URL = os.environ.get("COMPANY_SERVICE_URL", "http://localhost:5001")
    SERVICE_TIMEOUT_SECONDS = float(os.environ.get("SERVICE_TIMEOUT_SECONDS", "10"))

    STOCK_ADJUST_ATTEMPTS = int(os.environ.get("STOCK_ADJUST_ATTEMPTS", "5"))

    # False: approve/reject on an already decided request is a 409.
    RESTOCK_ALLOW_TERMINAL_TRANSITIONS = _env_bool("RESTOCK_ALLOW_TERMINAL_TRANSITIONS", False)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _env_list(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )
