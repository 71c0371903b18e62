"""
Pytest configuration and shared fixtures.
Reference data builders, an in-memory store and an authenticated API client.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from replenishment_engine.app import create_app
from replenishment_engine.config import DEFAULT_SETTINGS, AppConfig
from replenishment_engine.models import (
    Forecast,
    InventoryBatch,
    Location,
    Product,
    ReferenceData,
    RouteLeg,
    ShippingRoute,
    Supplier,
    TransferLine,
)
from replenishment_engine.store import SuggestionStore

TODAY = date(2026, 3, 10)
API_TOKEN = "test-token"


def make_reference(
    current_stock=100,
    daily_rate=10.0,
    warehouse_qty=0,
    lead_time_days=30,
    route_days=14,
    in_transit=0,
):
    """
    The single-pair scenario used throughout:
    - product P at sink location L (amazon-fba)
    - optional warehouse stock at WH
    - one supplier, default sea route
    """
    ref = ReferenceData(
        locations=[
            Location("L", "Amazon FBA East", "amazon-fba"),
            Location("WH", "Main Warehouse", "warehouse"),
        ],
        products=[Product("P", "SKU-P", "Product P")],
        batches=[InventoryBatch("P", "L", current_stock)],
        forecasts=[Forecast("P", "L", daily_rate=daily_rate)],
        suppliers=[Supplier("SUP-1", "Supplier One", lead_time_days)],
        routes=[ShippingRoute("R1", "Default sea", leg_ids=["LEG-1"], is_default=True)],
        route_legs=[RouteLeg("LEG-1", route_days, "sea")],
    )
    if warehouse_qty:
        ref.batches.append(InventoryBatch("P", "WH", warehouse_qty))
    if in_transit:
        ref.transfers.append(TransferLine("P", "L", in_transit, status="in_transit"))
    return ref


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def settings():
    return DEFAULT_SETTINGS


@pytest.fixture
def store():
    s = SuggestionStore.from_url("sqlite://")
    s.create_all()
    return s


@pytest.fixture
def seeded_store(store):
    store.replace_reference_data(make_reference())
    return store


@pytest.fixture
def app_config():
    return AppConfig(api_tokens=frozenset({API_TOKEN}), seed_sample_data=False)


@pytest.fixture
def client(app_config, seeded_store):
    app = create_app(config=app_config, store=seeded_store)
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {API_TOKEN}"})
        yield c


@pytest.fixture
def anonymous_client(app_config, seeded_store):
    app = create_app(config=app_config, store=seeded_store)
    with TestClient(app) as c:
        yield c
