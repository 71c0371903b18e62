import pytest

from conftest import make_reference
from replenishment_engine.data import sample_reference_data
from replenishment_engine.models import (
    Forecast,
    InventoryBatch,
    Product,
    SafetyStockRule,
    ShippingRoute,
    TransferLine,
)
from replenishment_engine.snapshot import build_snapshot


def test_on_hand_sums_batches_and_in_transit_only_open_transfers():
    ref = make_reference(current_stock=40)
    ref.batches.append(InventoryBatch("P", "L", 15))
    ref.transfers = [
        TransferLine("P", "L", 60, status="in_transit"),
        TransferLine("P", "L", 10, status="pending"),
        TransferLine("P", "L", 99, status="received"),
    ]
    snapshot = build_snapshot(ref)
    assert snapshot.current_stock("P", "L") == 55
    assert snapshot.in_transit_qty("P", "L") == 70
    assert snapshot.current_stock("P", "NOWHERE") == 0


def test_only_active_and_enabled_records_participate():
    ref = make_reference()
    ref.products.append(Product("OLD", "SKU-OLD", "Old", is_active=False))
    ref.forecasts.append(Forecast("P", "WH", daily_rate=3.0, is_enabled=False))
    ref.safety_rules = [
        SafetyStockRule("P", "L", "units", 10, is_active=False),
    ]
    snapshot = build_snapshot(ref)
    assert [p.product_id for p in snapshot.products] == ["P"]
    assert snapshot.forecast("P", "WH") is None
    assert snapshot.safety_rule("P", "L") is None


def test_sinks_and_sources_split_by_kind():
    snapshot = build_snapshot(sample_reference_data())
    assert {loc.location_id for loc in snapshot.sinks} == {"FBA-US-EAST", "AWD-US"}
    assert {loc.location_id for loc in snapshot.sources} == {"WH-NJ", "3PL-CA"}


def test_source_stock_ranked_best_first():
    snapshot = build_snapshot(sample_reference_data())
    tea = snapshot.sources_for("P-TEA")
    assert [s.location_id for s in tea] == ["WH-NJ", "3PL-CA"]
    assert tea[0].available_qty == 900
    # sink stock never counts as a transfer source
    assert [s.location_id for s in snapshot.sources_for("P-RICE")] == []


def test_default_route_sums_legs():
    snapshot = build_snapshot(sample_reference_data())
    assert snapshot.default_route.route_id == "RT-SEA-DEFAULT"
    assert snapshot.route_transit_days == 31
    assert snapshot.route_method == "sea"


def test_inactive_default_route_falls_back():
    ref = make_reference(route_days=40)
    ref.routes = [ShippingRoute("R1", "Default sea", ["LEG-1"], is_default=True, is_active=False)]
    snapshot = build_snapshot(ref)
    assert snapshot.default_route is None
    assert snapshot.route_transit_days == 14
    assert snapshot.route_method == "sea"


def test_snapshot_lookups_are_read_only():
    snapshot = build_snapshot(make_reference())
    with pytest.raises(TypeError):
        snapshot.on_hand[("P", "L")] = 1
    with pytest.raises(AttributeError):
        snapshot.route_transit_days = 3


def test_empty_snapshot():
    ref = make_reference()
    ref.products = []
    assert build_snapshot(ref).is_empty
