from __future__ import annotations

from .models import (
    Forecast,
    InventoryBatch,
    Location,
    Product,
    ReferenceData,
    RouteLeg,
    SafetyStockRule,
    ShippingRoute,
    Supplier,
    TransferLine,
)


def sample_locations() -> list[Location]:
    return [
        Location(location_id="FBA-US-EAST", name="Amazon FBA US East", kind="amazon-fba"),
        Location(location_id="AWD-US", name="Amazon AWD US", kind="amazon-awd"),
        Location(location_id="WH-NJ", name="New Jersey Warehouse", kind="warehouse"),
        Location(location_id="3PL-CA", name="West Coast 3PL", kind="3pl"),
    ]


def sample_products() -> list[Product]:
    return [
        Product(product_id="P-TEA", sku="SKU-RED-TEA", name="Red Label Tea 500g"),
        Product(product_id="P-MASALA", sku="SKU-MASALA", name="Garam Masala 200g"),
        Product(product_id="P-RICE", sku="SKU-RICE", name="Basmati Rice 5kg"),
        Product(product_id="P-OLD", sku="SKU-OLD", name="Discontinued Sampler", is_active=False),
    ]


def sample_batches() -> list[InventoryBatch]:
    return [
        InventoryBatch("P-TEA", "FBA-US-EAST", quantity=40),
        InventoryBatch("P-TEA", "FBA-US-EAST", quantity=15),
        InventoryBatch("P-TEA", "WH-NJ", quantity=900),
        InventoryBatch("P-TEA", "3PL-CA", quantity=200),
        InventoryBatch("P-MASALA", "FBA-US-EAST", quantity=120),
        InventoryBatch("P-MASALA", "WH-NJ", quantity=30),
        InventoryBatch("P-RICE", "AWD-US", quantity=300),
        InventoryBatch("P-RICE", "FBA-US-EAST", quantity=2000),
    ]


def sample_transfers() -> list[TransferLine]:
    return [
        TransferLine("P-TEA", "FBA-US-EAST", quantity=60, status="in_transit"),
        TransferLine("P-MASALA", "FBA-US-EAST", quantity=50, status="received"),
    ]


def sample_forecasts() -> list[Forecast]:
    # Tea sells more in the winter months
    tea_season = [1.3, 1.2, 1.0, 0.9, 0.8, 0.8, 0.8, 0.9, 1.0, 1.1, 1.3, 1.4]
    return [
        Forecast("P-TEA", "FBA-US-EAST", daily_rate=12.0, seasonal_multipliers=tea_season),
        Forecast("P-MASALA", "FBA-US-EAST", daily_rate=6.0, manual_override=8.0),
        Forecast("P-RICE", "AWD-US", daily_rate=25.0),
        Forecast("P-RICE", "FBA-US-EAST", daily_rate=5.0, is_enabled=False),
    ]


def sample_safety_rules() -> list[SafetyStockRule]:
    return [
        SafetyStockRule("P-MASALA", "FBA-US-EAST", threshold_type="units", threshold_value=100),
        SafetyStockRule("P-RICE", "AWD-US", threshold_type="days-of-cover", threshold_value=21),
    ]


def sample_suppliers() -> list[Supplier]:
    return [
        Supplier(supplier_id="SUP-RED", name="Red Label Supplier", lead_time_days=30),
        Supplier(supplier_id="SUP-GROC", name="Grocer Partner", lead_time_days=21),
    ]


def sample_routes() -> list[ShippingRoute]:
    return [
        ShippingRoute(
            route_id="RT-SEA-DEFAULT",
            name="Nhava Sheva to Newark (sea)",
            leg_ids=["LEG-PORT", "LEG-DRAY"],
            is_default=True,
        ),
    ]


def sample_route_legs() -> list[RouteLeg]:
    return [
        RouteLeg(leg_id="LEG-PORT", transit_days_typical=28, method="sea"),
        RouteLeg(leg_id="LEG-DRAY", transit_days_typical=3, method="ground"),
    ]


def sample_reference_data() -> ReferenceData:
    return ReferenceData(
        locations=sample_locations(),
        products=sample_products(),
        batches=sample_batches(),
        transfers=sample_transfers(),
        forecasts=sample_forecasts(),
        safety_rules=sample_safety_rules(),
        suppliers=sample_suppliers(),
        routes=sample_routes(),
        route_legs=sample_route_legs(),
    )
