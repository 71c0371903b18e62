from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any, Iterable, List, Mapping, Optional

from .config import DEFAULT_SUPPLIER_LEAD_TIME_DAYS
from .models import (
    Forecast,
    InventoryBatch,
    Location,
    Product,
    RouteLeg,
    SafetyStockRule,
    ShippingRoute,
    Supplier,
    TransferLine,
)

logger = logging.getLogger(__name__)

# Malformed numbers fall back to a default instead of aborting the batch.


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if out != out or out in (float("inf"), float("-inf")):
        return default
    return out


def to_int(value: Any, default: int = 0) -> int:
    out = to_float(value, float(default))
    return int(out)


def to_bool(value: Any, default: bool = True) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "y", "t", "on")


def to_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    out = to_float(value, -1.0)
    return out if out >= 0 else None


def to_list(value: Any) -> List[Any]:
    """Lists may arrive as JSON arrays, JSON strings or ';'-separated CSV cells."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    text = str(value).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return [part.strip() for part in text.split(";") if part.strip()]


def _multipliers(value: Any) -> List[float]:
    return [to_float(v, 1.0) for v in to_list(value)]


def read_records(data: bytes | None) -> List[dict]:
    if not data:
        return []
    text = data.decode("utf-8-sig")
    if text.lstrip().startswith(("[", "{")):
        payload = json.loads(text)
        if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
            raise ValueError("JSON upload must be an array of objects")
        return [dict(item) for item in payload]
    reader = csv.DictReader(io.StringIO(text))
    return [dict(row) for row in reader]


def locations_from_records(records: Iterable[Mapping]) -> List[Location]:
    out = []
    for item in records:
        out.append(
            Location(
                location_id=str(item["location_id"]),
                name=item.get("name") or str(item["location_id"]),
                kind=(item.get("kind") or "warehouse").strip().lower(),
            )
        )
    return out


def products_from_records(records: Iterable[Mapping]) -> List[Product]:
    out = []
    for item in records:
        out.append(
            Product(
                product_id=str(item["product_id"]),
                sku=item.get("sku") or str(item["product_id"]),
                name=item.get("name") or "",
                is_active=to_bool(item.get("is_active"), True),
            )
        )
    return out


def batches_from_records(records: Iterable[Mapping]) -> List[InventoryBatch]:
    out = []
    for item in records:
        out.append(
            InventoryBatch(
                product_id=str(item["product_id"]),
                location_id=str(item["location_id"]),
                quantity=max(0, to_int(item.get("quantity"))),
            )
        )
    return out


def transfers_from_records(records: Iterable[Mapping]) -> List[TransferLine]:
    out = []
    for item in records:
        out.append(
            TransferLine(
                product_id=str(item["product_id"]),
                to_location_id=str(item["to_location_id"]),
                quantity=max(0, to_int(item.get("quantity"))),
                status=(item.get("status") or "pending").strip().lower(),
            )
        )
    return out


def forecasts_from_records(records: Iterable[Mapping]) -> List[Forecast]:
    out = []
    for item in records:
        out.append(
            Forecast(
                product_id=str(item["product_id"]),
                location_id=str(item["location_id"]),
                daily_rate=max(0.0, to_float(item.get("daily_rate"))),
                seasonal_multipliers=_multipliers(item.get("seasonal_multipliers")),
                trend_rate=to_float(item.get("trend_rate")),
                manual_override=to_optional_float(item.get("manual_override")),
                is_enabled=to_bool(item.get("is_enabled"), True),
            )
        )
    return out


def safety_rules_from_records(records: Iterable[Mapping]) -> List[SafetyStockRule]:
    out = []
    for item in records:
        threshold_type = (item.get("threshold_type") or "days-of-cover").strip().lower()
        value = to_float(item.get("threshold_value"), -1.0)
        if value < 0:
            logger.warning(
                "Ignoring safety stock rule for %s@%s: bad threshold_value %r",
                item.get("product_id"),
                item.get("location_id"),
                item.get("threshold_value"),
            )
            continue
        out.append(
            SafetyStockRule(
                product_id=str(item["product_id"]),
                location_id=str(item["location_id"]),
                threshold_type=threshold_type,
                threshold_value=value,
                is_active=to_bool(item.get("is_active"), True),
            )
        )
    return out


def suppliers_from_records(records: Iterable[Mapping]) -> List[Supplier]:
    out = []
    for item in records:
        # zero counts as unset
        lead_time = to_int(item.get("lead_time_days"), 0)
        out.append(
            Supplier(
                supplier_id=str(item["supplier_id"]),
                name=item.get("name") or str(item["supplier_id"]),
                lead_time_days=lead_time if lead_time > 0 else DEFAULT_SUPPLIER_LEAD_TIME_DAYS,
            )
        )
    return out


def routes_from_records(records: Iterable[Mapping]) -> List[ShippingRoute]:
    out = []
    for item in records:
        out.append(
            ShippingRoute(
                route_id=str(item["route_id"]),
                name=item.get("name") or str(item["route_id"]),
                leg_ids=[str(v) for v in to_list(item.get("leg_ids"))],
                is_default=to_bool(item.get("is_default"), False),
                is_active=to_bool(item.get("is_active"), True),
            )
        )
    return out


def route_legs_from_records(records: Iterable[Mapping]) -> List[RouteLeg]:
    out = []
    for item in records:
        out.append(
            RouteLeg(
                leg_id=str(item["leg_id"]),
                transit_days_typical=max(0, to_int(item.get("transit_days_typical"))),
                method=(item.get("method") or "").strip().lower(),
            )
        )
    return out


# Upload kind -> record parser; keys double as store table kinds.
PARSERS = {
    "locations": locations_from_records,
    "products": products_from_records,
    "batches": batches_from_records,
    "transfers": transfers_from_records,
    "forecasts": forecasts_from_records,
    "safety_rules": safety_rules_from_records,
    "suppliers": suppliers_from_records,
    "routes": routes_from_records,
    "route_legs": route_legs_from_records,
}


def load(kind: str, data: bytes | None) -> list:
    """Parse an uploaded JSON or CSV file of the given kind."""
    return PARSERS[kind](read_records(data))
