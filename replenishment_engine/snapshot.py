from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .config import FALLBACK_ROUTE_METHOD, FALLBACK_ROUTE_TRANSIT_DAYS
from .models import (
    IN_TRANSIT_STATUSES,
    Forecast,
    Location,
    Product,
    ReferenceData,
    SafetyStockRule,
    ShippingRoute,
    SourceLocation,
    Supplier,
)

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]  # (product_id, location_id)


@dataclass(frozen=True)
class Snapshot:
    """Read-only lookups for one engine run.

    Built once per run and shared by every per-pair computation; nothing in
    here is mutated after :func:`build_snapshot` returns.
    """

    sinks: Tuple[Location, ...]
    sources: Tuple[Location, ...]
    products: Tuple[Product, ...]
    on_hand: Mapping[PairKey, int]
    in_transit: Mapping[PairKey, int]
    forecasts: Mapping[PairKey, Forecast]
    safety_rules: Mapping[PairKey, SafetyStockRule]
    suppliers: Tuple[Supplier, ...]
    source_stock: Mapping[str, Tuple[SourceLocation, ...]]  # product_id -> best first
    default_route: Optional[ShippingRoute] = None
    route_transit_days: int = FALLBACK_ROUTE_TRANSIT_DAYS
    route_method: str = FALLBACK_ROUTE_METHOD

    @property
    def is_empty(self) -> bool:
        return not self.sinks or not self.products

    def current_stock(self, product_id: str, location_id: str) -> int:
        return self.on_hand.get((product_id, location_id), 0)

    def in_transit_qty(self, product_id: str, location_id: str) -> int:
        return self.in_transit.get((product_id, location_id), 0)

    def forecast(self, product_id: str, location_id: str) -> Optional[Forecast]:
        return self.forecasts.get((product_id, location_id))

    def safety_rule(self, product_id: str, location_id: str) -> Optional[SafetyStockRule]:
        return self.safety_rules.get((product_id, location_id))

    def sources_for(self, product_id: str) -> Tuple[SourceLocation, ...]:
        return self.source_stock.get(product_id, ())


def _sum_by_pair(rows) -> Dict[PairKey, int]:
    totals: Dict[PairKey, int] = defaultdict(int)
    for key, qty in rows:
        totals[key] += max(0, qty)
    return dict(totals)


def _resolve_default_route(ref: ReferenceData) -> Tuple[Optional[ShippingRoute], int, str]:
    route = next((r for r in ref.routes if r.is_default and r.is_active), None)
    if route is None:
        logger.info(
            "No active default shipping route; assuming %d days by %s",
            FALLBACK_ROUTE_TRANSIT_DAYS,
            FALLBACK_ROUTE_METHOD,
        )
        return None, FALLBACK_ROUTE_TRANSIT_DAYS, FALLBACK_ROUTE_METHOD
    legs_by_id = {leg.leg_id: leg for leg in ref.route_legs}
    legs = [legs_by_id[i] for i in route.leg_ids if i in legs_by_id]
    if not legs:
        return route, FALLBACK_ROUTE_TRANSIT_DAYS, FALLBACK_ROUTE_METHOD
    transit_days = sum(leg.transit_days_typical for leg in legs)
    method = legs[0].method or FALLBACK_ROUTE_METHOD
    return route, transit_days, method


def build_snapshot(ref: ReferenceData) -> Snapshot:
    sinks = tuple(loc for loc in ref.locations if loc.is_sink)
    sources = tuple(loc for loc in ref.locations if loc.is_source)
    products = tuple(p for p in ref.products if p.is_active)

    on_hand = _sum_by_pair(((b.product_id, b.location_id), b.quantity) for b in ref.batches)
    in_transit = _sum_by_pair(
        ((t.product_id, t.to_location_id), t.quantity)
        for t in ref.transfers
        if t.status in IN_TRANSIT_STATUSES
    )

    forecasts = {(f.product_id, f.location_id): f for f in ref.forecasts if f.is_enabled}
    safety_rules = {(r.product_id, r.location_id): r for r in ref.safety_rules if r.is_active}

    source_stock: Dict[str, List[SourceLocation]] = defaultdict(list)
    for loc in sources:
        for product in products:
            qty = on_hand.get((product.product_id, loc.location_id), 0)
            if qty > 0:
                source_stock[product.product_id].append(
                    SourceLocation(location_id=loc.location_id, name=loc.name, available_qty=qty)
                )
    ranked = {
        pid: tuple(sorted(cands, key=lambda c: c.available_qty, reverse=True))
        for pid, cands in source_stock.items()
    }

    route, route_days, route_method = _resolve_default_route(ref)

    snapshot = Snapshot(
        sinks=sinks,
        sources=sources,
        products=products,
        on_hand=MappingProxyType(on_hand),
        in_transit=MappingProxyType(in_transit),
        forecasts=MappingProxyType(forecasts),
        safety_rules=MappingProxyType(safety_rules),
        suppliers=tuple(ref.suppliers),
        source_stock=MappingProxyType(ranked),
        default_route=route,
        route_transit_days=route_days,
        route_method=route_method,
    )
    logger.info(
        "Snapshot: %d sink locations, %d source locations, %d active products, %d forecasts, %d suppliers",
        len(sinks),
        len(sources),
        len(products),
        len(forecasts),
        len(snapshot.suppliers),
    )
    return snapshot
