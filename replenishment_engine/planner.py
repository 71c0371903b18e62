from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import List, Optional, Sequence

from .config import MIN_ORDER_QTY, SKIP_WINDOW_FACTOR
from .models import (
    DAYS_UNLIMITED,
    EngineSettings,
    Forecast,
    Location,
    Product,
    ReasoningItem,
    SafetyStockRule,
    Sourcing,
    Suggestion,
    UrgencyThresholds,
)
from .policies import FirstSupplierResolver, FixedTransitEstimator, SupplierResolver, TransitEstimator
from .snapshot import Snapshot

logger = logging.getLogger(__name__)


def seasonal_multiplier(multipliers: Optional[Sequence[float]], month: int) -> float:
    """Multiplier for a 1-based calendar month; 1.0 unless a full 12-month array is present."""
    if not multipliers or len(multipliers) != 12:
        return 1.0
    return multipliers[month - 1] or 1.0


def effective_daily_rate(forecast: Optional[Forecast], on: date) -> float:
    if forecast is None or not forecast.is_enabled:
        return 0.0
    rate = forecast.base_rate * seasonal_multiplier(forecast.seasonal_multipliers, on.month)
    return max(0.0, rate)


def days_of_stock_remaining(
    current_stock: int,
    in_transit: int,
    daily_rate: float,
    include_in_transit: bool = True,
) -> int:
    if daily_rate <= 0:
        return DAYS_UNLIMITED
    total = current_stock + (in_transit if include_in_transit else 0)
    return math.floor(total / daily_rate)


def stockout_date(days_remaining: int, today: date) -> Optional[date]:
    if days_remaining >= DAYS_UNLIMITED:
        return None
    return today + timedelta(days=days_remaining)


def safety_stock_threshold(
    rule: Optional[SafetyStockRule],
    daily_rate: float,
    default_safety_days: int,
) -> int:
    # Always rounded up, never below zero.
    if rule is None:
        return max(0, math.ceil(daily_rate * default_safety_days))
    if rule.threshold_type == "units":
        return max(0, math.ceil(rule.threshold_value))
    return max(0, math.ceil(daily_rate * rule.threshold_value))


def classify_urgency(days_remaining: int, thresholds: UrgencyThresholds) -> str:
    if days_remaining <= thresholds.critical_days:
        return "critical"
    if days_remaining <= thresholds.warning_days:
        return "warning"
    if days_remaining <= thresholds.planned_days:
        return "planned"
    return "monitor"


def target_coverage_days(rule: Optional[SafetyStockRule], settings: EngineSettings) -> float:
    """Coverage window the replenishment should restore.

    A days-of-cover rule contributes its own day count; a units rule has no
    day equivalent, so the global default applies as it does with no rule.
    """
    if rule is not None and rule.threshold_type == "days-of-cover":
        safety_days = rule.threshold_value
    else:
        safety_days = settings.default_safety_stock_days
    return max(settings.thresholds.planned_days, safety_days)


def recommended_qty(
    daily_rate: float,
    coverage_days: float,
    current_stock: int,
    in_transit: int,
    min_order_qty: int = MIN_ORDER_QTY,
) -> int:
    """Whole lots needed to reach the coverage target; never less than one lot."""
    lot = max(1, int(min_order_qty))
    target_stock = math.ceil(daily_rate * coverage_days)
    needed = target_stock - current_stock - in_transit
    return max(lot, math.ceil(needed / lot) * lot)


def resolve_sourcing(
    product: Product,
    destination: Location,
    qty: int,
    snapshot: Snapshot,
    supplier_resolver: SupplierResolver,
    transit_estimator: TransitEstimator,
) -> Sourcing:
    sources = snapshot.sources_for(product.product_id)
    best = sources[0] if sources else None

    if best is not None and best.available_qty >= qty:
        days = transit_estimator.transfer_days(best, destination)
        return Sourcing(
            type="transfer",
            transit_days=days,
            best_source=best,
            route_transit_days=days,
        )

    supplier = supplier_resolver.resolve(product, snapshot.suppliers)
    lead_time = supplier.lead_time_days if supplier else 0
    return Sourcing(
        type="purchase-order",
        transit_days=snapshot.route_transit_days + lead_time,
        best_source=best,
        supplier=supplier,
        route=snapshot.default_route,
        route_method=snapshot.route_method,
        route_transit_days=snapshot.route_transit_days,
    )


def build_reasoning(
    current_stock: int,
    in_transit: int,
    daily_rate: float,
    days_remaining: int,
    thresholds: UrgencyThresholds,
    safety_threshold: int,
    qty: int,
    sourcing: Sourcing,
) -> List[ReasoningItem]:
    items = [
        ReasoningItem("calculation", f"Current stock: {current_stock:,} units", current_stock),
    ]
    if in_transit > 0:
        items.append(ReasoningItem("info", f"In transit: {in_transit:,} units", in_transit))
    items.append(ReasoningItem("calculation", f"Daily sales rate: {daily_rate:.1f} units/day", daily_rate))
    shown = "Unlimited" if days_remaining >= DAYS_UNLIMITED else days_remaining
    items.append(ReasoningItem("calculation", f"Days of stock remaining: {shown}", days_remaining))

    if days_remaining <= thresholds.critical_days:
        items.append(ReasoningItem("warning", f"CRITICAL: Stock will run out in {days_remaining} days"))
    elif days_remaining <= thresholds.warning_days:
        items.append(ReasoningItem("warning", f"WARNING: Stock below {thresholds.warning_days}-day threshold"))

    items.append(
        ReasoningItem("calculation", f"Safety stock threshold: {safety_threshold:,} units", safety_threshold)
    )
    items.append(ReasoningItem("info", f"Recommended replenishment: {qty:,} units", qty))

    best = sourcing.best_source
    if sourcing.type == "transfer":
        items.append(ReasoningItem("info", f"Transfer from {best.name} ({best.available_qty:,} available)"))
        return items

    supplier = sourcing.supplier
    if supplier is not None:
        items.append(
            ReasoningItem("info", f"Purchase from {supplier.name} ({supplier.lead_time_days} day lead time)")
        )
    if best is not None:
        items.append(ReasoningItem("info", f"Warehouse stock insufficient: {best.available_qty:,} available"))
    else:
        items.append(ReasoningItem("info", "No warehouse stock available - purchase order required"))
    return items


def plan_pair(
    product: Product,
    location: Location,
    snapshot: Snapshot,
    settings: EngineSettings,
    today: date,
    supplier_resolver: SupplierResolver,
    transit_estimator: TransitEstimator,
    min_order_qty: int = MIN_ORDER_QTY,
) -> Optional[Suggestion]:
    """Zero or one suggestion for a (product, sink location) pair."""
    pid, lid = product.product_id, location.location_id
    current = snapshot.current_stock(pid, lid)
    in_transit = snapshot.in_transit_qty(pid, lid)

    rate = effective_daily_rate(snapshot.forecast(pid, lid), today)
    if rate <= 0:
        # no demand, nothing to replenish
        return None

    days = days_of_stock_remaining(current, in_transit, rate, settings.include_in_transit)
    thresholds = settings.thresholds
    if days > thresholds.planned_days * SKIP_WINDOW_FACTOR:
        logger.debug("%s@%s healthy: %d days of stock", product.sku, lid, days)
        return None

    urgency = classify_urgency(days, thresholds)
    rule = snapshot.safety_rule(pid, lid)
    safety = safety_stock_threshold(rule, rate, settings.default_safety_stock_days)
    coverage = target_coverage_days(rule, settings)
    qty = recommended_qty(rate, coverage, current, in_transit, min_order_qty)
    if qty <= 0:
        return None

    sourcing = resolve_sourcing(product, location, qty, snapshot, supplier_resolver, transit_estimator)
    reasoning = build_reasoning(current, in_transit, rate, days, thresholds, safety, qty, sourcing)

    best = sourcing.best_source if sourcing.type == "transfer" else None
    supplier = sourcing.supplier
    route = sourcing.route
    logger.debug("%s@%s -> %s %s qty=%d", product.sku, lid, urgency, sourcing.type, qty)
    return Suggestion(
        type=sourcing.type,
        urgency=urgency,
        product_id=pid,
        sku=product.sku,
        product_name=product.name,
        destination_location_id=lid,
        destination_location_name=location.name,
        current_stock=current,
        in_transit_quantity=in_transit,
        reserved_quantity=0,
        available_stock=current,
        daily_sales_rate=rate,
        weekly_sales_rate=rate * 7,
        days_of_stock_remaining=days,
        stockout_date=stockout_date(days, today),
        safety_stock_threshold=safety,
        recommended_qty=qty,
        estimated_arrival=today + timedelta(days=sourcing.transit_days),
        source_location_id=best.location_id if best else None,
        source_location_name=best.name if best else None,
        source_available_qty=best.available_qty if best else None,
        supplier_id=supplier.supplier_id if supplier else None,
        supplier_name=supplier.name if supplier else None,
        supplier_lead_time_days=supplier.lead_time_days if supplier else None,
        route_id=route.route_id if route else None,
        route_name=route.name if route else None,
        route_method=sourcing.route_method,
        route_transit_days=sourcing.route_transit_days,
        reasoning=reasoning,
    )


def plan(
    snapshot: Snapshot,
    settings: EngineSettings,
    today: date,
    supplier_resolver: Optional[SupplierResolver] = None,
    transit_estimator: Optional[TransitEstimator] = None,
    min_order_qty: int = MIN_ORDER_QTY,
) -> List[Suggestion]:
    supplier_resolver = supplier_resolver or FirstSupplierResolver()
    transit_estimator = transit_estimator or FixedTransitEstimator()

    suggestions: List[Suggestion] = []
    for product in snapshot.products:
        for location in snapshot.sinks:
            suggestion = plan_pair(
                product,
                location,
                snapshot,
                settings,
                today,
                supplier_resolver,
                transit_estimator,
                min_order_qty,
            )
            if suggestion is not None:
                suggestions.append(suggestion)
    return suggestions
