from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Union

# Location kinds
SINK_LOCATION_KINDS = ("amazon-fba", "amazon-awd")
SOURCE_LOCATION_KINDS = ("warehouse", "3pl")

URGENCY_LEVELS = ("critical", "warning", "planned", "monitor")
SUGGESTION_TYPES = ("transfer", "purchase-order")
REASONING_KINDS = ("info", "warning", "calculation")
THRESHOLD_TYPES = ("units", "days-of-cover")

# Transfers that have not arrived yet
IN_TRANSIT_STATUSES = ("pending", "in_transit")

# Days-of-stock sentinel for pairs with no demand
DAYS_UNLIMITED = 999


@dataclass
class Location:
    location_id: str
    name: str
    kind: str  # amazon-fba, amazon-awd, warehouse, 3pl

    @property
    def is_sink(self) -> bool:
        return self.kind in SINK_LOCATION_KINDS

    @property
    def is_source(self) -> bool:
        return self.kind in SOURCE_LOCATION_KINDS


@dataclass
class Product:
    product_id: str
    sku: str
    name: str
    is_active: bool = True


@dataclass
class InventoryBatch:
    product_id: str
    location_id: str
    quantity: int


@dataclass
class TransferLine:
    product_id: str
    to_location_id: str
    quantity: int
    status: str = "pending"


@dataclass
class Forecast:
    product_id: str
    location_id: str
    daily_rate: float
    seasonal_multipliers: List[float] = field(default_factory=list)  # index 0 = January
    trend_rate: float = 0.0  # advisory only
    manual_override: Optional[float] = None
    is_enabled: bool = True

    @property
    def base_rate(self) -> float:
        if self.manual_override:
            return self.manual_override
        return self.daily_rate


@dataclass
class SafetyStockRule:
    product_id: str
    location_id: str
    threshold_type: str  # units, days-of-cover
    threshold_value: float
    is_active: bool = True


@dataclass
class Supplier:
    supplier_id: str
    name: str
    lead_time_days: int


@dataclass
class RouteLeg:
    leg_id: str
    transit_days_typical: int
    method: str


@dataclass
class ShippingRoute:
    route_id: str
    name: str
    leg_ids: List[str] = field(default_factory=list)
    is_default: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class UrgencyThresholds:
    critical_days: int
    warning_days: int
    planned_days: int


@dataclass(frozen=True)
class EngineSettings:
    thresholds: UrgencyThresholds
    default_safety_stock_days: int
    include_in_transit: bool = True
    notify_on_critical: bool = True
    notify_on_warning: bool = False


@dataclass
class ReferenceData:
    """Raw rows of everything the engine reads, before indexing."""

    locations: List[Location] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    batches: List[InventoryBatch] = field(default_factory=list)
    transfers: List[TransferLine] = field(default_factory=list)
    forecasts: List[Forecast] = field(default_factory=list)
    safety_rules: List[SafetyStockRule] = field(default_factory=list)
    suppliers: List[Supplier] = field(default_factory=list)
    routes: List[ShippingRoute] = field(default_factory=list)
    route_legs: List[RouteLeg] = field(default_factory=list)


@dataclass(frozen=True)
class ReasoningItem:
    kind: str  # info, warning, calculation
    message: str
    value: Optional[Union[int, float, str]] = None

    def to_dict(self) -> dict:
        out = {"type": self.kind, "message": self.message}
        if self.value is not None:
            out["value"] = self.value
        return out


@dataclass(frozen=True)
class SourceLocation:
    location_id: str
    name: str
    available_qty: int


@dataclass
class Sourcing:
    type: str  # transfer, purchase-order
    transit_days: int
    best_source: Optional[SourceLocation] = None
    supplier: Optional[Supplier] = None
    route: Optional[ShippingRoute] = None
    route_method: Optional[str] = None
    route_transit_days: Optional[int] = None


@dataclass
class Suggestion:
    type: str
    urgency: str
    product_id: str
    sku: str
    product_name: str
    destination_location_id: str
    destination_location_name: str
    current_stock: int
    in_transit_quantity: int
    reserved_quantity: int
    available_stock: int
    daily_sales_rate: float
    weekly_sales_rate: float
    days_of_stock_remaining: int
    stockout_date: Optional[date]
    safety_stock_threshold: int
    recommended_qty: int
    estimated_arrival: Optional[date]
    source_location_id: Optional[str] = None
    source_location_name: Optional[str] = None
    source_available_qty: Optional[int] = None
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_lead_time_days: Optional[int] = None
    route_id: Optional[str] = None
    route_name: Optional[str] = None
    route_method: Optional[str] = None
    route_transit_days: Optional[int] = None
    reasoning: List[ReasoningItem] = field(default_factory=list)
    status: str = "pending"
    suggestion_id: Optional[str] = None

    def to_dict(self) -> dict:
        out = {k: v for k, v in vars(self).items() if k not in ("reasoning", "suggestion_id")}
        out["id"] = self.suggestion_id
        out["stockout_date"] = self.stockout_date.isoformat() if self.stockout_date else None
        out["estimated_arrival"] = self.estimated_arrival.isoformat() if self.estimated_arrival else None
        out["reasoning"] = [item.to_dict() for item in self.reasoning]
        return out


@dataclass
class Notification:
    kind: str
    title: str
    message: str
    entity_type: str
    entity_id: str
    data: Dict[str, object] = field(default_factory=dict)


@dataclass
class GenerationSummary:
    total: int
    by_urgency: Dict[str, int]
    by_type: Dict[str, int]

    @classmethod
    def empty(cls) -> "GenerationSummary":
        return cls(
            total=0,
            by_urgency={u: 0 for u in URGENCY_LEVELS},
            by_type={t: 0 for t in SUGGESTION_TYPES},
        )

    @classmethod
    def tally(cls, pairs) -> "GenerationSummary":
        """Count (urgency, type) pairs."""
        summary = cls.empty()
        for urgency, kind in pairs:
            summary.total += 1
            summary.by_urgency[urgency] = summary.by_urgency.get(urgency, 0) + 1
            summary.by_type[kind] = summary.by_type.get(kind, 0) + 1
        return summary

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_urgency": dict(self.by_urgency),
            "by_type": dict(self.by_type),
        }
