from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from . import loader
from .config import DEFAULT_SETTINGS
from .errors import PublishError
from .models import (
    URGENCY_LEVELS,
    EngineSettings,
    GenerationSummary,
    Notification,
    ReasoningItem,
    ReferenceData,
    Suggestion,
    UrgencyThresholds,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

locations_table = Table(
    "locations",
    metadata,
    Column("location_id", String(64), primary_key=True),
    Column("name", String(200)),
    Column("kind", String(32), index=True),
)

products_table = Table(
    "products",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("sku", String(64), index=True),
    Column("name", String(200)),
    Column("is_active", Boolean, default=True),
)

batches_table = Table(
    "inventory_batches",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", String(64), index=True),
    Column("location_id", String(64), index=True),
    Column("quantity", Integer),
)

transfers_table = Table(
    "transfers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", String(64), index=True),
    Column("to_location_id", String(64), index=True),
    Column("quantity", Integer),
    Column("status", String(32)),
)

forecasts_table = Table(
    "sales_forecasts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", String(64), index=True),
    Column("location_id", String(64), index=True),
    Column("daily_rate", Float),
    Column("manual_override", Float, nullable=True),
    Column("seasonal_multipliers", JSON, nullable=True),
    Column("trend_rate", Float, nullable=True),
    Column("is_enabled", Boolean, default=True),
)

safety_rules_table = Table(
    "safety_stock_rules",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", String(64), index=True),
    Column("location_id", String(64), index=True),
    Column("threshold_type", String(32)),
    Column("threshold_value", Float),
    Column("is_active", Boolean, default=True),
)

suppliers_table = Table(
    "suppliers",
    metadata,
    Column("supplier_id", String(64), primary_key=True),
    Column("name", String(200)),
    Column("lead_time_days", Integer, nullable=True),
)

routes_table = Table(
    "shipping_routes",
    metadata,
    Column("route_id", String(64), primary_key=True),
    Column("name", String(200)),
    Column("leg_ids", JSON),
    Column("is_default", Boolean, default=False),
    Column("is_active", Boolean, default=True),
)

route_legs_table = Table(
    "shipping_route_legs",
    metadata,
    Column("leg_id", String(64), primary_key=True),
    Column("transit_days_typical", Integer),
    Column("method", String(32)),
)

suggestions_table = Table(
    "replenishment_suggestions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("type", String(32), index=True),
    Column("urgency", String(16), index=True),
    Column("status", String(16), index=True),
    Column("product_id", String(64), index=True),
    Column("sku", String(64)),
    Column("product_name", String(200)),
    Column("destination_location_id", String(64), index=True),
    Column("destination_location_name", String(200)),
    Column("current_stock", Integer),
    Column("in_transit_quantity", Integer),
    Column("reserved_quantity", Integer),
    Column("available_stock", Integer),
    Column("daily_sales_rate", Float),
    Column("weekly_sales_rate", Float),
    Column("days_of_stock_remaining", Integer),
    Column("stockout_date", Date, nullable=True),
    Column("safety_stock_threshold", Integer),
    Column("recommended_qty", Integer),
    Column("estimated_arrival", Date, nullable=True),
    Column("source_location_id", String(64), nullable=True),
    Column("source_location_name", String(200), nullable=True),
    Column("source_available_qty", Integer, nullable=True),
    Column("supplier_id", String(64), nullable=True),
    Column("supplier_name", String(200), nullable=True),
    Column("supplier_lead_time_days", Integer, nullable=True),
    Column("route_id", String(64), nullable=True),
    Column("route_name", String(200), nullable=True),
    Column("route_method", String(32), nullable=True),
    Column("route_transit_days", Integer, nullable=True),
    Column("reasoning", JSON),
    Column("generated_at", DateTime(timezone=True)),
)

notifications_table = Table(
    "inventory_notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("type", String(32)),
    Column("title", String(300)),
    Column("message", String(1000)),
    Column("entity_type", String(32)),
    Column("entity_id", String(64)),
    Column("data", JSON),
    Column("is_read", Boolean, default=False),
    Column("created_at", DateTime(timezone=True)),
)

settings_table = Table(
    "intelligence_settings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("critical_days", Integer),
    Column("warning_days", Integer),
    Column("planned_days", Integer),
    Column("default_safety_stock_days", Integer),
    Column("include_in_transit_in_calculations", Boolean),
    Column("notify_on_critical", Boolean),
    Column("notify_on_warning", Boolean),
    Column("updated_at", DateTime(timezone=True)),
)

# ReferenceData attribute -> table
REFERENCE_TABLES: Dict[str, Table] = {
    "locations": locations_table,
    "products": products_table,
    "batches": batches_table,
    "transfers": transfers_table,
    "forecasts": forecasts_table,
    "safety_rules": safety_rules_table,
    "suppliers": suppliers_table,
    "routes": routes_table,
    "route_legs": route_legs_table,
}

_SUGGESTION_FIELDS = [c.name for c in suggestions_table.columns if c.name not in ("id", "reasoning", "generated_at")]


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite") and (url in ("sqlite://", "sqlite:///:memory:")):
        # one shared connection so every thread sees the same in-memory database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _settings_field(row, name: str, default: int) -> int:
    value = loader.to_int(row.get(name), -1)
    return value if value >= 0 else default


def settings_from_row(row: Optional[dict]) -> EngineSettings:
    """Map a settings row onto EngineSettings; bad or missing fields take the default."""
    if not row:
        return DEFAULT_SETTINGS
    d = DEFAULT_SETTINGS
    return EngineSettings(
        thresholds=UrgencyThresholds(
            critical_days=_settings_field(row, "critical_days", d.thresholds.critical_days),
            warning_days=_settings_field(row, "warning_days", d.thresholds.warning_days),
            planned_days=_settings_field(row, "planned_days", d.thresholds.planned_days),
        ),
        default_safety_stock_days=_settings_field(row, "default_safety_stock_days", d.default_safety_stock_days),
        include_in_transit=loader.to_bool(row.get("include_in_transit_in_calculations"), d.include_in_transit),
        notify_on_critical=loader.to_bool(row.get("notify_on_critical"), d.notify_on_critical),
        notify_on_warning=loader.to_bool(row.get("notify_on_warning"), d.notify_on_warning),
    )


def suggestion_to_row(s: Suggestion, generated_at: datetime) -> dict:
    row = {name: getattr(s, name) for name in _SUGGESTION_FIELDS}
    row["id"] = s.suggestion_id or str(uuid.uuid4())
    row["reasoning"] = [item.to_dict() for item in s.reasoning]
    row["generated_at"] = generated_at
    return row


def suggestion_from_row(row) -> Suggestion:
    reasoning = [
        ReasoningItem(kind=item.get("type", "info"), message=item.get("message", ""), value=item.get("value"))
        for item in (row["reasoning"] or [])
    ]
    values = {name: row[name] for name in _SUGGESTION_FIELDS}
    return Suggestion(suggestion_id=row["id"], reasoning=reasoning, **values)


class SuggestionStore:
    """Relational store for reference data, suggestions, notifications and settings."""

    def __init__(self, engine: Engine):
        self.engine = engine
        # An in-memory engine shares one DBAPI connection across threads; closing
        # a reader's connection would roll back a publish still in flight.
        self._lock = threading.RLock()

    @classmethod
    def from_url(cls, url: str) -> "SuggestionStore":
        return cls(make_engine(url))

    @contextmanager
    def _connect(self):
        with self._lock, self.engine.connect() as conn:
            yield conn

    @contextmanager
    def _begin(self):
        with self._lock, self.engine.begin() as conn:
            yield conn

    def create_all(self) -> None:
        with self._lock:
            metadata.create_all(self.engine)

    # ---- reference data ----

    def is_empty(self) -> bool:
        with self._connect() as conn:
            count = conn.execute(select(func.count()).select_from(locations_table)).scalar_one()
        return count == 0

    def load_reference_data(self) -> ReferenceData:
        ref = ReferenceData()
        with self._connect() as conn:
            for kind, table in REFERENCE_TABLES.items():
                rows = [dict(r) for r in conn.execute(select(table)).mappings()]
                setattr(ref, kind, loader.PARSERS[kind](rows))
        return ref

    def replace_reference_data(self, ref: ReferenceData, kinds: Optional[Iterable[str]] = None) -> None:
        """Replace the rows of each given kind (all kinds by default) in one transaction."""
        kinds = list(kinds) if kinds is not None else list(REFERENCE_TABLES)
        with self._begin() as conn:
            for kind in kinds:
                table = REFERENCE_TABLES[kind]
                rows = [asdict(item) for item in getattr(ref, kind)]
                conn.execute(delete(table))
                if rows:
                    conn.execute(insert(table), rows)
                logger.info("Replaced %s: %d rows", kind, len(rows))

    # ---- settings ----

    def load_settings(self) -> EngineSettings:
        with self._connect() as conn:
            row = conn.execute(select(settings_table).limit(1)).mappings().first()
        return settings_from_row(dict(row) if row else None)

    def save_settings(self, settings: EngineSettings) -> None:
        t = settings.thresholds
        values = {
            "id": 1,
            "critical_days": t.critical_days,
            "warning_days": t.warning_days,
            "planned_days": t.planned_days,
            "default_safety_stock_days": settings.default_safety_stock_days,
            "include_in_transit_in_calculations": settings.include_in_transit,
            "notify_on_critical": settings.notify_on_critical,
            "notify_on_warning": settings.notify_on_warning,
            "updated_at": _utcnow(),
        }
        with self._begin() as conn:
            conn.execute(delete(settings_table))
            conn.execute(insert(settings_table), [values])

    # ---- suggestions ----

    def replace_pending(
        self,
        suggestions: Sequence[Suggestion],
        notifications: Sequence[Notification] = (),
        generated_at: Optional[datetime] = None,
    ) -> None:
        """Swap the pending suggestion set and add notifications in one transaction.

        On failure the transaction rolls back and the previous pending set stays.
        """
        generated_at = generated_at or _utcnow()
        rows = [suggestion_to_row(s, generated_at) for s in suggestions]
        note_rows = [
            {
                "id": str(uuid.uuid4()),
                "type": n.kind,
                "title": n.title,
                "message": n.message,
                "entity_type": n.entity_type,
                "entity_id": n.entity_id,
                "data": n.data,
                "is_read": False,
                "created_at": generated_at,
            }
            for n in notifications
        ]
        try:
            with self._begin() as conn:
                conn.execute(delete(suggestions_table).where(suggestions_table.c.status == "pending"))
                if rows:
                    conn.execute(insert(suggestions_table), rows)
                if note_rows:
                    conn.execute(insert(notifications_table), note_rows)
        except SQLAlchemyError as e:
            logger.error("Publishing %d suggestions failed: %s", len(rows), e)
            raise PublishError(f"Failed to save suggestions: {e}", attempted=len(rows)) from e
        for s, row in zip(suggestions, rows):
            s.suggestion_id = row["id"]

    def pending_suggestions(
        self,
        type: Optional[str] = None,
        urgency: Optional[Sequence[str]] = None,
        location_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> List[Suggestion]:
        t = suggestions_table
        query = select(t).where(t.c.status == "pending")
        if type:
            query = query.where(t.c.type == type)
        if urgency:
            query = query.where(t.c.urgency.in_(list(urgency)))
        if location_id:
            query = query.where(t.c.destination_location_id == location_id)
        if product_id:
            query = query.where(t.c.product_id == product_id)
        with self._connect() as conn:
            rows = conn.execute(query).mappings().all()
        out = [suggestion_from_row(r) for r in rows]
        out.sort(key=lambda s: (URGENCY_LEVELS.index(s.urgency), s.days_of_stock_remaining, s.sku))
        return out

    def pending_stats(self) -> GenerationSummary:
        t = suggestions_table
        query = (
            select(t.c.urgency, t.c.type, func.count())
            .where(t.c.status == "pending")
            .group_by(t.c.urgency, t.c.type)
        )
        with self._connect() as conn:
            grouped = conn.execute(query).all()
        pairs = []
        for urgency, kind, count in grouped:
            pairs.extend([(urgency, kind)] * count)
        return GenerationSummary.tally(pairs)

    def notifications(self, limit: int = 50) -> List[dict]:
        t = notifications_table
        query = select(t).order_by(t.c.created_at.desc()).limit(limit)
        with self._connect() as conn:
            return [dict(r) for r in conn.execute(query).mappings()]
