import logging
import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy import event
from sqlalchemy.sql import Delete

from conftest import TODAY, make_reference
from replenishment_engine import publisher
from replenishment_engine.config import DEFAULT_SETTINGS, configure_logging, validate_settings
from replenishment_engine.data import sample_reference_data
from replenishment_engine.engine import ReplenishmentEngine
from replenishment_engine.errors import ConfigurationError, PublishError, RunInProgressError
from replenishment_engine.models import EngineSettings, Forecast, InventoryBatch, Product, UrgencyThresholds
from replenishment_engine.planner import plan
from replenishment_engine.snapshot import build_snapshot
from replenishment_engine.store import notifications_table, settings_from_row, settings_table, suggestions_table


def _settings(critical=3, warning=7, planned=14, **kwargs):
    return EngineSettings(
        thresholds=UrgencyThresholds(critical_days=critical, warning_days=warning, planned_days=planned),
        default_safety_stock_days=kwargs.pop("default_safety_stock_days", 14),
        **kwargs,
    )


# ===== GENERATE =====

def test_generate_publishes_pending_set(seeded_store):
    engine = ReplenishmentEngine(seeded_store)
    summary = engine.generate(today=TODAY)

    assert summary.total == 1
    assert summary.by_urgency["planned"] == 1
    assert summary.by_type["purchase-order"] == 1

    (stored,) = seeded_store.pending_suggestions()
    assert stored.suggestion_id
    assert stored.recommended_qty == 40
    assert stored.sku == "SKU-P"
    assert stored.destination_location_name == "Amazon FBA East"
    assert stored.supplier_id == "SUP-1"
    assert stored.route_id == "R1"
    assert stored.reasoning[0].message == "Current stock: 100 units"


def test_generate_twice_is_idempotent(seeded_store):
    engine = ReplenishmentEngine(seeded_store)
    first = engine.generate(today=TODAY)
    first_rows = seeded_store.pending_suggestions()
    second = engine.generate(today=TODAY)
    second_rows = seeded_store.pending_suggestions()

    assert first.to_dict() == second.to_dict()
    assert [s.recommended_qty for s in first_rows] == [s.recommended_qty for s in second_rows]
    assert {s.suggestion_id for s in first_rows}.isdisjoint({s.suggestion_id for s in second_rows})


def test_generate_over_sample_data(store):
    store.replace_reference_data(sample_reference_data())
    summary = ReplenishmentEngine(store).generate(today=TODAY)

    rows = store.pending_suggestions()
    assert summary.total == len(rows)
    pairs = {(s.product_id, s.destination_location_id) for s in rows}
    # inactive product and disabled forecast never produce suggestions
    assert not any(pid == "P-OLD" for pid, _ in pairs)
    assert ("P-RICE", "FBA-US-EAST") not in pairs
    tea = next(s for s in rows if s.product_id == "P-TEA")
    assert tea.type == "transfer"
    assert tea.source_location_id == "WH-NJ"
    assert tea.in_transit_quantity == 60


@pytest.mark.parametrize("drop", ["locations", "products"])
def test_no_sinks_or_products_leaves_table_untouched(seeded_store, drop):
    engine = ReplenishmentEngine(seeded_store)
    engine.generate(today=TODAY)
    before = [s.suggestion_id for s in seeded_store.pending_suggestions()]

    empty = make_reference()
    setattr(empty, drop, [])
    seeded_store.replace_reference_data(empty, kinds=[drop])
    summary = engine.generate(today=TODAY)

    assert summary.total == 0
    assert summary.by_urgency == {"critical": 0, "warning": 0, "planned": 0, "monitor": 0}
    assert [s.suggestion_id for s in seeded_store.pending_suggestions()] == before


def test_stats_reflect_pending_set(seeded_store):
    engine = ReplenishmentEngine(seeded_store)
    assert engine.stats().total == 0
    engine.generate(today=TODAY)
    stats = engine.stats()
    assert stats.total == 1
    assert stats.by_type == {"transfer": 0, "purchase-order": 1}


def test_concurrent_run_is_rejected(seeded_store):
    engine = ReplenishmentEngine(seeded_store)
    engine._run_lock.acquire()
    try:
        with pytest.raises(RunInProgressError):
            engine.generate(today=TODAY)
    finally:
        engine._run_lock.release()
    assert engine.generate(today=TODAY).total == 1


# ===== NOTIFICATIONS =====

def test_critical_suggestion_raises_notification(store):
    store.replace_reference_data(make_reference(current_stock=20))
    ReplenishmentEngine(store).generate(today=TODAY)

    (note,) = store.notifications()
    assert note["type"] == "critical_stock"
    assert note["title"] == "Critical: SKU-P at Amazon FBA East"
    assert note["message"] == "Stock will run out in 2 days. Recommend 120 units."
    assert note["entity_id"] == "P"
    assert note["data"]["suggestion_type"] == "purchase-order"
    assert note["is_read"] is False


def test_warning_notifications_follow_setting(store):
    store.replace_reference_data(make_reference(current_stock=50))
    engine = ReplenishmentEngine(store)
    engine.generate(today=TODAY)
    assert store.notifications() == []

    store.save_settings(_settings(notify_on_warning=True))
    engine.generate(today=TODAY)
    (note,) = store.notifications()
    assert note["type"] == "warning_stock"


def test_critical_notifications_can_be_switched_off():
    suggestions = plan(build_snapshot(make_reference(current_stock=20)), DEFAULT_SETTINGS, TODAY)
    assert len(publisher.build_notifications(suggestions, DEFAULT_SETTINGS)) == 1
    quiet = _settings(notify_on_critical=False)
    assert publisher.build_notifications(suggestions, quiet) == []


# ===== PUBLISH FAILURE =====

def test_failed_publish_keeps_previous_pending_set(store):
    store.replace_reference_data(make_reference())
    engine = ReplenishmentEngine(store)
    engine.generate(today=TODAY)
    before = [(s.suggestion_id, s.recommended_qty) for s in store.pending_suggestions()]

    notifications_table.drop(store.engine)
    critical = plan(build_snapshot(make_reference(current_stock=20)), DEFAULT_SETTINGS, TODAY)
    with pytest.raises(PublishError) as excinfo:
        publisher.publish(store, critical, DEFAULT_SETTINGS, generated_at=datetime.now(timezone.utc))

    assert excinfo.value.attempted == 1
    assert [(s.suggestion_id, s.recommended_qty) for s in store.pending_suggestions()] == before


# ===== SETTINGS =====

def test_missing_settings_row_uses_defaults(store):
    assert store.load_settings() == DEFAULT_SETTINGS


def test_settings_round_trip(store):
    custom = _settings(critical=2, warning=5, planned=20, default_safety_stock_days=10, include_in_transit=False)
    store.save_settings(custom)
    assert store.load_settings() == custom


def test_settings_row_fields_fail_open():
    settings = settings_from_row(
        {
            "critical_days": None,
            "warning_days": "abc",
            "planned_days": -4,
            "default_safety_stock_days": 21,
            "include_in_transit_in_calculations": False,
            "notify_on_critical": None,
            "notify_on_warning": None,
        }
    )
    assert settings.thresholds == DEFAULT_SETTINGS.thresholds
    assert settings.default_safety_stock_days == 21
    assert settings.include_in_transit is False
    assert settings.notify_on_critical is True
    assert settings.notify_on_warning is False


@pytest.mark.parametrize(
    "critical,warning,planned",
    [(7, 3, 14), (3, 7, 7), (5, 5, 14), (-1, 7, 14)],
)
def test_validate_settings_rejects_bad_ordering(critical, warning, planned):
    with pytest.raises(ConfigurationError):
        validate_settings(_settings(critical, warning, planned))


def test_validate_settings_accepts_defaults():
    assert validate_settings(DEFAULT_SETTINGS) is DEFAULT_SETTINGS


def test_generate_refuses_unordered_stored_thresholds(seeded_store):
    with seeded_store.engine.begin() as conn:
        conn.execute(
            settings_table.insert(),
            [
                {
                    "id": 1,
                    "critical_days": 10,
                    "warning_days": 5,
                    "planned_days": 14,
                    "default_safety_stock_days": 14,
                    "include_in_transit_in_calculations": True,
                    "notify_on_critical": True,
                    "notify_on_warning": False,
                }
            ],
        )
    with pytest.raises(ConfigurationError):
        ReplenishmentEngine(seeded_store).generate(today=TODAY)
    assert seeded_store.pending_suggestions() == []


# ===== LISTING =====

def test_pending_suggestions_filter_and_order(store):
    ref = make_reference(current_stock=20)
    ref.products.append(Product("Q", "SKU-Q", "Product Q"))
    ref.batches.append(InventoryBatch("Q", "L", 100))
    ref.forecasts.append(Forecast("Q", "L", daily_rate=10.0))
    store.replace_reference_data(ref)
    ReplenishmentEngine(store).generate(today=TODAY)

    rows = store.pending_suggestions()
    assert [s.urgency for s in rows] == ["critical", "planned"]
    assert [s.product_id for s in store.pending_suggestions(product_id="Q")] == ["Q"]
    assert [s.product_id for s in store.pending_suggestions(urgency=["critical"])] == ["P"]
    assert store.pending_suggestions(type="transfer") == []
    assert len(store.pending_suggestions(location_id="L")) == 2


# ===== CONCURRENT ACCESS =====

def test_read_during_publish_does_not_undo_the_replace(store):
    store.replace_reference_data(make_reference())
    ReplenishmentEngine(store).generate(today=TODAY)
    critical = plan(build_snapshot(make_reference(current_stock=20)), DEFAULT_SETTINGS, TODAY)

    seen = {}
    readers = []

    def read_stats_mid_publish(conn, clauseelement, *args):
        if isinstance(clauseelement, Delete) and clauseelement.table is suggestions_table and not readers:
            reader = threading.Thread(target=lambda: seen.setdefault("stats", store.pending_stats()))
            readers.append(reader)
            reader.start()
            reader.join(timeout=0.2)

    event.listen(store.engine, "after_execute", read_stats_mid_publish)
    try:
        store.replace_pending(critical)
    finally:
        event.remove(store.engine, "after_execute", read_stats_mid_publish)
    readers[0].join()

    rows = store.pending_suggestions()
    assert [s.urgency for s in rows] == ["critical"]
    assert seen["stats"].total == 1
    assert seen["stats"].by_urgency["critical"] == 1


# ===== LOGGING =====

def test_configure_logging_installs_one_handler():
    root = logging.getLogger()
    before = len(root.handlers)
    configure_logging("DEBUG")
    configure_logging("WARNING")
    assert len(root.handlers) <= before + 1
    assert root.level == logging.WARNING
    configure_logging("INFO")
