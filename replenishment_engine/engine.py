from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Optional

from . import planner, publisher
from .config import MIN_ORDER_QTY, validate_settings
from .errors import RunInProgressError
from .models import EngineSettings, GenerationSummary
from .policies import FirstSupplierResolver, FixedTransitEstimator, SupplierResolver, TransitEstimator
from .snapshot import Snapshot, build_snapshot
from .store import SuggestionStore

logger = logging.getLogger(__name__)


class ReplenishmentEngine:
    """Runs Generate and Stats against a store.

    Generate computes the whole batch in memory before touching the
    suggestion table, and holds a per-process run lock so overlapping
    triggers cannot interleave their delete+insert.
    """

    def __init__(
        self,
        store: SuggestionStore,
        supplier_resolver: Optional[SupplierResolver] = None,
        transit_estimator: Optional[TransitEstimator] = None,
        min_order_qty: int = MIN_ORDER_QTY,
    ):
        self.store = store
        self.supplier_resolver = supplier_resolver or FirstSupplierResolver()
        self.transit_estimator = transit_estimator or FixedTransitEstimator()
        self.min_order_qty = min_order_qty
        self._run_lock = threading.Lock()

    def load_settings(self) -> EngineSettings:
        return validate_settings(self.store.load_settings())

    def load_snapshot(self) -> Snapshot:
        return build_snapshot(self.store.load_reference_data())

    def generate(self, today: Optional[date] = None) -> GenerationSummary:
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("A suggestion run is already in progress")
        try:
            return self._generate(today or date.today())
        finally:
            self._run_lock.release()

    def _generate(self, today: date) -> GenerationSummary:
        logger.info("Starting suggestion run for %s", today.isoformat())
        settings = self.load_settings()
        snapshot = self.load_snapshot()

        if snapshot.is_empty:
            logger.info(
                "Nothing to replenish: %d sink locations, %d active products",
                len(snapshot.sinks),
                len(snapshot.products),
            )
            return GenerationSummary.empty()

        suggestions = planner.plan(
            snapshot,
            settings,
            today,
            supplier_resolver=self.supplier_resolver,
            transit_estimator=self.transit_estimator,
            min_order_qty=self.min_order_qty,
        )
        return publisher.publish(self.store, suggestions, settings)

    def stats(self) -> GenerationSummary:
        return self.store.pending_stats()
