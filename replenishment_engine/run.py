from __future__ import annotations

import argparse
import json
from datetime import date
from pathlib import Path

from . import data
from .config import AppConfig, configure_logging
from .engine import ReplenishmentEngine
from .policies import FixedTransitEstimator
from .store import SuggestionStore


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the replenishment engine once and write the suggestions as JSON.")
    parser.add_argument("--database-url", help="SQLAlchemy URL; defaults to REPLENISHMENT_DATABASE_URL or in-memory sample data")
    parser.add_argument("--today", type=date.fromisoformat, help="evaluation date (YYYY-MM-DD), default today")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(__file__).resolve().parent.parent / "output" / "replenishment_suggestions.json",
    )
    args = parser.parse_args(argv)

    config = AppConfig.from_env()
    configure_logging(config.log_level)

    store = SuggestionStore.from_url(args.database_url or config.database_url)
    store.create_all()
    if config.seed_sample_data and store.is_empty():
        store.replace_reference_data(data.sample_reference_data())

    engine = ReplenishmentEngine(
        store,
        transit_estimator=FixedTransitEstimator(config.transfer_transit_days),
        min_order_qty=config.min_order_qty,
    )
    summary = engine.generate(today=args.today)
    payload = {
        "summary": summary.to_dict(),
        "suggestions": [s.to_dict() for s in store.pending_suggestions()],
    }
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(payload, indent=2))
    print(f"{summary.total} suggestions written to {args.output}")


if __name__ == "__main__":
    main()
