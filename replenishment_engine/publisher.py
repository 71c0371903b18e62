from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .models import EngineSettings, GenerationSummary, Notification, Suggestion
from .store import SuggestionStore

logger = logging.getLogger(__name__)


def _notification(s: Suggestion, kind: str, label: str) -> Notification:
    return Notification(
        kind=kind,
        title=f"{label}: {s.sku or 'Unknown'} at {s.destination_location_name or 'Unknown'}",
        message=(
            f"Stock will run out in {s.days_of_stock_remaining} days. "
            f"Recommend {s.recommended_qty} units."
        ),
        entity_type="product",
        entity_id=s.product_id,
        data={
            "days_remaining": s.days_of_stock_remaining,
            "recommended_qty": s.recommended_qty,
            "location_id": s.destination_location_id,
            "suggestion_type": s.type,
        },
    )


def build_notifications(suggestions: Sequence[Suggestion], settings: EngineSettings) -> List[Notification]:
    out = []
    for s in suggestions:
        if s.urgency == "critical" and settings.notify_on_critical:
            out.append(_notification(s, "critical_stock", "Critical"))
        elif s.urgency == "warning" and settings.notify_on_warning:
            out.append(_notification(s, "warning_stock", "Warning"))
    return out


def summarize(suggestions: Sequence[Suggestion]) -> GenerationSummary:
    return GenerationSummary.tally((s.urgency, s.type) for s in suggestions)


def publish(
    store: SuggestionStore,
    suggestions: Sequence[Suggestion],
    settings: EngineSettings,
    generated_at: Optional[datetime] = None,
) -> GenerationSummary:
    """Replace the pending suggestion set with a freshly computed batch."""
    notifications = build_notifications(suggestions, settings)
    store.replace_pending(suggestions, notifications, generated_at=generated_at)
    summary = summarize(suggestions)
    logger.info(
        "Published %d suggestions (%s), %d notifications",
        summary.total,
        ", ".join(f"{k}={v}" for k, v in summary.by_urgency.items()),
        len(notifications),
    )
    return summary
