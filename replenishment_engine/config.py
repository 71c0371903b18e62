from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .errors import ConfigurationError
from .models import EngineSettings, UrgencyThresholds

# ==================== POLICY ====================
MIN_ORDER_QTY = 1
TRANSFER_TRANSIT_DAYS = 7  # short-haul warehouse -> sink lane
FALLBACK_ROUTE_TRANSIT_DAYS = 14
FALLBACK_ROUTE_METHOD = "sea"
DEFAULT_SUPPLIER_LEAD_TIME_DAYS = 30
# Pairs with more than planned_days * SKIP_WINDOW_FACTOR days of stock are skipped
SKIP_WINDOW_FACTOR = 2

DEFAULT_SETTINGS = EngineSettings(
    thresholds=UrgencyThresholds(critical_days=3, warning_days=7, planned_days=14),
    default_safety_stock_days=14,
    include_in_transit=True,
    notify_on_critical=True,
    notify_on_warning=False,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class AppConfig:
    database_url: str = "sqlite://"
    api_tokens: FrozenSet[str] = field(default_factory=frozenset)
    seed_sample_data: bool = True
    log_level: str = "INFO"
    min_order_qty: int = MIN_ORDER_QTY
    transfer_transit_days: int = TRANSFER_TRANSIT_DAYS

    @classmethod
    def from_env(cls) -> "AppConfig":
        tokens = os.getenv("REPLENISHMENT_API_TOKENS", "")
        return cls(
            database_url=os.getenv("REPLENISHMENT_DATABASE_URL", "").strip() or "sqlite://",
            api_tokens=frozenset(t.strip() for t in tokens.split(",") if t.strip()),
            seed_sample_data=_env_bool("REPLENISHMENT_SEED_SAMPLE_DATA", True),
            log_level=os.getenv("REPLENISHMENT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            min_order_qty=_env_int("REPLENISHMENT_MIN_ORDER_QTY", MIN_ORDER_QTY),
            transfer_transit_days=_env_int("REPLENISHMENT_TRANSFER_TRANSIT_DAYS", TRANSFER_TRANSIT_DAYS),
        )


def validate_settings(settings: EngineSettings) -> EngineSettings:
    """Fail fast on settings that would make urgency classification non-monotonic."""
    t = settings.thresholds
    for name in ("critical_days", "warning_days", "planned_days"):
        if getattr(t, name) < 0:
            raise ConfigurationError(f"{name} must not be negative (got {getattr(t, name)})")
    if not (t.critical_days < t.warning_days < t.planned_days):
        raise ConfigurationError(
            "urgency thresholds must be strictly ascending: "
            f"critical={t.critical_days} warning={t.warning_days} planned={t.planned_days}"
        )
    if settings.default_safety_stock_days < 0:
        raise ConfigurationError("default_safety_stock_days must not be negative")
    return settings


_log_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO") -> None:
    global _log_handler
    root = logging.getLogger()
    if _log_handler is None:
        _log_handler = logging.StreamHandler()
        _log_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_log_handler)
    root.setLevel(level)
