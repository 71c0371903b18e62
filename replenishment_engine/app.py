from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__, data, loader
from .auth import require_user
from .config import AppConfig, configure_logging, validate_settings
from .engine import ReplenishmentEngine
from .errors import ConfigurationError, PublishError, RunInProgressError
from .models import EngineSettings, ReferenceData, UrgencyThresholds
from .policies import FixedTransitEstimator
from .store import SuggestionStore

logger = logging.getLogger(__name__)


class SettingsPayload(BaseModel):
    critical_days: int = Field(..., ge=0)
    warning_days: int = Field(..., ge=0)
    planned_days: int = Field(..., ge=0)
    default_safety_stock_days: int = Field(..., ge=0)
    include_in_transit: bool = True
    notify_on_critical: bool = True
    notify_on_warning: bool = False

    def to_settings(self) -> EngineSettings:
        return EngineSettings(
            thresholds=UrgencyThresholds(
                critical_days=self.critical_days,
                warning_days=self.warning_days,
                planned_days=self.planned_days,
            ),
            default_safety_stock_days=self.default_safety_stock_days,
            include_in_transit=self.include_in_transit,
            notify_on_critical=self.notify_on_critical,
            notify_on_warning=self.notify_on_warning,
        )


def settings_to_dict(settings: EngineSettings) -> dict:
    t = settings.thresholds
    return {
        "critical_days": t.critical_days,
        "warning_days": t.warning_days,
        "planned_days": t.planned_days,
        "default_safety_stock_days": settings.default_safety_stock_days,
        "include_in_transit": settings.include_in_transit,
        "notify_on_critical": settings.notify_on_critical,
        "notify_on_warning": settings.notify_on_warning,
    }


def _read_bytes(file: Optional[UploadFile]) -> Optional[bytes]:
    if file is None:
        return None
    return file.file.read()


def create_app(config: Optional[AppConfig] = None, store: Optional[SuggestionStore] = None) -> FastAPI:
    config = config or AppConfig.from_env()
    configure_logging(config.log_level)

    if store is None:
        store = SuggestionStore.from_url(config.database_url)
    store.create_all()
    if config.seed_sample_data and store.is_empty():
        logger.info("Empty store; seeding bundled sample data")
        store.replace_reference_data(data.sample_reference_data())

    app = FastAPI(title="Replenishment Engine", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.store = store
    app.state.engine = ReplenishmentEngine(
        store,
        transit_estimator=FixedTransitEstimator(config.transfer_transit_days),
        min_order_qty=config.min_order_qty,
    )

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(request: Request, exc: ConfigurationError):
        return JSONResponse({"error": "Invalid settings", "details": str(exc)}, status_code=422)

    @app.exception_handler(PublishError)
    async def _publish_error(request: Request, exc: PublishError):
        return JSONResponse(
            {
                "error": "Failed to save suggestions",
                "details": str(exc),
                "attempted": exc.attempted,
                "retryable": True,
            },
            status_code=503,
        )

    @app.exception_handler(RunInProgressError)
    async def _run_in_progress(request: Request, exc: RunInProgressError):
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    @app.post("/api/suggestions/generate", dependencies=[Depends(require_user)])
    def generate_suggestions(request: Request):
        summary = request.app.state.engine.generate()
        return {"success": True, **summary.to_dict()}

    @app.get("/api/suggestions/stats", dependencies=[Depends(require_user)])
    def suggestion_stats(request: Request):
        return request.app.state.engine.stats().to_dict()

    @app.get("/api/suggestions", dependencies=[Depends(require_user)])
    def list_suggestions(
        request: Request,
        type: Optional[str] = None,
        urgency: Optional[List[str]] = Query(default=None),
        location_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ):
        rows = request.app.state.store.pending_suggestions(
            type=type,
            urgency=urgency,
            location_id=location_id,
            product_id=product_id,
        )
        return {"suggestions": [s.to_dict() for s in rows]}

    @app.get("/api/settings", dependencies=[Depends(require_user)])
    def get_settings(request: Request):
        return settings_to_dict(request.app.state.store.load_settings())

    @app.put("/api/settings", dependencies=[Depends(require_user)])
    def update_settings(request: Request, payload: SettingsPayload):
        settings = validate_settings(payload.to_settings())
        request.app.state.store.save_settings(settings)
        logger.info("Settings updated: %s", settings_to_dict(settings))
        return settings_to_dict(settings)

    @app.get("/api/notifications", dependencies=[Depends(require_user)])
    def list_notifications(request: Request, limit: int = Query(default=50, ge=1, le=500)):
        notes = request.app.state.store.notifications(limit=limit)
        for note in notes:
            note["created_at"] = note["created_at"].isoformat() if note["created_at"] else None
        return {"notifications": notes}

    @app.post("/api/data/import", dependencies=[Depends(require_user)])
    def import_reference_data(
        request: Request,
        locations: UploadFile | None = File(default=None),
        products: UploadFile | None = File(default=None),
        batches: UploadFile | None = File(default=None),
        transfers: UploadFile | None = File(default=None),
        forecasts: UploadFile | None = File(default=None),
        safety_rules: UploadFile | None = File(default=None),
        suppliers: UploadFile | None = File(default=None),
        routes: UploadFile | None = File(default=None),
        route_legs: UploadFile | None = File(default=None),
    ):
        uploads = {
            "locations": locations,
            "products": products,
            "batches": batches,
            "transfers": transfers,
            "forecasts": forecasts,
            "safety_rules": safety_rules,
            "suppliers": suppliers,
            "routes": routes,
            "route_legs": route_legs,
        }
        ref = ReferenceData()
        imported = {}
        for kind, upload in uploads.items():
            raw = _read_bytes(upload)
            if not raw:
                continue
            try:
                records = loader.load(kind, raw)
            except (ValueError, KeyError) as e:
                return JSONResponse({"error": f"Could not parse {kind}", "details": str(e)}, status_code=400)
            setattr(ref, kind, records)
            imported[kind] = len(records)
        if imported:
            request.app.state.store.replace_reference_data(ref, kinds=imported)
        return {"imported": imported}

    return app


app = create_app()
