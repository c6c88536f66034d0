"""
Buyer-facing API - live preview, saved configurations and lot compatibility.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..config.logging import setup_logging
from ..config.settings import get_settings
from ..engine.errors import PricingError
from ..engine.lot_fit import lot_compatibility_info
from ..engine.models import PersistedHomeConfiguration, SelectionSet
from . import state
from .admin_api import router as admin_router
from .http_errors import http_error

setup_logging(get_settings().log_level)

app = FastAPI(
    title="Home Pricing API",
    description="Pricing core for the home configurator",
    version="1.0.0"
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_router)


class SelectionModel(BaseModel):
    """A buyer's current picks for one plan."""
    plan_id: str
    elevation_id: Optional[str] = None
    interior_package_id: Optional[str] = None
    structural_ids: list[str] = Field(default_factory=list)
    additional_ids: list[str] = Field(default_factory=list)
    kitchen_appliance_id: Optional[str] = None
    laundry_appliance_id: Optional[str] = None
    lot_pricing_id: Optional[str] = None
    color_scheme: Optional[int] = None

    def to_selection(self) -> SelectionSet:
        return SelectionSet(**self.model_dump())


class SaveConfigurationRequest(BaseModel):
    """Save a new configuration, or replace an in-progress one."""
    user_id: str
    selection: SelectionModel
    client_total: Optional[float] = None
    configuration_id: Optional[str] = None


def configuration_response(configuration: PersistedHomeConfiguration) -> dict:
    data = asdict(configuration)
    data["line_items"] = [item.to_dict() for item in configuration.line_items]
    return jsonable_encoder(data)


@app.get("/")
async def root():
    return {"status": "online", "message": "Home Pricing API Active"}


@app.post("/preview")
async def preview(selection: SelectionModel):
    """Live running total for a selection."""
    try:
        result = state.engine.preview(selection.to_selection())
    except PricingError as e:
        raise http_error(e)
    return jsonable_encoder(result.to_dict())


@app.post("/configurations")
async def save_configuration(req: SaveConfigurationRequest):
    """Save a configuration. The stored total is always recomputed server-side."""
    try:
        configuration = state.configurations.save(
            req.user_id,
            req.selection.to_selection(),
            client_total=req.client_total,
            configuration_id=req.configuration_id,
        )
    except PricingError as e:
        raise http_error(e)
    return configuration_response(configuration)


@app.get("/configurations")
async def list_configurations(user_id: str):
    configurations = state.configurations.list_for_user(user_id)
    return [configuration_response(c) for c in configurations]


@app.get("/configurations/stats")
async def configuration_stats(user_id: str):
    return state.configurations.get_stats(user_id)


@app.get("/configurations/{configuration_id}")
async def get_configuration(configuration_id: str, user_id: str):
    try:
        return configuration_response(state.configurations.get(user_id, configuration_id))
    except PricingError as e:
        raise http_error(e)


@app.post("/configurations/{configuration_id}/complete")
async def complete_configuration(configuration_id: str, user_id: str):
    """Lock a configuration after a final recomputation."""
    try:
        configuration = state.configurations.mark_complete(user_id, configuration_id)
    except PricingError as e:
        raise http_error(e)
    return configuration_response(configuration)


@app.delete("/configurations/{configuration_id}")
async def delete_configuration(configuration_id: str, user_id: str):
    try:
        state.configurations.delete(user_id, configuration_id)
    except PricingError as e:
        raise http_error(e)
    return {"success": True, "message": f"Configuration '{configuration_id}' deleted"}


@app.get("/plans")
async def list_plans():
    """Active plans buyers can configure."""
    plans = [p for p in state.engine.store.list_plans() if p.is_active]
    return jsonable_encoder([asdict(p) for p in plans])


@app.get("/plans/{plan_id}/options")
async def list_plan_options(plan_id: str, classification: Optional[str] = None):
    """A plan's active options with their derived client prices."""
    if state.engine.store.find_plan(plan_id) is None:
        raise HTTPException(status_code=404, detail=f"Plan '{plan_id}' not found")
    options = state.engine.store.list_options(plan_id, classification=classification, active_only=True)
    return jsonable_encoder([asdict(o) for o in options])


@app.get("/plans/{plan_id}/compatible-lots")
async def get_compatible_lots(plan_id: str, include_incompatible: bool = False):
    """Lots the plan fits on, with the plan's lot pricing where one exists."""
    store = state.engine.store
    plan = store.find_plan(plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail=f"Plan '{plan_id}' not found")

    pricing_by_lot = {p.lot_id: p for p in store.list_lot_pricings(plan_id) if p.is_active}

    lots = []
    for lot in store.list_lots():
        fit = lot_compatibility_info(plan, lot)
        if not fit.compatible and not include_incompatible:
            continue
        pricing = pricing_by_lot.get(lot.id)
        lots.append({
            "lot_id": lot.id,
            "filing": lot.filing,
            "lot": lot.lot,
            "width": lot.width,
            "length": lot.length,
            "fit": asdict(fit),
            "lot_pricing_id": pricing.id if pricing else None,
            "lot_premium": pricing.lot_premium if pricing else None,
        })
    return jsonable_encoder(lots)


@app.get("/system/status")
async def get_status():
    settings = get_settings()
    has_report = settings.build_report.exists()
    store = state.engine.store
    return {
        "engine_active": True,
        "plans_count": len(store.list_plans()),
        "catalog_last_build": settings.build_report.stat().st_mtime if has_report else None
    }
