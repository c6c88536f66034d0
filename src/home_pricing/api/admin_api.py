"""
Admin API - FastAPI router for catalog writes and base package management.

Every write goes through the pricing engine, so client prices are always
derived, never accepted from the request.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ..engine.errors import PricingError
from ..engine.models import CatalogOption, InteriorPackage, PackageComponents
from . import state
from .http_errors import http_error

router = APIRouter(prefix="/api/admin", tags=["admin"])


# Pydantic models for API
class OptionWrite(BaseModel):
    """Request model for creating or updating an option."""
    option_id: str
    plan_id: str
    classification: str
    name: str
    cost: float
    markup: float = 0.35
    min_markup: float = 200.0
    active: bool = True
    description: Optional[str] = None
    sort_order: int = 0


class ComponentsModel(BaseModel):
    """Component references of an interior package."""
    fixtures: list[str] = Field(default_factory=list)
    lvp: Optional[str] = None
    carpet: Optional[str] = None
    backsplash: Optional[str] = None
    master_bath_tile: Optional[str] = None
    secondary_bath_tile: Optional[str] = None
    countertop: Optional[str] = None
    primary_cabinets: Optional[str] = None
    secondary_cabinets: Optional[str] = None
    cabinet_hardware: Optional[str] = None


class PackageWrite(BaseModel):
    """Request model for creating or updating an interior package."""
    package_id: str
    plan_id: str
    name: str
    markup: float = 0.35
    min_markup: float = 200.0
    components: ComponentsModel = Field(default_factory=ComponentsModel)
    soft_close: bool = False
    soft_close_price: float = 0.0
    active: bool = True
    description: Optional[str] = None
    sort_order: int = 0


class PromoteRequest(BaseModel):
    """Request model for switching a plan's base package."""
    package_id: str
    expected_version: Optional[int] = None


class PriceResponse(BaseModel):
    """Response model for a priced record."""
    id: str
    total_cost: float
    client_price: float


def package_summary(package: InteriorPackage) -> dict:
    return jsonable_encoder(asdict(package))


def base_package_state(plan_id: str) -> dict:
    base = state.engine.resolver.resolve_base(plan_id)
    return {
        "plan_id": plan_id,
        "base_version": state.engine.resolver.base_version(plan_id),
        "base_package": package_summary(base) if base else None,
    }


# Endpoints

@router.put("/options", response_model=PriceResponse)
async def put_option(option_data: OptionWrite):
    """Create or update an option; its client price is derived from cost."""
    option = CatalogOption(
        id=option_data.option_id,
        plan_id=option_data.plan_id,
        classification=option_data.classification,
        name=option_data.name,
        cost=option_data.cost,
        markup=option_data.markup,
        min_markup=option_data.min_markup,
        is_active=option_data.active,
        description=option_data.description,
        sort_order=option_data.sort_order,
    )
    try:
        price = state.engine.compute_and_persist_price(option)
    except PricingError as e:
        raise http_error(e)
    return PriceResponse(id=option.id, total_cost=price.total_cost, client_price=price.client_price)


@router.put("/packages", response_model=PriceResponse)
async def put_package(package_data: PackageWrite):
    """Create or update an interior package, re-pricing siblings when it is the base."""
    package = InteriorPackage(
        id=package_data.package_id,
        plan_id=package_data.plan_id,
        name=package_data.name,
        markup=package_data.markup,
        min_markup=package_data.min_markup,
        components=PackageComponents(**package_data.components.model_dump()),
        soft_close=package_data.soft_close,
        soft_close_price=package_data.soft_close_price,
        is_active=package_data.active,
        description=package_data.description,
        sort_order=package_data.sort_order,
    )
    try:
        price = state.engine.compute_and_persist_price(package)
    except PricingError as e:
        raise http_error(e)
    return PriceResponse(id=package.id, total_cost=price.total_cost, client_price=price.client_price)


@router.get("/plans/{plan_id}/packages")
async def list_packages(plan_id: str, include_inactive: bool = False):
    """List a plan's packages with their derived prices."""
    packages = state.engine.store.list_packages(plan_id, active_only=not include_inactive)
    return [package_summary(p) for p in packages]


@router.get("/plans/{plan_id}/base-package")
async def get_base_package(plan_id: str):
    """Current base package and base version (for optimistic promotion)."""
    try:
        state.engine.store.get_plan(plan_id)
        return base_package_state(plan_id)
    except PricingError as e:
        raise http_error(e)


@router.post("/plans/{plan_id}/base-package")
async def promote_base_package(plan_id: str, request: PromoteRequest):
    """Make a package the plan's base and re-price every sibling."""
    try:
        updated = state.engine.promote_base_package(
            plan_id, request.package_id, expected_version=request.expected_version
        )
        result = base_package_state(plan_id)
    except PricingError as e:
        raise http_error(e)
    result["packages"] = [package_summary(p) for p in updated]
    return result


@router.post("/plans/{plan_id}/rebalance")
async def rebalance_base_package(plan_id: str):
    """Make the lowest-cost package the plan's base."""
    try:
        state.engine.rebalance_base_package(plan_id)
        return base_package_state(plan_id)
    except PricingError as e:
        raise http_error(e)
