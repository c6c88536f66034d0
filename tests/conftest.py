import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from home_pricing.config.settings import Settings
from home_pricing.engine.models import (
    CatalogOption,
    InteriorComponent,
    InteriorPackage,
    LotPricing,
    PackageComponents,
    Plan,
)
from home_pricing.engine.pricing_engine import PricingEngine
from home_pricing.services.catalog_store import CatalogStore


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings rooted in a temp dir, free of environment overrides."""
    for name in ('HOME_PRICING_DATA_DIR', 'HOME_PRICING_AUTO_PROMOTE', 'HOME_PRICING_LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    return Settings.load(project_root=tmp_path)


@pytest.fixture
def store():
    return CatalogStore()


@pytest.fixture
def engine(store, settings):
    engine = PricingEngine(store, settings=settings)
    store.save_plan(Plan(id="aspen", name="The Aspen", base_price=450000, width=40, length=60))
    return engine


@pytest.fixture
def catalog(engine, store):
    """
    The Aspen with a priced catalog:
    - Classic (base) package, total cost 15000
    - Signature upgrade, total cost 28000
    - options for every classification and one lot premium
    """
    components = [
        ("c-lvp", "lvp", 4000), ("c-carpet", "carpet", 2000), ("c-backsplash", "backsplash", 1000),
        ("c-counter", "countertop", 3000), ("c-cab", "cabinet", 5000),
        ("c-brass", "fixture", 1500), ("c-lvp-wide", "lvp", 6000), ("c-zellige", "backsplash", 2500),
        ("c-quartz", "countertop", 6500), ("c-cab-custom", "cabinet", 9500),
    ]
    for component_id, material, cost in components:
        store.save_component(InteriorComponent(
            id=component_id, plan_id="aspen", name=component_id, material=material, cost=cost,
        ))

    engine.compute_and_persist_price(InteriorPackage(
        id="classic", plan_id="aspen", name="Classic",
        components=PackageComponents(
            lvp="c-lvp", carpet="c-carpet", backsplash="c-backsplash",
            countertop="c-counter", primary_cabinets="c-cab",
        ),
    ))
    engine.compute_and_persist_price(InteriorPackage(
        id="signature", plan_id="aspen", name="Signature",
        components=PackageComponents(
            fixtures=["c-brass"], lvp="c-lvp-wide", carpet="c-carpet", backsplash="c-zellige",
            countertop="c-quartz", primary_cabinets="c-cab-custom",
        ),
    ))

    options = [
        ("elev-a", "elevation", "Elevation A", 0, 0.35, 0),
        ("elev-b", "elevation", "Elevation B", 10000, 0.2, 500),
        ("patio", "structural", "Covered Patio", 8000, 0.35, 200),
        ("bonus", "structural", "Bonus Room", 22000, 0.35, 200),
        ("fan", "additional", "Ceiling Fan Prewire", 150, 0.35, 200),
        ("kitchen-std", "kitchen_appliance", "Standard Kitchen", 0, 0.35, 0),
        ("laundry-std", "laundry_appliance", "Standard Laundry", 0, 0.35, 0),
    ]
    for option_id, classification, name, cost, markup, min_markup in options:
        engine.compute_and_persist_price(CatalogOption(
            id=option_id, plan_id="aspen", classification=classification, name=name,
            cost=cost, markup=markup, min_markup=min_markup,
        ))

    store.save_lot_pricing(LotPricing(id="lp-1", lot_id="f1-l1", plan_id="aspen", lot_premium=15000))
    return engine
