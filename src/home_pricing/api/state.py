"""
Shared API state - one store, engine and configuration service per process.

When the data directory holds a plans.csv the catalog is loaded from it at
import time; otherwise the API starts with an empty store.
"""
import logging
from typing import Optional

from ..config.settings import get_settings, Settings
from ..data.load_catalog import load_catalog
from ..engine.pricing_engine import PricingEngine
from ..services.catalog_store import CatalogStore
from ..services.configuration_service import ConfigurationService

logger = logging.getLogger(__name__)


def build_state(settings: Optional[Settings] = None) -> tuple[PricingEngine, ConfigurationService]:
    """Create the engine and configuration service, seeding from CSVs if present."""
    settings = settings or get_settings()
    store = CatalogStore()

    if settings.plans_csv.exists():
        engine, report = load_catalog(settings, store, write_report=False)
        for error in report["errors"]:
            logger.error("Catalog load: %s", error)
    else:
        logger.info("No catalog at %s; starting with an empty store", settings.data_dir)
        engine = PricingEngine(store, settings=settings)

    return engine, ConfigurationService(engine)


engine, configurations = build_state()
