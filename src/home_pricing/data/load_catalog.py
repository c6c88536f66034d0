"""
Catalog Loader - reads admin catalog CSVs into a store and prices everything.

Expected files (under settings.data_dir):
- plans.csv        plan_id, name, base_price, width, length, active
- options.csv      option_id, plan_id, classification, name, cost, markup, min_markup,
                   active, description, sort_order
- components.csv   component_id, plan_id, name, material, cost, active
- packages.csv     package_id, plan_id, name, markup, min_markup, soft_close,
                   soft_close_price, base_package, active, fixtures (';'-separated),
                   lvp, carpet, backsplash, master_bath_tile, secondary_bath_tile,
                   countertop, primary_cabinets, secondary_cabinets, cabinet_hardware,
                   sort_order
- lots.csv         lot_id, filing, lot, width, length, active
- lot_pricing.csv  pricing_id, lot_id, plan_id, lot_premium, active

Every price is derived through the engine; nothing priced is read from the
files. A plan with no base_package row gets its lowest-cost package as base.
"""
import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.errors import PricingError
from ..engine.models import (
    COMPONENT_MATERIALS,
    CatalogOption,
    InteriorComponent,
    InteriorPackage,
    Lot,
    LotPricing,
    PackageComponents,
    Plan,
)
from ..engine.pricing_engine import PricingEngine
from ..services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)


class RowError(ValueError):
    """A CSV cell could not be parsed."""


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


def parse_bool(value: str, default: bool = False) -> bool:
    """Parse a boolean from CSV string."""
    if not value or value.strip() == '':
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def parse_optional_str(value: str) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if not value or value.strip() == '':
        return None
    return value.strip()


def parse_float(row: dict, column: str, default: Optional[float] = None) -> float:
    """Parse a numeric cell; empty cells fall back to default or fail."""
    value = parse_optional_str(row.get(column, ''))
    if value is None:
        if default is None:
            raise RowError(f"{column} is required")
        return default
    try:
        return float(value.replace('$', '').replace(',', ''))
    except ValueError:
        raise RowError(f"{column} must be a number (got '{value}')")


def parse_int(row: dict, column: str, default: int = 0) -> int:
    value = parse_optional_str(row.get(column, ''))
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise RowError(f"{column} must be an integer (got '{value}')")


def require(row: dict, column: str) -> str:
    value = parse_optional_str(row.get(column, ''))
    if value is None:
        raise RowError(f"{column} is required")
    return value


def read_rows(path: Path) -> list[dict]:
    """Read a CSV as stripped strings; empty cells become ''."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [c.strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df.to_dict(orient='records')


def plan_from_row(row: dict) -> Plan:
    return Plan(
        id=require(row, 'plan_id'),
        name=require(row, 'name'),
        base_price=parse_float(row, 'base_price'),
        width=parse_float(row, 'width', 0.0),
        length=parse_float(row, 'length', 0.0),
        is_active=parse_bool(row.get('active', ''), default=True),
    )


def option_from_row(row: dict) -> CatalogOption:
    return CatalogOption(
        id=require(row, 'option_id'),
        plan_id=require(row, 'plan_id'),
        classification=require(row, 'classification'),
        name=require(row, 'name'),
        cost=parse_float(row, 'cost'),
        markup=parse_float(row, 'markup', 0.35),
        min_markup=parse_float(row, 'min_markup', 200.0),
        is_active=parse_bool(row.get('active', ''), default=True),
        description=parse_optional_str(row.get('description', '')),
        sort_order=parse_int(row, 'sort_order'),
    )


def component_from_row(row: dict) -> InteriorComponent:
    material = require(row, 'material')
    if material not in COMPONENT_MATERIALS:
        raise RowError(f"invalid material '{material}', must be one of: {', '.join(COMPONENT_MATERIALS)}")
    cost = parse_float(row, 'cost')
    if cost < 0:
        raise RowError(f"cost must be >= 0 (got {cost})")
    return InteriorComponent(
        id=require(row, 'component_id'),
        plan_id=require(row, 'plan_id'),
        name=require(row, 'name'),
        material=material,
        cost=cost,
        is_active=parse_bool(row.get('active', ''), default=True),
    )


def package_from_row(row: dict) -> InteriorPackage:
    fixtures = [f.strip() for f in row.get('fixtures', '').split(';') if f.strip()]
    components = PackageComponents(
        fixtures=fixtures,
        **{slot: parse_optional_str(row.get(slot, '')) for slot in PackageComponents.SINGLE_SLOTS},
    )
    return InteriorPackage(
        id=require(row, 'package_id'),
        plan_id=require(row, 'plan_id'),
        name=require(row, 'name'),
        markup=parse_float(row, 'markup', 0.35),
        min_markup=parse_float(row, 'min_markup', 200.0),
        components=components,
        soft_close=parse_bool(row.get('soft_close', '')),
        soft_close_price=parse_float(row, 'soft_close_price', 0.0),
        base_package=parse_bool(row.get('base_package', '')),
        is_active=parse_bool(row.get('active', ''), default=True),
        description=parse_optional_str(row.get('description', '')),
        sort_order=parse_int(row, 'sort_order'),
    )


def lot_from_row(row: dict) -> Lot:
    return Lot(
        id=require(row, 'lot_id'),
        filing=parse_int(row, 'filing'),
        lot=parse_int(row, 'lot'),
        width=parse_float(row, 'width'),
        length=parse_float(row, 'length'),
        is_active=parse_bool(row.get('active', ''), default=True),
    )


def lot_pricing_from_row(row: dict) -> LotPricing:
    premium = parse_float(row, 'lot_premium', 1000.0)
    if premium < 0:
        raise RowError(f"lot_premium must be >= 0 (got {premium})")
    return LotPricing(
        id=require(row, 'pricing_id'),
        lot_id=require(row, 'lot_id'),
        plan_id=require(row, 'plan_id'),
        lot_premium=premium,
        is_active=parse_bool(row.get('active', ''), default=True),
    )


def _parse_file(path: Path, label: str, parser, report: dict, required: bool = False) -> list:
    """Parse one CSV into records, collecting line-numbered errors in the report."""
    if not path.exists():
        msg = f"{label} file not found: {path}"
        if required:
            report["errors"].append(msg)
        else:
            report["warnings"].append(msg)
        return []

    report["input_files"][label] = {"path": str(path), "hash": get_file_hash(path)}

    records = []
    try:
        rows = read_rows(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        report["errors"].append(f"{label}: failed to read {path.name}. {e}")
        return []

    for line_num, row in enumerate(rows, start=2):  # +2 for 1-indexed header row
        try:
            records.append(parser(row))
        except RowError as e:
            report["errors"].append(f"{path.name} line {line_num}: {e}")
    return records


def load_catalog(
    settings: Optional[Settings] = None,
    store: Optional[CatalogStore] = None,
    write_report: bool = True,
) -> tuple[PricingEngine, dict]:
    """
    Load and price the catalog from CSV files.

    Args:
        settings: Optional settings override
        store: Store to load into (a new one by default)
        write_report: Save the build report JSON to settings.build_report

    Returns:
        (engine, report) - the engine wraps the populated store
    """
    settings = settings or get_settings()
    store = store or CatalogStore()
    engine = PricingEngine(store, settings=settings)

    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": [],
    }

    plans = _parse_file(settings.plans_csv, "plans", plan_from_row, report, required=True)
    options = _parse_file(settings.options_csv, "options", option_from_row, report)
    components = _parse_file(settings.components_csv, "components", component_from_row, report)
    packages = _parse_file(settings.packages_csv, "packages", package_from_row, report)
    lots = _parse_file(settings.lots_csv, "lots", lot_from_row, report)
    lot_pricings = _parse_file(settings.lot_pricing_csv, "lot_pricing", lot_pricing_from_row, report)

    for plan in plans:
        store.save_plan(plan)
    for lot in lots:
        store.save_lot(lot)
    for pricing in lot_pricings:
        if store.find_plan(pricing.plan_id) is None:
            report["errors"].append(f"lot_pricing {pricing.id}: unknown plan '{pricing.plan_id}'")
            continue
        store.save_lot_pricing(pricing)
    for component in components:
        store.save_component(component)

    priced_options = 0
    for option in options:
        try:
            engine.compute_and_persist_price(option)
            priced_options += 1
        except PricingError as e:
            report["errors"].append(f"option {option.id}: {e}")

    base_count = _load_packages(engine, packages, report)

    report["metrics"] = {
        "plans": len(plans),
        "options_priced": priced_options,
        "components": len(components),
        "packages": sum(len(store.list_packages(p.id, active_only=False)) for p in plans),
        "base_packages": base_count,
        "lots": len(lots),
        "lot_pricings": len(lot_pricings),
    }
    report["status"] = "failed" if report["errors"] else "success"

    logger.info(
        "Catalog load %s: %d plans, %d options, %d packages (%d errors)",
        report["status"], len(plans), priced_options, report["metrics"]["packages"], len(report["errors"]),
    )

    if write_report:
        report_path = settings.build_report
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2)
        report["output_file"] = str(report_path)

    return engine, report


def _load_packages(engine: PricingEngine, packages: list[InteriorPackage], report: dict) -> int:
    """Store packages per plan, then price each plan through base promotion."""
    store = engine.store
    by_plan: dict[str, list[InteriorPackage]] = {}
    for package in packages:
        by_plan.setdefault(package.plan_id, []).append(package)

    base_count = 0
    for plan_id, plan_packages in by_plan.items():
        if store.find_plan(plan_id) is None:
            report["errors"].append(f"packages: unknown plan '{plan_id}'")
            continue

        flagged = [p for p in plan_packages if p.base_package and p.is_active]
        if len(flagged) > 1:
            ids = ", ".join(p.id for p in flagged)
            report["errors"].append(f"packages: plan '{plan_id}' has more than one base package ({ids})")
            continue

        errors = []
        for package in plan_packages:
            errors.extend(f"package {package.id}: {e}" for e in engine.package_pricer.validate_package(package))
        if errors:
            report["errors"].extend(errors)
            continue

        try:
            with store.transaction():
                for package in plan_packages:
                    store.save_package(package)
                if flagged:
                    engine.promote_base_package(plan_id, flagged[0].id)
                    base = flagged[0]
                else:
                    base = engine.rebalance_base_package(plan_id)
        except PricingError as e:
            report["errors"].append(f"packages for plan '{plan_id}': {e}")
            continue

        if not flagged and base is None:
            report["warnings"].append(f"packages: plan '{plan_id}' has no active packages; no base package set")
        elif not flagged:
            report["warnings"].append(
                f"packages: plan '{plan_id}' has no base package; using the lowest-cost package '{base.id}'"
            )
        if base is not None:
            base_count += 1

    return base_count
