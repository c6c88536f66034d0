#!/usr/bin/env python
"""
Catalog pipeline - loads the catalog CSVs, prices everything and writes the build report.

Usage:
    python scripts/load_catalog.py
"""
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from home_pricing.config.logging import setup_logging
from home_pricing.config.settings import get_settings
from home_pricing.data.load_catalog import load_catalog
from home_pricing.engine.money import format_price


def main():
    settings = get_settings()
    setup_logging(settings.log_level)

    print("=" * 60)
    print("HOME PRICING CATALOG LOAD")
    print("=" * 60)
    print()

    engine, report = load_catalog(settings)

    for warning in report["warnings"]:
        print(f"  WARNING: {warning}")

    if report["status"] != "success":
        print("\n❌ LOAD FAILED")
        for error in report["errors"]:
            print(f"  ERROR: {error}")
        sys.exit(1)

    print()
    print("=" * 60)
    print("✅ LOAD COMPLETE")
    print("=" * 60)
    print()
    print("Summary:")
    for name, value in report["metrics"].items():
        print(f"  {name}: {value}")
    print()
    print("Base packages:")
    for plan in engine.store.list_plans():
        base = engine.resolver.resolve_base(plan.id)
        if base is None:
            print(f"  {plan.name}: none")
        else:
            print(f"  {plan.name}: {base.name} (cost {format_price(base.total_cost)})")
    print()
    print(f"Report: {report.get('output_file')}")


if __name__ == "__main__":
    main()
