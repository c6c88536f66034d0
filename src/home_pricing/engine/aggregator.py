"""
Selection Aggregator - totals a buyer's selections for one plan.

    grand_total = plan.base_price
                + elevation + interior package
                + sum(structural) + sum(additional)
                + kitchen appliance + laundry appliance
                + lot premium

This is the only implementation of the total. The live preview and the
save path both call it, so the two can never disagree. Anything that
cannot be priced (missing id, unknown or inactive record, wrong category,
non-finite price) contributes zero, produces no line item and is reported
as a warning instead of failing.
"""
import logging
from typing import Optional

from .models import (
    ADDITIONAL,
    BASE_PRICE,
    ELEVATION,
    INTERIOR_PACKAGE,
    KITCHEN_APPLIANCE,
    LAUNDRY_APPLIANCE,
    LINE_CATEGORIES,
    LOT_PREMIUM,
    STRUCTURAL,
    AggregateResult,
    LineItem,
    Plan,
    ResolvedRecords,
    SelectionSet,
)
from .money import format_price, is_finite_number, round_money

logger = logging.getLogger(__name__)

CATEGORY_LABELS = {
    BASE_PRICE: "Base Price",
    ELEVATION: "Elevation",
    INTERIOR_PACKAGE: "Interior Package",
    STRUCTURAL: "Structural Options",
    ADDITIONAL: "Additional Options",
    KITCHEN_APPLIANCE: "Kitchen Appliance",
    LAUNDRY_APPLIANCE: "Laundry Appliance",
    LOT_PREMIUM: "Lot Premium",
}


class SelectionAggregator:
    """Pure aggregation over a plan, a selection set and resolved records."""

    def aggregate(
        self,
        plan: Plan,
        selection: SelectionSet,
        records: Optional[ResolvedRecords] = None,
    ) -> AggregateResult:
        """
        Total the selection set.

        Args:
            plan: The plan being configured (supplies base_price)
            selection: The buyer's choices
            records: Lookup tables for the selected ids

        Returns:
            AggregateResult with line items, per-category subtotals and trace
        """
        records = records or ResolvedRecords()

        base_price = plan.base_price if is_finite_number(plan.base_price) else 0.0
        result = AggregateResult(
            plan_id=plan.id,
            base_price=round_money(base_price),
            grand_total=0.0,
            subtotals={category: 0.0 for category in LINE_CATEGORIES},
        )

        if not is_finite_number(plan.base_price):
            result.add_warning(f"Plan {plan.id} has no valid base price; using $0")

        if selection.plan_id and selection.plan_id != plan.id:
            result.add_warning(
                f"Selection is for plan {selection.plan_id}, aggregating against plan {plan.id}"
            )

        result.line_items.append(LineItem(
            category=BASE_PRICE,
            label=plan.name or CATEGORY_LABELS[BASE_PRICE],
            price=result.base_price,
            record_id=plan.id,
        ))
        result.subtotals[BASE_PRICE] = result.base_price
        result.add_trace("Base Price", plan.name or plan.id, format_price(result.base_price))

        self._add_option(result, plan, records, ELEVATION, selection.elevation_id)
        self._add_package(result, plan, records, selection.interior_package_id)
        for option_id in dict.fromkeys(selection.structural_ids or []):
            self._add_option(result, plan, records, STRUCTURAL, option_id)
        for option_id in dict.fromkeys(selection.additional_ids or []):
            self._add_option(result, plan, records, ADDITIONAL, option_id)
        self._add_option(result, plan, records, KITCHEN_APPLIANCE, selection.kitchen_appliance_id)
        self._add_option(result, plan, records, LAUNDRY_APPLIANCE, selection.laundry_appliance_id)
        self._add_lot(result, plan, records, selection.lot_pricing_id)

        # Line prices are already in cents; rounding the sum drops float noise
        total = sum(item.price for item in result.line_items)
        result.grand_total = round_money(total)
        result.subtotals = {k: round_money(v) for k, v in result.subtotals.items()}
        result.selected_count = sum(1 for item in result.line_items if item.category != BASE_PRICE)
        result.add_trace("Grand Total", f"{result.selected_count} selection(s)", format_price(result.grand_total))

        for warning in result.warnings:
            logger.warning("Plan %s aggregation: %s", plan.id, warning)

        return result

    def _add_line(self, result: AggregateResult, category: str, label: str, price, record_id: str):
        if not is_finite_number(price):
            result.add_warning(f"{CATEGORY_LABELS[category]} '{record_id}' has no valid price; skipped")
            return
        item = LineItem(category=category, label=label, price=round_money(price), record_id=record_id)
        result.line_items.append(item)
        result.subtotals[category] += item.price
        shown = "Included" if item.is_included else f"+{format_price(item.price)}"
        result.add_trace(CATEGORY_LABELS[category], label, shown)

    def _add_option(self, result, plan, records, category: str, option_id: Optional[str]):
        if not option_id:
            return

        option = records.options.get(option_id)
        if option is None:
            result.add_warning(f"{CATEGORY_LABELS[category]} '{option_id}' not found; skipped")
            return
        if not option.is_active:
            result.add_warning(f"{CATEGORY_LABELS[category]} '{option_id}' is no longer available; skipped")
            return
        if option.classification != category:
            result.add_warning(
                f"Option '{option_id}' is {option.classification}, not {category}; skipped"
            )
            return
        if option.plan_id != plan.id:
            result.add_warning(f"Option '{option_id}' belongs to plan {option.plan_id}; skipped")
            return

        self._add_line(result, category, option.name, option.client_price, option_id)

    def _add_package(self, result, plan, records, package_id: Optional[str]):
        if not package_id:
            return

        package = records.packages.get(package_id)
        if package is None:
            result.add_warning(f"Interior package '{package_id}' not found; skipped")
            return
        if not package.is_active:
            result.add_warning(f"Interior package '{package_id}' is no longer available; skipped")
            return
        if package.plan_id != plan.id:
            result.add_warning(f"Interior package '{package_id}' belongs to plan {package.plan_id}; skipped")
            return

        self._add_line(result, INTERIOR_PACKAGE, package.name, package.client_price, package_id)

    def _add_lot(self, result, plan, records, pricing_id: Optional[str]):
        if not pricing_id:
            return

        pricing = records.lot_pricings.get(pricing_id)
        if pricing is None:
            result.add_warning(f"Lot pricing '{pricing_id}' not found; skipped")
            return
        if not pricing.is_active:
            result.add_warning(f"Lot pricing '{pricing_id}' is no longer available; skipped")
            return
        if pricing.plan_id != plan.id:
            result.add_warning(f"Lot pricing '{pricing_id}' belongs to plan {pricing.plan_id}; skipped")
            return

        self._add_line(result, LOT_PREMIUM, f"Lot {pricing.lot_id}", pricing.lot_premium, pricing_id)
