"""
Pricing Engine - entry points for the admin write path and the buyer flows.

Write path:
- compute_and_persist_price: validate, price and save an option or package
- promote_base_package: switch a plan's base package and cascade

Buyer path:
- aggregate_total: live preview total for a selection set
- finalize_configuration: authoritative total at save time, recomputed
  from stored catalog data; a client-submitted total is only compared
  and logged, never trusted
"""
import logging
from dataclasses import replace
from typing import Optional, Union

from ..config.settings import get_settings, Settings
from .aggregator import SelectionAggregator
from .base_package import BasePackageResolver
from .errors import NoBasePackage, NotFoundError, ValidationError
from .models import (
    AggregateResult,
    CatalogOption,
    InteriorPackage,
    PackagePrice,
    Plan,
    ResolvedRecords,
    SelectionSet,
)
from .money import is_finite_number, round_money
from .option_pricer import OptionPricer
from .package_pricer import PackagePricer

logger = logging.getLogger(__name__)


class PricingEngine:
    """
    Core pricing engine over a storage collaborator.

    The store must provide the CatalogStore interface (plans, options,
    components, packages, lot pricing, base versions and transaction()).
    """

    def __init__(self, store, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store = store
        self.option_pricer = OptionPricer()
        self.package_pricer = PackagePricer()
        self.resolver = BasePackageResolver(store, self.package_pricer)
        self.aggregator = SelectionAggregator()

    # ------------------------------------------------------------------
    # Admin write path
    # ------------------------------------------------------------------

    def compute_and_persist_price(self, record: Union[CatalogOption, InteriorPackage]) -> PackagePrice:
        """
        Price an option or package and save it.

        Returns:
            PackagePrice with the derived total_cost and client_price

        Raises:
            ValidationError: invalid cost/markup data (nothing is written)
            NotFoundError: the record's plan does not exist
            NoBasePackage: package for a plan with no base while
                auto-promotion is disabled
        """
        if isinstance(record, CatalogOption):
            return self._persist_option(record)
        if isinstance(record, InteriorPackage):
            return self._persist_package(record)
        raise ValidationError(f"Cannot price records of type {type(record).__name__}")

    def _require_plan(self, plan_id: str) -> Plan:
        plan = self.store.find_plan(plan_id)
        if plan is None:
            raise NotFoundError("Plan", plan_id)
        return plan

    def _persist_option(self, option: CatalogOption) -> PackagePrice:
        priced = self.option_pricer.price_option(option)
        self._require_plan(option.plan_id)

        self.store.save_option(priced)
        logger.info(
            "Priced %s option %s: cost %.2f -> client price %.2f",
            priced.classification, priced.id, priced.cost, priced.client_price,
        )
        return PackagePrice(total_cost=round_money(priced.cost), client_price=priced.client_price)

    def _persist_package(self, package: InteriorPackage) -> PackagePrice:
        errors = self.package_pricer.validate_package(package)
        if errors:
            raise ValidationError(errors)
        plan_id = package.plan_id
        self._require_plan(plan_id)

        with self.resolver.plan_lock(plan_id):
            existing = self.store.find_package(package.id)
            if existing is not None and existing.plan_id != plan_id:
                raise ValidationError(
                    f"Package '{package.id}' belongs to plan '{existing.plan_id}' and cannot move plans"
                )

            # The base flag is owned by the resolver, never by the submitted record
            package = replace(package, base_package=bool(existing and existing.base_package))

            components = self.store.components_for_plan(plan_id)
            self.package_pricer.total_cost(package, components)

            base = self.resolver.resolve_base(plan_id)

            if not package.is_active:
                return self._persist_inactive_package(package, base, components)

            if base is None:
                if not self.settings.auto_promote_first_package:
                    raise NoBasePackage(plan_id)
                with self.store.transaction():
                    self.store.save_package(package)
                    self.resolver.auto_promote_if_missing(plan_id, package.id)
            elif package.base_package:
                # The base's own cost moved, so every sibling's delta moved too
                with self.store.transaction():
                    self.store.save_package(package)
                    self.resolver.recalculate_all(plan_id)
            else:
                self.store.save_package(self.package_pricer.price_package(package, base, components))

            saved = self.store.get_package(package.id)

        logger.info(
            "Priced package %s for plan %s: total cost %.2f -> client price %.2f%s",
            saved.id, plan_id, saved.total_cost, saved.client_price,
            " (base)" if saved.base_package else "",
        )
        return PackagePrice(total_cost=saved.total_cost, client_price=saved.client_price)

    def _persist_inactive_package(self, package, base, components) -> PackagePrice:
        plan_id = package.plan_id

        with self.store.transaction():
            if package.base_package:
                siblings = [p for p in self.store.list_packages(plan_id) if p.id != package.id]
                if siblings:
                    raise ValidationError(
                        f"Package '{package.id}' is the base package for plan '{plan_id}'; "
                        "promote another package before deactivating it"
                    )
                package = replace(package, base_package=False)
                self.store.bump_base_version(plan_id)

            total_cost = self.package_pricer.total_cost(package, components)
            if base is not None and base.id != package.id:
                client_price = self.package_pricer.client_price(package, total_cost, base)
            else:
                client_price = round_money(package.min_markup)

            self.store.save_package(replace(package, total_cost=total_cost, client_price=client_price))

        logger.info("Saved inactive package %s for plan %s", package.id, plan_id)
        return PackagePrice(total_cost=total_cost, client_price=client_price)

    def promote_base_package(
        self,
        plan_id: str,
        package_id: str,
        expected_version: Optional[int] = None,
    ) -> list[InteriorPackage]:
        """Make package_id the plan's base package and re-price the plan."""
        self._require_plan(plan_id)
        return self.resolver.promote(plan_id, package_id, expected_version=expected_version)

    def rebalance_base_package(self, plan_id: str) -> Optional[InteriorPackage]:
        """Make the plan's lowest-cost package its base."""
        self._require_plan(plan_id)
        return self.resolver.rebalance_to_lowest_cost(plan_id)

    # ------------------------------------------------------------------
    # Buyer path
    # ------------------------------------------------------------------

    def resolve_records(self, selection: SelectionSet) -> ResolvedRecords:
        """Look up every selected id in the store. Unknown ids are left out."""
        records = ResolvedRecords()

        for option_id in selection.option_ids():
            option = self.store.find_option(option_id)
            if option is not None:
                records.options[option_id] = option

        if selection.interior_package_id:
            package = self.store.find_package(selection.interior_package_id)
            if package is not None:
                records.packages[package.id] = package

        if selection.lot_pricing_id:
            pricing = self.store.find_lot_pricing(selection.lot_pricing_id)
            if pricing is not None:
                records.lot_pricings[pricing.id] = pricing

        return records

    def aggregate_total(
        self,
        plan: Plan,
        selection: SelectionSet,
        records: Optional[ResolvedRecords] = None,
    ) -> AggregateResult:
        """Live preview total. Records default to the store's current data."""
        if records is None:
            records = self.resolve_records(selection)
        return self.aggregator.aggregate(plan, selection, records)

    def preview(self, selection: SelectionSet) -> AggregateResult:
        """Live preview for a selection, resolving plan and records from the store."""
        plan = self.store.get_plan(selection.plan_id)
        return self.aggregate_total(plan, selection)

    def finalize_configuration(
        self,
        selection: SelectionSet,
        client_total: Optional[float] = None,
    ) -> AggregateResult:
        """
        Compute the authoritative total for a selection at save time.

        The total is always recomputed from stored catalog data. A
        client_total that disagrees is logged as a data-integrity signal and
        otherwise ignored.
        """
        plan = self.store.get_plan(selection.plan_id)
        result = self.aggregator.aggregate(plan, selection, self.resolve_records(selection))

        if client_total is not None:
            submitted = round_money(client_total) if is_finite_number(client_total) else None
            if submitted != result.grand_total:
                logger.warning(
                    "Client total %r for plan %s does not match server total %.2f; using server total",
                    client_total, plan.id, result.grand_total,
                )
                result.add_warning(
                    f"Submitted total {client_total!r} ignored; server total {result.grand_total:.2f} used"
                )

        return result
