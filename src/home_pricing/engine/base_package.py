"""
Base Package Resolver - owns the one-base-package-per-plan invariant.

Every upgrade package is priced as a delta from its plan's base package,
so changing the base (or the base's own cost) re-prices every sibling.
All of that happens here, under a per-plan lock and inside a single store
transaction, so a plan is never left with two bases, zero bases, or
packages priced against different baselines.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Optional

from .errors import (
    CascadeError,
    ConcurrentPromotionError,
    IntegrityError,
    ValidationError,
)
from .models import InteriorPackage
from .package_pricer import PackagePricer

logger = logging.getLogger(__name__)


class BasePackageResolver:
    """
    Resolves, promotes and cascades base packages for plans.

    Operations on the same plan are serialized with a re-entrant per-plan
    lock. Each successful promotion bumps the plan's base version; callers
    that pass expected_version get an optimistic check on top.
    """

    def __init__(self, store, pricer: Optional[PackagePricer] = None):
        self.store = store
        self.pricer = pricer or PackagePricer()
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def plan_lock(self, plan_id: str):
        """Hold the mutual-exclusion lock for one plan's package set."""
        with self._locks_guard:
            lock = self._locks.setdefault(plan_id, threading.RLock())
        with lock:
            yield

    def resolve_base(self, plan_id: str) -> Optional[InteriorPackage]:
        """
        Return the plan's active base package, or None.

        Raises:
            IntegrityError: if storage holds more than one active base
        """
        bases = [p for p in self.store.list_packages(plan_id, active_only=True) if p.base_package]
        if len(bases) > 1:
            ids = ", ".join(p.id for p in bases)
            raise IntegrityError(f"Plan '{plan_id}' has {len(bases)} active base packages: {ids}")
        return bases[0] if bases else None

    def base_version(self, plan_id: str) -> int:
        return self.store.get_base_version(plan_id)

    def recalculate_all(self, plan_id: str) -> list[InteriorPackage]:
        """
        Re-price every active package of a plan against the current base.

        The base is priced first so siblings see its fresh total_cost.
        All-or-nothing: any failure undoes every write of the batch.

        Returns the updated packages, base first.
        """
        with self.plan_lock(plan_id), self.store.transaction():
            components = self.store.components_for_plan(plan_id)
            base = self.resolve_base(plan_id)
            updated = []

            if base is not None:
                base = self.pricer.price_package(base, None, components)
                self.store.save_package(base)
                updated.append(base)

            for package in self.store.list_packages(plan_id, active_only=True):
                if base is not None and package.id == base.id:
                    continue
                priced = self.pricer.price_package(package, base, components)
                self.store.save_package(priced)
                updated.append(priced)

            logger.info("Recalculated %d package(s) for plan %s", len(updated), plan_id)
            return updated

    def promote(
        self,
        plan_id: str,
        package_id: str,
        expected_version: Optional[int] = None,
    ) -> list[InteriorPackage]:
        """
        Make package_id the plan's base package and re-price its siblings.

        Raises:
            NotFoundError: unknown package
            ValidationError: package is inactive or belongs to another plan
            ConcurrentPromotionError: expected_version is stale
            CascadeError: re-pricing failed; the prior baseline is kept
        """
        with self.plan_lock(plan_id):
            current_version = self.store.get_base_version(plan_id)
            if expected_version is not None and expected_version != current_version:
                raise ConcurrentPromotionError(plan_id, expected_version, current_version)

            target = self.store.get_package(package_id)
            if target.plan_id != plan_id:
                raise ValidationError(
                    f"Package '{package_id}' belongs to plan '{target.plan_id}', not '{plan_id}'"
                )
            if not target.is_active:
                raise ValidationError(f"Package '{package_id}' is inactive and cannot become the base")

            prior = self.resolve_base(plan_id)

            try:
                with self.store.transaction():
                    # Inactive packages lose the flag too, so reactivating one
                    # can never produce a second base.
                    for package in self.store.list_packages(plan_id, active_only=False):
                        if package.base_package and package.id != package_id:
                            self.store.save_package(replace(package, base_package=False))

                    self.store.save_package(replace(target, base_package=True))
                    updated = self.recalculate_all(plan_id)
                    version = self.store.bump_base_version(plan_id)
            except Exception as e:
                logger.error(
                    "Promotion of package %s for plan %s failed, keeping base %s: %s",
                    package_id, plan_id, prior.id if prior else None, e,
                )
                raise CascadeError(plan_id, str(e)) from e

            logger.info(
                "Promoted package %s to base for plan %s (was %s, version %d)",
                package_id, plan_id, prior.id if prior else None, version,
            )
            return updated

    def auto_promote_if_missing(self, plan_id: str, package_id: str) -> bool:
        """
        Promote package_id if the plan has no active base package.

        Returns True when a promotion happened.
        """
        with self.plan_lock(plan_id):
            if self.resolve_base(plan_id) is not None:
                return False
            logger.info("Plan %s has no base package; auto-promoting %s", plan_id, package_id)
            self.promote(plan_id, package_id)
            return True

    def rebalance_to_lowest_cost(self, plan_id: str) -> Optional[InteriorPackage]:
        """
        Make the lowest-cost active package the base.

        On a tie the current base keeps its place. Returns the base package,
        or None if the plan has no active packages.
        """
        with self.plan_lock(plan_id):
            packages = self.store.list_packages(plan_id, active_only=True)
            if not packages:
                return None

            components = self.store.components_for_plan(plan_id)
            totals = {p.id: self.pricer.total_cost(p, components) for p in packages}
            lowest = min(totals.values())
            candidates = [p for p in packages if totals[p.id] == lowest]

            chosen = next((p for p in candidates if p.base_package), candidates[0])
            self.promote(plan_id, chosen.id)
            return self.store.get_package(chosen.id)
