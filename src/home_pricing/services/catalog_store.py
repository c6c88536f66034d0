"""
Catalog Store - in-memory storage collaborator for the pricing core.

Holds plans, catalog options, interior components, packages, lots, lot
pricing and saved home configurations. Records are copied on the way in
and on the way out, so callers can never mutate stored state directly.

Writes made inside transaction() are staged per thread and published to
the shared tables in one step when the outermost transaction commits, so
other threads never see a half-finished batch. Nested transactions act as
savepoints.
"""
import copy
import logging
import threading
from contextlib import contextmanager
from typing import Optional

from ..engine.errors import ConfigurationLocked, NotFoundError
from ..engine.models import (
    CatalogOption,
    InteriorComponent,
    InteriorPackage,
    Lot,
    LotPricing,
    PersistedHomeConfiguration,
    Plan,
)

logger = logging.getLogger(__name__)

_MISSING = object()


class CatalogStore:
    """Thread-safe in-memory store with per-thread staged transactions."""

    TABLES = (
        'plans',
        'options',
        'components',
        'packages',
        'lots',
        'lot_pricings',
        'configurations',
        'base_versions',
    )

    KINDS = {
        'plans': 'Plan',
        'options': 'Option',
        'components': 'Component',
        'packages': 'Package',
        'lots': 'Lot',
        'lot_pricings': 'Lot pricing',
        'configurations': 'Configuration',
    }

    def __init__(self):
        self._lock = threading.RLock()
        self._tables: dict[str, dict] = {name: {} for name in self.TABLES}
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _layers(self) -> list[dict]:
        """This thread's staged write layers, outermost transaction first."""
        layers = getattr(self._local, 'layers', None)
        if layers is None:
            layers = []
            self._local.layers = layers
        return layers

    @contextmanager
    def transaction(self):
        """
        Stage every write made in the block and publish them together.

        Staged writes are visible only to this thread until the outermost
        transaction commits; if the block raises they are discarded.
        """
        layers = self._layers()
        layer: dict[tuple[str, str], object] = {}
        layers.append(layer)

        try:
            yield self
        except BaseException:
            layers.pop()
            if layer:
                logger.warning("Discarded %d staged store write(s)", len(layer))
            raise

        layers.pop()
        if layers:
            # Savepoint released into the enclosing transaction
            layers[-1].update(layer)
        else:
            self._publish(layer)

    def _publish(self, layer: dict):
        with self._lock:
            for (table, key), value in layer.items():
                if value is _MISSING:
                    self._tables[table].pop(key, None)
                else:
                    self._tables[table][key] = value

    def _staged(self, table: str, key: str):
        for layer in reversed(self._layers()):
            if (table, key) in layer:
                return layer[(table, key)]
        return None

    # ------------------------------------------------------------------
    # Generic table access
    # ------------------------------------------------------------------

    def _lookup(self, table: str, key: str):
        staged = self._staged(table, key)
        if staged is not None:
            return None if staged is _MISSING else staged
        with self._lock:
            return self._tables[table].get(key)

    def _find(self, table: str, key: str):
        value = self._lookup(table, key)
        return copy.deepcopy(value) if value is not None else None

    def _get(self, table: str, key: str):
        value = self._find(table, key)
        if value is None:
            raise NotFoundError(self.KINDS[table], key)
        return value

    def _put(self, table: str, key: str, value):
        layers = self._layers()
        if layers:
            layers[-1][(table, key)] = copy.deepcopy(value)
            return
        with self._lock:
            self._tables[table][key] = copy.deepcopy(value)

    def _delete(self, table: str, key: str) -> bool:
        if self._lookup(table, key) is None:
            return False
        layers = self._layers()
        if layers:
            layers[-1][(table, key)] = _MISSING
            return True
        with self._lock:
            self._tables[table].pop(key, None)
        return True

    def _values(self, table: str) -> list:
        with self._lock:
            merged = dict(self._tables[table])
        for layer in self._layers():
            for (layer_table, key), value in layer.items():
                if layer_table != table:
                    continue
                if value is _MISSING:
                    merged.pop(key, None)
                else:
                    merged[key] = value
        return [copy.deepcopy(v) for v in merged.values()]

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def save_plan(self, plan: Plan) -> Plan:
        self._put('plans', plan.id, plan)
        return plan

    def get_plan(self, plan_id: str) -> Plan:
        return self._get('plans', plan_id)

    def find_plan(self, plan_id: str) -> Optional[Plan]:
        return self._find('plans', plan_id)

    def list_plans(self) -> list[Plan]:
        return self._values('plans')

    # ------------------------------------------------------------------
    # Catalog options
    # ------------------------------------------------------------------

    def save_option(self, option: CatalogOption) -> CatalogOption:
        self._put('options', option.id, option)
        return option

    def get_option(self, option_id: str) -> CatalogOption:
        return self._get('options', option_id)

    def find_option(self, option_id: str) -> Optional[CatalogOption]:
        return self._find('options', option_id)

    def list_options(
        self,
        plan_id: Optional[str] = None,
        classification: Optional[str] = None,
        active_only: bool = False,
    ) -> list[CatalogOption]:
        options = [
            o for o in self._values('options')
            if (plan_id is None or o.plan_id == plan_id)
            and (classification is None or o.classification == classification)
            and (not active_only or o.is_active)
        ]
        options.sort(key=lambda o: (o.sort_order, o.name))
        return options

    # ------------------------------------------------------------------
    # Interior components
    # ------------------------------------------------------------------

    def save_component(self, component: InteriorComponent) -> InteriorComponent:
        self._put('components', component.id, component)
        return component

    def components_for_plan(self, plan_id: str) -> dict[str, InteriorComponent]:
        return {c.id: c for c in self._values('components') if c.plan_id == plan_id}

    # ------------------------------------------------------------------
    # Interior packages
    # ------------------------------------------------------------------

    def save_package(self, package: InteriorPackage) -> InteriorPackage:
        self._put('packages', package.id, package)
        return package

    def get_package(self, package_id: str) -> InteriorPackage:
        return self._get('packages', package_id)

    def find_package(self, package_id: str) -> Optional[InteriorPackage]:
        return self._find('packages', package_id)

    def list_packages(self, plan_id: str, active_only: bool = True) -> list[InteriorPackage]:
        packages = [
            p for p in self._values('packages')
            if p.plan_id == plan_id and (not active_only or p.is_active)
        ]
        packages.sort(key=lambda p: (p.sort_order, p.name))
        return packages

    def get_base_version(self, plan_id: str) -> int:
        return self._lookup('base_versions', plan_id) or 0

    def bump_base_version(self, plan_id: str) -> int:
        with self._lock:
            version = self.get_base_version(plan_id) + 1
            self._put('base_versions', plan_id, version)
            return version

    # ------------------------------------------------------------------
    # Lots and lot pricing
    # ------------------------------------------------------------------

    def save_lot(self, lot: Lot) -> Lot:
        self._put('lots', lot.id, lot)
        return lot

    def list_lots(self, active_only: bool = True) -> list[Lot]:
        lots = [lot for lot in self._values('lots') if not active_only or lot.is_active]
        lots.sort(key=lambda lot: (lot.filing, lot.lot))
        return lots

    def save_lot_pricing(self, pricing: LotPricing) -> LotPricing:
        self._put('lot_pricings', pricing.id, pricing)
        return pricing

    def find_lot_pricing(self, pricing_id: str) -> Optional[LotPricing]:
        return self._find('lot_pricings', pricing_id)

    def list_lot_pricings(self, plan_id: str) -> list[LotPricing]:
        return [p for p in self._values('lot_pricings') if p.plan_id == plan_id]

    # ------------------------------------------------------------------
    # Saved home configurations
    # ------------------------------------------------------------------

    def save_configuration(self, configuration: PersistedHomeConfiguration) -> PersistedHomeConfiguration:
        self._put('configurations', configuration.id, configuration)
        return configuration

    def save_open_configuration(self, configuration: PersistedHomeConfiguration) -> PersistedHomeConfiguration:
        """Save a configuration unless the stored one has been completed meanwhile."""
        with self._lock:
            existing = self._lookup('configurations', configuration.id)
            if existing is not None and existing.is_complete:
                raise ConfigurationLocked(configuration.id)
            self._put('configurations', configuration.id, configuration)
        return configuration

    def find_configuration(self, configuration_id: str) -> Optional[PersistedHomeConfiguration]:
        return self._find('configurations', configuration_id)

    def list_configurations(self, user_id: str) -> list[PersistedHomeConfiguration]:
        configs = [c for c in self._values('configurations') if c.user_id == user_id]
        configs.sort(key=lambda c: c.created_at or '')
        return configs

    def delete_configuration(self, configuration_id: str) -> bool:
        return self._delete('configurations', configuration_id)
