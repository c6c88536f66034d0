"""
Data models for the pricing core.

Uses dataclasses for structured, type-safe data representation.
Catalog records (options, components, packages, lot pricing) are owned by a
Plan; selection sets and saved configurations are owned by a user and
reference catalog data by id only.
"""
from dataclasses import dataclass, field
from typing import Iterator, Optional


# Catalog option classifications
ELEVATION = "elevation"
STRUCTURAL = "structural"
ADDITIONAL = "additional"
KITCHEN_APPLIANCE = "kitchen_appliance"
LAUNDRY_APPLIANCE = "laundry_appliance"

OPTION_CLASSIFICATIONS = (
    ELEVATION,
    STRUCTURAL,
    ADDITIONAL,
    KITCHEN_APPLIANCE,
    LAUNDRY_APPLIANCE,
)

# Line item categories (option classifications plus the non-option ones)
BASE_PRICE = "base_price"
INTERIOR_PACKAGE = "interior_package"
LOT_PREMIUM = "lot_premium"

LINE_CATEGORIES = (
    BASE_PRICE,
    ELEVATION,
    INTERIOR_PACKAGE,
    STRUCTURAL,
    ADDITIONAL,
    KITCHEN_APPLIANCE,
    LAUNDRY_APPLIANCE,
    LOT_PREMIUM,
)

# Interior component materials
COMPONENT_MATERIALS = (
    "fixture",
    "lvp",
    "carpet",
    "backsplash",
    "masterBathTile",
    "secondaryBathTile",
    "countertop",
    "cabinet",
    "cabinetHardware",
)


@dataclass
class TraceStep:
    """A single step in a pricing trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class Plan:
    """A floor plan with its base price and footprint."""
    id: str
    name: str
    base_price: float
    width: float = 0.0
    length: float = 0.0
    is_active: bool = True


@dataclass
class CatalogOption:
    """A single purchasable option (elevation, structural, appliance, additional)."""
    id: str
    plan_id: str
    classification: str
    name: str
    cost: float
    markup: float = 0.35
    min_markup: float = 200.0
    is_active: bool = True
    client_price: float = 0.0
    description: Optional[str] = None
    sort_order: int = 0


@dataclass
class InteriorComponent:
    """A finish (flooring, tile, cabinets...) referenced by interior packages."""
    id: str
    plan_id: str
    name: str
    material: str
    cost: float
    is_active: bool = True


@dataclass
class PackageComponents:
    """Component references for an interior package, one slot per finish."""
    fixtures: list[str] = field(default_factory=list)
    lvp: Optional[str] = None
    carpet: Optional[str] = None
    backsplash: Optional[str] = None
    master_bath_tile: Optional[str] = None
    secondary_bath_tile: Optional[str] = None
    countertop: Optional[str] = None
    primary_cabinets: Optional[str] = None
    secondary_cabinets: Optional[str] = None
    cabinet_hardware: Optional[str] = None

    SINGLE_SLOTS = (
        'lvp',
        'carpet',
        'backsplash',
        'master_bath_tile',
        'secondary_bath_tile',
        'countertop',
        'primary_cabinets',
        'secondary_cabinets',
        'cabinet_hardware',
    )

    def iter_refs(self) -> Iterator[tuple[str, str]]:
        """Yield (slot, component_id) for every populated slot."""
        for component_id in self.fixtures:
            if component_id:
                yield 'fixtures', component_id
        for slot in self.SINGLE_SLOTS:
            component_id = getattr(self, slot)
            if component_id:
                yield slot, component_id


@dataclass
class InteriorPackage:
    """
    An interior finish package for a plan.

    total_cost and client_price are derived by the pricer, never authored.
    """
    id: str
    plan_id: str
    name: str
    markup: float = 0.35
    min_markup: float = 200.0
    components: PackageComponents = field(default_factory=PackageComponents)
    soft_close: bool = False
    soft_close_price: float = 0.0
    base_package: bool = False
    is_active: bool = True
    total_cost: float = 0.0
    client_price: float = 0.0
    description: Optional[str] = None
    sort_order: int = 0


@dataclass
class Lot:
    """A buildable lot."""
    id: str
    filing: int
    lot: int
    width: float
    length: float
    is_active: bool = True


@dataclass
class LotPricing:
    """The premium charged for building a given plan on a given lot."""
    id: str
    lot_id: str
    plan_id: str
    lot_premium: float
    is_active: bool = True


@dataclass
class PackagePrice:
    """Derived prices returned by the write path."""
    total_cost: float
    client_price: float


@dataclass
class SelectionSet:
    """A buyer's in-progress choices for one plan."""
    plan_id: str
    elevation_id: Optional[str] = None
    interior_package_id: Optional[str] = None
    structural_ids: list[str] = field(default_factory=list)
    additional_ids: list[str] = field(default_factory=list)
    kitchen_appliance_id: Optional[str] = None
    laundry_appliance_id: Optional[str] = None
    lot_pricing_id: Optional[str] = None
    color_scheme: Optional[int] = None

    def option_ids(self) -> list[str]:
        """All selected catalog option ids, duplicates removed."""
        ids = [self.elevation_id, *self.structural_ids, *self.additional_ids,
               self.kitchen_appliance_id, self.laundry_appliance_id]
        return list(dict.fromkeys(i for i in ids if i))


@dataclass
class ResolvedRecords:
    """Catalog records the aggregator may look selections up in, keyed by id."""
    options: dict[str, CatalogOption] = field(default_factory=dict)
    packages: dict[str, InteriorPackage] = field(default_factory=dict)
    lot_pricings: dict[str, LotPricing] = field(default_factory=dict)


@dataclass
class LineItem:
    """A single priced selection in an aggregated total."""
    category: str
    label: str
    price: float
    record_id: Optional[str] = None

    @property
    def is_included(self) -> bool:
        """Zero-priced selections render as 'Included' rather than '+$0'."""
        return self.price == 0

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "label": self.label,
            "price": self.price,
            "is_included": self.is_included,
            "record_id": self.record_id,
        }


@dataclass
class AggregateResult:
    """Complete result of totalling a selection set."""
    plan_id: str
    base_price: float
    grand_total: float
    line_items: list[LineItem] = field(default_factory=list)
    subtotals: dict[str, float] = field(default_factory=dict)
    selected_count: int = 0
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the result-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a result-level warning."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def items_for(self, category: str) -> list[LineItem]:
        return [item for item in self.line_items if item.category == category]

    def get_trace_text(self) -> str:
        """Get human-readable result trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "plan_id": self.plan_id,
            "base_price": self.base_price,
            "grand_total": self.grand_total,
            "line_items": [item.to_dict() for item in self.line_items],
            "subtotals": dict(self.subtotals),
            "selected_count": self.selected_count,
            "warnings": list(self.warnings),
        }


@dataclass
class PersistedHomeConfiguration:
    """A saved selection set with its server-computed total."""
    id: str
    user_id: str
    plan_id: str
    plan_name: str
    selection: SelectionSet
    base_price: float
    total_price: float
    line_items: list[LineItem] = field(default_factory=list)
    is_complete: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
