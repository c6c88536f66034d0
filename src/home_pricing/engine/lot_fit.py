"""
Lot Fit - checks whether a plan's footprint fits on a lot after setbacks.

The plan may be placed in either orientation.
"""
from dataclasses import dataclass
from typing import Optional

from .models import Lot, Plan


@dataclass(frozen=True)
class Setbacks:
    """Required clearance from each lot line, in feet."""
    front: float = 10.0
    back: float = 10.0
    left: float = 5.0
    right: float = 5.0


DEFAULT_SETBACKS = Setbacks()


@dataclass
class LotFit:
    """Outcome of a fit check."""
    compatible: bool
    message: str
    excess_width: float = 0.0
    excess_length: float = 0.0
    shortfall_width: float = 0.0
    shortfall_length: float = 0.0


def _required(plan: Plan, setbacks: Setbacks) -> tuple[float, float]:
    return (
        plan.width + setbacks.left + setbacks.right,
        plan.length + setbacks.front + setbacks.back,
    )


def can_plan_fit_on_lot(plan: Plan, lot: Lot, setbacks: Optional[Setbacks] = None) -> bool:
    """True if the plan fits in either orientation."""
    required_width, required_length = _required(plan, setbacks or DEFAULT_SETBACKS)

    fits_normal = lot.width >= required_width and lot.length >= required_length
    fits_rotated = lot.width >= required_length and lot.length >= required_width
    return fits_normal or fits_rotated


def compatible_lots(plan: Plan, lots: list[Lot], setbacks: Optional[Setbacks] = None) -> list[Lot]:
    """Filter lots down to those that can hold the plan."""
    return [lot for lot in lots if can_plan_fit_on_lot(plan, lot, setbacks)]


def lot_compatibility_info(plan: Plan, lot: Lot, setbacks: Optional[Setbacks] = None) -> LotFit:
    """Explain how much room is left over, or how much is missing."""
    setbacks = setbacks or DEFAULT_SETBACKS
    required_width, required_length = _required(plan, setbacks)

    if can_plan_fit_on_lot(plan, lot, setbacks):
        if lot.width >= required_width and lot.length >= required_length:
            spare_width = lot.width - required_width
            spare_length = lot.length - required_length
        else:
            # Only the rotated placement fits
            spare_width = lot.width - required_length
            spare_length = lot.length - required_width
        excess_width = min(spare_width, spare_length)
        excess_length = max(spare_width, spare_length)
        return LotFit(
            compatible=True,
            message=f"Compatible - {excess_width:g}ft × {excess_length:g}ft extra space available",
            excess_width=excess_width,
            excess_length=excess_length,
        )

    shortfall_width = max(0.0, required_width - lot.width)
    shortfall_length = max(0.0, required_length - lot.length)

    if shortfall_width > 0 and shortfall_length > 0:
        message = (
            f"Too small - needs {shortfall_width:g}ft more width "
            f"and {shortfall_length:g}ft more length"
        )
    elif shortfall_width > 0:
        message = f"Too narrow - needs {shortfall_width:g}ft more width"
    else:
        message = f"Too short - needs {shortfall_length:g}ft more length"

    return LotFit(
        compatible=False,
        message=message,
        shortfall_width=shortfall_width,
        shortfall_length=shortfall_length,
    )
