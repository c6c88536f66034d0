"""
Money helpers shared by every pricing path.

All computed dollar amounts go through round_money so that the live
preview and the save path round identically.
"""
import math

MONEY_PLACES = 2


def round_money(value: float, places: int = MONEY_PLACES) -> float:
    """Round a dollar amount to cents, normalizing -0.0 to 0.0."""
    rounded = round(float(value), places)
    return rounded + 0.0


def is_finite_number(value) -> bool:
    """True for real, finite numbers (bools are not money)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_whole_cents(value: float) -> bool:
    """True when a finite amount carries no fraction of a cent."""
    cents = value * 100
    return abs(cents - round(cents)) < 1e-6


def format_price(price: float) -> str:
    """Format as whole US dollars, e.g. 30550 -> '$30,550'."""
    rounded = round(price)
    if rounded < 0:
        return f"-${abs(rounded):,.0f}"
    return f"${rounded:,.0f}"
