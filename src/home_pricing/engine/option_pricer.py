"""
Option Pricer - markup formula for a single catalog option.

    client_price = cost + max(cost * markup, min_markup)

The percentage markup and the cash floor compete; whichever yields more
markup dollars wins, so client_price >= cost always holds. Cost and
min_markup are dollar amounts in whole cents.
"""
from dataclasses import replace

from .errors import ValidationError
from .models import CatalogOption, OPTION_CLASSIFICATIONS
from .money import round_money, is_finite_number, is_whole_cents


def markup_errors(cost, markup, min_markup, cost_label: str = "cost") -> list[str]:
    """
    Check the three markup inputs.

    Returns every violation found (empty list when valid).
    """
    errors = []

    if not is_finite_number(cost):
        errors.append(f"{cost_label} must be a finite number")
    elif cost < 0:
        errors.append(f"{cost_label} must be >= 0 (got {cost})")
    elif not is_whole_cents(cost):
        errors.append(f"{cost_label} must be a whole number of cents (got {cost})")

    if not is_finite_number(markup):
        errors.append("markup must be a finite number")
    elif not 0 <= markup <= 1:
        errors.append(f"markup must be between 0 and 1 (got {markup})")

    if not is_finite_number(min_markup):
        errors.append("min_markup must be a finite number")
    elif min_markup < 0:
        errors.append(f"min_markup must be >= 0 (got {min_markup})")
    elif not is_whole_cents(min_markup):
        errors.append(f"min_markup must be a whole number of cents (got {min_markup})")

    return errors


class OptionPricer:
    """Prices catalog options. Stateless; safe to share across threads."""

    def price(self, cost: float, markup: float, min_markup: float) -> float:
        """
        Compute the buyer-facing price for an option.

        Raises:
            ValidationError: if cost or min_markup is negative or not whole cents,
                or markup is outside [0, 1]
        """
        errors = markup_errors(cost, markup, min_markup)
        if errors:
            raise ValidationError(errors)

        markup_amount = max(cost * markup, min_markup)
        return round_money(cost + markup_amount)

    def validate_option(self, option: CatalogOption) -> list[str]:
        """Validate an option record before it is written."""
        errors = []

        if not option.id:
            errors.append("id is required")
        if not option.plan_id:
            errors.append("plan_id is required")
        if not option.name or not str(option.name).strip():
            errors.append("name is required")
        if option.classification not in OPTION_CLASSIFICATIONS:
            errors.append(
                f"invalid classification '{option.classification}', "
                f"must be one of: {', '.join(OPTION_CLASSIFICATIONS)}"
            )

        errors.extend(markup_errors(option.cost, option.markup, option.min_markup))
        return errors

    def price_option(self, option: CatalogOption) -> CatalogOption:
        """
        Return a copy of the option with client_price recomputed.

        Raises:
            ValidationError: listing every invalid field
        """
        errors = self.validate_option(option)
        if errors:
            raise ValidationError(errors)

        return replace(option, client_price=self.price(option.cost, option.markup, option.min_markup))
