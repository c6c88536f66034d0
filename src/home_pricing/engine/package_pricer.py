"""
Package Pricer - prices interior packages as a delta from the plan's base.

    total_cost    = sum(component.cost) + (soft_close_price if soft_close)
    base package  : client_price = min_markup
    upgrade       : add_to_cost   = total_cost - base.total_cost
                    markup_amount = max(add_to_cost * (1 + markup), min_markup)
                    client_price  = add_to_cost + markup_amount  (floored at min_markup)

Components contribute their raw cost, never their own marked-up price.
The base package is an explicit argument; looking it up belongs to
BasePackageResolver.
"""
from dataclasses import replace
from typing import Mapping, Optional

from .errors import NoBasePackage, ValidationError
from .models import InteriorComponent, InteriorPackage, PackagePrice
from .money import round_money, is_finite_number
from .option_pricer import markup_errors


class PackagePricer:
    """Prices interior packages. Stateless; safe to share across threads."""

    def validate_package(self, package: InteriorPackage) -> list[str]:
        """Validate the authored fields of a package before it is written."""
        errors = []

        if not package.id:
            errors.append("id is required")
        if not package.plan_id:
            errors.append("plan_id is required")
        if not package.name or not str(package.name).strip():
            errors.append("name is required")

        errors.extend(markup_errors(
            package.soft_close_price,
            package.markup,
            package.min_markup,
            cost_label="soft_close_price",
        ))
        return errors

    def total_cost(
        self,
        package: InteriorPackage,
        components: Mapping[str, InteriorComponent],
    ) -> float:
        """
        Sum the raw cost of every referenced component.

        Raises:
            ValidationError: if a reference is unknown, belongs to another plan,
                or points at a component with an invalid cost
        """
        errors = []
        total = 0.0

        for slot, component_id in package.components.iter_refs():
            component = components.get(component_id)
            if component is None:
                errors.append(f"{slot} references unknown component '{component_id}'")
                continue
            if component.plan_id != package.plan_id:
                errors.append(
                    f"{slot} component '{component_id}' belongs to plan "
                    f"'{component.plan_id}', not '{package.plan_id}'"
                )
                continue
            if not is_finite_number(component.cost) or component.cost < 0:
                errors.append(f"{slot} component '{component_id}' has invalid cost {component.cost!r}")
                continue
            total += component.cost

        if errors:
            raise ValidationError(errors)

        if package.soft_close:
            total += package.soft_close_price

        return round_money(total)

    def client_price(
        self,
        package: InteriorPackage,
        total_cost: float,
        base_package: Optional[InteriorPackage],
    ) -> float:
        """
        Compute the buyer-facing price of a package.

        Raises:
            NoBasePackage: if the package is an upgrade and no base was given
        """
        if package.base_package:
            return round_money(package.min_markup)

        if base_package is None:
            raise NoBasePackage(package.plan_id)

        if base_package.plan_id != package.plan_id:
            raise ValidationError(
                f"base package '{base_package.id}' belongs to plan "
                f"'{base_package.plan_id}', not '{package.plan_id}'"
            )

        add_to_cost = total_cost - base_package.total_cost
        markup_amount = max(add_to_cost * (1 + package.markup), package.min_markup)
        client_price = add_to_cost + markup_amount

        # A package never shows a negative price to the buyer
        if client_price < 0:
            client_price = package.min_markup

        return round_money(client_price)

    def price(
        self,
        package: InteriorPackage,
        base_package: Optional[InteriorPackage],
        components: Mapping[str, InteriorComponent],
    ) -> PackagePrice:
        """Validate and price a package against the given base."""
        errors = self.validate_package(package)
        if errors:
            raise ValidationError(errors)

        total_cost = self.total_cost(package, components)
        return PackagePrice(
            total_cost=total_cost,
            client_price=self.client_price(package, total_cost, base_package),
        )

    def price_package(
        self,
        package: InteriorPackage,
        base_package: Optional[InteriorPackage],
        components: Mapping[str, InteriorComponent],
    ) -> InteriorPackage:
        """Return a copy of the package with total_cost and client_price set."""
        result = self.price(package, base_package, components)
        return replace(package, total_cost=result.total_cost, client_price=result.client_price)
