"""
Exceptions raised by the pricing core.

Every error derives from PricingError so callers at the API edge can map
the whole family to HTTP responses in one place.
"""
from typing import Optional


class PricingError(Exception):
    """Base class for pricing core errors."""


class ValidationError(PricingError):
    """Admin-entered cost data failed validation. Nothing was written."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(PricingError):
    """A referenced record does not exist in the store."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found")


class NoBasePackage(PricingError):
    """An upgrade package was priced for a plan with no active base package."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan '{plan_id}' has no active base package")


class CascadeError(PricingError):
    """A base package promotion or recalculation failed and was rolled back."""

    def __init__(self, plan_id: str, message: str):
        self.plan_id = plan_id
        super().__init__(f"Recalculation for plan '{plan_id}' rolled back: {message}")


class ConcurrentPromotionError(PricingError):
    """The plan's base package changed since the caller last read it."""

    def __init__(self, plan_id: str, expected: int, actual: int):
        self.plan_id = plan_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Base package for plan '{plan_id}' changed "
            f"(expected version {expected}, found {actual})"
        )


class IntegrityError(PricingError):
    """Stored data violates an invariant (e.g. two active base packages)."""


class ConfigurationLocked(PricingError):
    """A completed home configuration can no longer be replaced."""

    def __init__(self, configuration_id: str, message: Optional[str] = None):
        self.configuration_id = configuration_id
        super().__init__(message or f"Configuration '{configuration_id}' is complete and locked")
