"""
Configuration Service - save, replace, complete and delete buyer home configurations.

The stored total is always the engine's server-side recomputation; the
client's number is only passed along so mismatches get logged.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from ..engine.errors import ConfigurationLocked, NotFoundError, ValidationError
from ..engine.models import (
    ELEVATION,
    INTERIOR_PACKAGE,
    KITCHEN_APPLIANCE,
    LAUNDRY_APPLIANCE,
    LOT_PREMIUM,
    PersistedHomeConfiguration,
    SelectionSet,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of selection validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ConfigurationService:
    """Service for managing saved home configurations."""

    # Single-select categories a configuration needs before it can be completed
    REQUIRED_FOR_COMPLETION = {
        'elevation_id': (ELEVATION, "an elevation"),
        'interior_package_id': (INTERIOR_PACKAGE, "an interior package"),
        'kitchen_appliance_id': (KITCHEN_APPLIANCE, "a kitchen appliance"),
        'laundry_appliance_id': (LAUNDRY_APPLIANCE, "a laundry appliance"),
        'lot_pricing_id': (LOT_PREMIUM, "a lot"),
    }

    def __init__(self, engine):
        self.engine = engine
        self.store = engine.store
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def configuration_lock(self, configuration_id: str):
        """Serialize replace, complete and delete for one configuration."""
        with self._locks_guard:
            lock = self._locks.setdefault(configuration_id, threading.RLock())
        with lock:
            yield

    def list_for_user(self, user_id: str) -> list[PersistedHomeConfiguration]:
        """List a user's saved configurations, oldest first."""
        return self.store.list_configurations(user_id)

    def get(self, user_id: str, configuration_id: str) -> PersistedHomeConfiguration:
        """Get one of the user's configurations. Other users' ids are not found."""
        configuration = self.store.find_configuration(configuration_id)
        if configuration is None or configuration.user_id != user_id:
            raise NotFoundError("Configuration", configuration_id)
        return configuration

    def validate_selection(self, selection: SelectionSet) -> ValidationResult:
        """Check that a selection is complete enough to be marked complete."""
        result = ValidationResult(valid=True)

        if not selection.plan_id:
            result.errors.append("A plan must be selected")
            result.valid = False

        for attr, (_, description) in self.REQUIRED_FOR_COMPLETION.items():
            if not getattr(selection, attr):
                result.errors.append(f"Select {description} before completing")
                result.valid = False

        if selection.color_scheme is None:
            result.warnings.append("No color scheme selected")

        return result

    def save(
        self,
        user_id: str,
        selection: SelectionSet,
        client_total: Optional[float] = None,
        configuration_id: Optional[str] = None,
    ) -> PersistedHomeConfiguration:
        """
        Create a configuration, or replace one that is not yet complete.

        Raises:
            NotFoundError: configuration_id is unknown or owned by someone else
            ConfigurationLocked: the configuration was already completed
        """
        if not user_id:
            raise ValidationError("user_id is required")

        if not configuration_id:
            return self._save(user_id, selection, client_total, None)

        with self.configuration_lock(configuration_id):
            existing = self.get(user_id, configuration_id)
            if existing.is_complete:
                raise ConfigurationLocked(configuration_id)
            return self._save(user_id, selection, client_total, existing)

    def _save(self, user_id, selection, client_total, existing) -> PersistedHomeConfiguration:
        result = self.engine.finalize_configuration(selection, client_total=client_total)
        plan = self.store.get_plan(selection.plan_id)
        now = datetime.now().isoformat()

        configuration = PersistedHomeConfiguration(
            id=existing.id if existing else uuid.uuid4().hex,
            user_id=user_id,
            plan_id=plan.id,
            plan_name=plan.name,
            selection=selection,
            base_price=result.base_price,
            total_price=result.grand_total,
            line_items=list(result.line_items),
            is_complete=False,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        if existing:
            # Completion may have landed while the total was being computed
            self.store.save_open_configuration(configuration)
        else:
            self.store.save_configuration(configuration)

        logger.info(
            "%s configuration %s for user %s: total %.2f",
            "Replaced" if existing else "Saved", configuration.id, user_id, configuration.total_price,
        )
        return configuration

    def mark_complete(self, user_id: str, configuration_id: str) -> PersistedHomeConfiguration:
        """
        Lock a configuration. Its total is recomputed one last time.

        Every required category must resolve to a priced line item; an id
        that no longer points at an active record in the plan does not count.

        Raises:
            ValidationError: required selections are missing or unresolvable
        """
        with self.configuration_lock(configuration_id):
            configuration = self.get(user_id, configuration_id)
            if configuration.is_complete:
                return configuration

            validation = self.validate_selection(configuration.selection)
            if not validation.valid:
                raise ValidationError(validation.errors)

            result = self.engine.finalize_configuration(configuration.selection)
            unresolved = [
                f"Selected {description} '{getattr(configuration.selection, attr)}' is not available"
                for attr, (category, description) in self.REQUIRED_FOR_COMPLETION.items()
                if not result.items_for(category)
            ]
            if unresolved:
                logger.warning(
                    "Configuration %s cannot be completed: %s", configuration_id, "; ".join(unresolved)
                )
                raise ValidationError(unresolved)

            configuration = replace(
                configuration,
                base_price=result.base_price,
                total_price=result.grand_total,
                line_items=list(result.line_items),
                is_complete=True,
                updated_at=datetime.now().isoformat(),
            )
            self.store.save_configuration(configuration)

        logger.info("Completed configuration %s for user %s", configuration_id, user_id)
        return configuration

    def delete(self, user_id: str, configuration_id: str) -> bool:
        """Delete one of the user's configurations."""
        with self.configuration_lock(configuration_id):
            self.get(user_id, configuration_id)
            self.store.delete_configuration(configuration_id)
        logger.info("Deleted configuration %s for user %s", configuration_id, user_id)
        return True

    def get_stats(self, user_id: str) -> dict:
        """Get statistics about a user's configurations."""
        configurations = self.list_for_user(user_id)
        complete = [c for c in configurations if c.is_complete]

        by_plan = {}
        for c in configurations:
            by_plan[c.plan_name] = by_plan.get(c.plan_name, 0) + 1

        return {
            'total': len(configurations),
            'complete': len(complete),
            'in_progress': len(configurations) - len(complete),
            'by_plan': by_plan,
        }
