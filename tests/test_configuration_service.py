"""
Tests for saving, replacing, completing and deleting home configurations.
"""
import threading
import time
from dataclasses import replace

import pytest

from home_pricing.engine.errors import ConfigurationLocked, NotFoundError, ValidationError
from home_pricing.engine.models import SelectionSet
from home_pricing.services.configuration_service import ConfigurationService


@pytest.fixture
def service(catalog):
    return ConfigurationService(catalog)


@pytest.fixture
def complete_selection():
    return SelectionSet(
        plan_id="aspen",
        elevation_id="elev-a",
        interior_package_id="classic",
        kitchen_appliance_id="kitchen-std",
        laundry_appliance_id="laundry-std",
        lot_pricing_id="lp-1",
        color_scheme=1,
    )


def test_save_stores_server_total(service, complete_selection):
    saved = service.save("user-1", complete_selection, client_total=1.0)

    assert saved.total_price == 450000 + 200 + 15000
    assert saved.plan_name == "The Aspen"
    assert not saved.is_complete
    assert service.get("user-1", saved.id).total_price == saved.total_price


def test_replace_keeps_id_and_created_at(service, complete_selection):
    saved = service.save("user-1", SelectionSet(plan_id="aspen"))
    replaced = service.save("user-1", complete_selection, configuration_id=saved.id)

    assert replaced.id == saved.id
    assert replaced.created_at == saved.created_at
    assert replaced.total_price == 465200
    assert len(service.list_for_user("user-1")) == 1


def test_other_users_configuration_not_found(service, complete_selection):
    saved = service.save("user-1", complete_selection)

    with pytest.raises(NotFoundError):
        service.get("user-2", saved.id)
    with pytest.raises(NotFoundError):
        service.save("user-2", complete_selection, configuration_id=saved.id)
    with pytest.raises(NotFoundError):
        service.delete("user-2", saved.id)


def test_completed_configuration_is_locked(service, complete_selection):
    saved = service.save("user-1", complete_selection)
    completed = service.mark_complete("user-1", saved.id)

    assert completed.is_complete
    with pytest.raises(ConfigurationLocked):
        service.save("user-1", complete_selection, configuration_id=saved.id)


def test_incomplete_selection_cannot_be_completed(service):
    saved = service.save("user-1", SelectionSet(plan_id="aspen", elevation_id="elev-a"))

    with pytest.raises(ValidationError) as exc_info:
        service.mark_complete("user-1", saved.id)

    assert len(exc_info.value.errors) == 4
    assert not service.get("user-1", saved.id).is_complete


def test_mark_complete_recomputes_total(service, complete_selection, catalog):
    saved = service.save("user-1", complete_selection)
    catalog.promote_base_package("aspen", "signature")

    completed = service.mark_complete("user-1", saved.id)

    # Classic is now cheaper than the new base and floors at min_markup
    assert completed.total_price == saved.total_price


def test_missing_user_rejected(service, complete_selection):
    with pytest.raises(ValidationError):
        service.save("", complete_selection)


def test_save_for_unknown_plan(service):
    with pytest.raises(NotFoundError):
        service.save("user-1", SelectionSet(plan_id="nowhere"))


def test_delete(service, complete_selection):
    saved = service.save("user-1", complete_selection)
    assert service.delete("user-1", saved.id)
    assert service.list_for_user("user-1") == []


def test_validate_selection_warns_without_color_scheme(service, complete_selection):
    complete_selection.color_scheme = None
    result = service.validate_selection(complete_selection)
    assert result.valid
    assert result.warnings == ["No color scheme selected"]


def test_stats(service, complete_selection):
    first = service.save("user-1", complete_selection)
    service.save("user-1", SelectionSet(plan_id="aspen"))
    service.mark_complete("user-1", first.id)
    service.save("user-2", complete_selection)

    stats = service.get_stats("user-1")

    assert stats == {'total': 2, 'complete': 1, 'in_progress': 1, 'by_plan': {'The Aspen': 2}}


def test_unresolvable_selection_cannot_be_completed(service):
    ghost = SelectionSet(
        plan_id="aspen",
        elevation_id="ghost",
        interior_package_id="ghost",
        kitchen_appliance_id="ghost",
        laundry_appliance_id="ghost",
        lot_pricing_id="ghost",
        color_scheme=1,
    )
    saved = service.save("user-1", ghost)

    with pytest.raises(ValidationError) as exc_info:
        service.mark_complete("user-1", saved.id)

    assert len(exc_info.value.errors) == 5
    assert "Selected an elevation 'ghost' is not available" in exc_info.value.errors
    assert not service.get("user-1", saved.id).is_complete


def test_inactive_required_option_blocks_completion(service, complete_selection, store):
    saved = service.save("user-1", complete_selection)
    kitchen = store.get_option("kitchen-std")
    kitchen.is_active = False
    store.save_option(kitchen)

    with pytest.raises(ValidationError) as exc_info:
        service.mark_complete("user-1", saved.id)

    assert exc_info.value.errors == ["Selected a kitchen appliance 'kitchen-std' is not available"]


def test_completion_during_replace_wins(service, complete_selection, catalog, monkeypatch):
    saved = service.save("user-1", complete_selection)
    finalize = catalog.finalize_configuration
    completed = []

    def finalize_then_complete(selection, client_total=None):
        result = finalize(selection, client_total=client_total)
        if selection.interior_package_id == "signature":
            completed.append(service.mark_complete("user-1", saved.id))
        return result

    monkeypatch.setattr(catalog, "finalize_configuration", finalize_then_complete)
    upgrade = replace(complete_selection, interior_package_id="signature")

    with pytest.raises(ConfigurationLocked):
        service.save("user-1", upgrade, configuration_id=saved.id)

    stored = service.get("user-1", saved.id)
    assert stored.is_complete
    assert stored.selection.interior_package_id == "classic", "completed selection must not be overwritten"
    assert stored.total_price == completed[0].total_price


def test_replace_and_complete_are_serialized(service, complete_selection, catalog, monkeypatch):
    saved = service.save("user-1", complete_selection)
    finalize = catalog.finalize_configuration
    replacing = threading.Event()
    outcomes = {}

    def slow_finalize(selection, client_total=None):
        if selection.interior_package_id == "signature":
            replacing.set()
            time.sleep(0.2)
        return finalize(selection, client_total=client_total)

    monkeypatch.setattr(catalog, "finalize_configuration", slow_finalize)
    upgrade = replace(complete_selection, interior_package_id="signature")

    def replace_selection():
        outcomes["replace"] = service.save("user-1", upgrade, configuration_id=saved.id)

    thread = threading.Thread(target=replace_selection)
    thread.start()
    assert replacing.wait(5)
    outcomes["complete"] = service.mark_complete("user-1", saved.id)
    thread.join()

    stored = service.get("user-1", saved.id)
    assert stored.is_complete
    assert stored.selection.interior_package_id == "signature", "completion must wait for the replace"
    assert stored.total_price == 450000 + 30550 + 15000
