"""
Tests for base package promotion, cascading recalculation and plan locking.
"""
import threading

import pytest

from home_pricing.engine.errors import (
    CascadeError,
    ConcurrentPromotionError,
    NoBasePackage,
    NotFoundError,
    ValidationError,
)
from home_pricing.engine.models import (
    InteriorComponent,
    InteriorPackage,
    PackageComponents,
    Plan,
    SelectionSet,
)
from home_pricing.engine.pricing_engine import PricingEngine


def active_bases(store, plan_id="aspen"):
    return [p for p in store.list_packages(plan_id) if p.base_package]


def test_first_package_auto_promoted(catalog, store):
    base = catalog.resolver.resolve_base("aspen")
    assert base.id == "classic"
    assert base.client_price == 200
    assert store.get_package("signature").client_price == 30550


def test_promotion_switches_base_and_reprices_siblings(catalog, store):
    version = catalog.resolver.base_version("aspen")

    updated = catalog.promote_base_package("aspen", "signature")

    assert [p.id for p in updated][0] == "signature", "base should be priced first"
    assert [p.id for p in active_bases(store)] == ["signature"]
    assert store.get_package("signature").client_price == 200
    # Classic is now 13000 cheaper than the base; the price floors at min_markup
    assert store.get_package("classic").client_price == 200
    assert catalog.resolver.base_version("aspen") == version + 1


def test_promoting_current_base_keeps_prices(catalog, store):
    before = {p.id: p.client_price for p in store.list_packages("aspen")}
    catalog.promote_base_package("aspen", "classic")
    after = {p.id: p.client_price for p in store.list_packages("aspen")}
    assert before == after


def test_recalculate_all_is_idempotent(catalog):
    first = catalog.resolver.recalculate_all("aspen")
    second = catalog.resolver.recalculate_all("aspen")
    assert first == second


def test_failed_cascade_keeps_prior_baseline(catalog, store):
    version = catalog.resolver.base_version("aspen")
    before = {p.id: (p.base_package, p.total_cost, p.client_price) for p in store.list_packages("aspen")}

    # Corrupt a component only the Signature package uses
    store.save_component(InteriorComponent(
        id="c-quartz", plan_id="aspen", name="c-quartz", material="countertop", cost=-5,
    ))

    with pytest.raises(CascadeError) as exc_info:
        catalog.promote_base_package("aspen", "signature")

    assert isinstance(exc_info.value.__cause__, ValidationError)
    after = {p.id: (p.base_package, p.total_cost, p.client_price) for p in store.list_packages("aspen")}
    assert after == before
    assert catalog.resolver.base_version("aspen") == version


def test_promote_rejects_inactive_package(catalog, store):
    package = store.get_package("signature")
    package.is_active = False
    store.save_package(package)

    with pytest.raises(ValidationError):
        catalog.promote_base_package("aspen", "signature")


def test_promote_rejects_package_from_other_plan(catalog, store):
    store.save_plan(Plan(id="birch", name="The Birch", base_price=525000))
    with pytest.raises(ValidationError):
        catalog.promote_base_package("birch", "signature")


def test_promote_unknown_package(catalog):
    with pytest.raises(NotFoundError):
        catalog.promote_base_package("aspen", "nope")


def test_stale_expected_version_rejected(catalog):
    version = catalog.resolver.base_version("aspen")
    catalog.promote_base_package("aspen", "signature", expected_version=version)

    with pytest.raises(ConcurrentPromotionError) as exc_info:
        catalog.promote_base_package("aspen", "classic", expected_version=version)

    assert exc_info.value.expected == version
    assert exc_info.value.actual == version + 1


def test_concurrent_promotions_with_version_one_winner(catalog, store):
    version = catalog.resolver.base_version("aspen")
    barrier = threading.Barrier(2)
    outcomes = {}

    def promote(package_id):
        barrier.wait()
        try:
            catalog.promote_base_package("aspen", package_id, expected_version=version)
            outcomes[package_id] = "ok"
        except ConcurrentPromotionError:
            outcomes[package_id] = "stale"

    threads = [threading.Thread(target=promote, args=(pid,)) for pid in ("classic", "signature")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["ok", "stale"]
    winner = next(pid for pid, outcome in outcomes.items() if outcome == "ok")
    assert [p.id for p in active_bases(store)] == [winner]


def test_promotion_in_progress_invisible_to_other_threads(catalog, store, monkeypatch):
    reached = threading.Event()
    release = threading.Event()
    recalculate = catalog.resolver.recalculate_all

    def paused_recalculate(plan_id):
        updated = recalculate(plan_id)
        reached.set()
        release.wait(5)
        return updated

    monkeypatch.setattr(catalog.resolver, "recalculate_all", paused_recalculate)
    promotion = threading.Thread(target=catalog.promote_base_package, args=("aspen", "signature"))
    promotion.start()
    try:
        assert reached.wait(5), "promotion never reached the cascade"

        base = catalog.resolver.resolve_base("aspen")
        signature = store.get_package("signature")
        total = catalog.finalize_configuration(
            SelectionSet(plan_id="aspen", interior_package_id="signature")
        ).grand_total
    finally:
        release.set()
        promotion.join()

    assert base.id == "classic"
    assert (signature.base_package, signature.client_price) == (False, 30550)
    assert total == 450000 + 30550, "readers must see one consistent baseline"

    assert catalog.resolver.resolve_base("aspen").id == "signature"
    assert store.get_package("signature").client_price == 200


def test_readers_never_see_a_cascade_that_fails(catalog, store, monkeypatch):
    reached = threading.Event()
    release = threading.Event()
    recalculate = catalog.resolver.recalculate_all

    def failing_recalculate(plan_id):
        recalculate(plan_id)
        reached.set()
        release.wait(5)
        raise ValidationError("component cost changed mid-cascade")

    monkeypatch.setattr(catalog.resolver, "recalculate_all", failing_recalculate)
    errors = []

    def promote():
        try:
            catalog.promote_base_package("aspen", "signature")
        except CascadeError as e:
            errors.append(e)

    promotion = threading.Thread(target=promote)
    promotion.start()
    try:
        assert reached.wait(5)
        seen = {p.id: (p.base_package, p.client_price) for p in store.list_packages("aspen")}
    finally:
        release.set()
        promotion.join()

    expected = {"classic": (True, 200), "signature": (False, 30550)}
    assert seen == expected
    assert len(errors) == 1
    assert {p.id: (p.base_package, p.client_price) for p in store.list_packages("aspen")} == expected


def test_concurrent_promotions_never_leave_two_bases(catalog, store):
    errors = []

    def promote(package_id):
        try:
            for _ in range(5):
                catalog.promote_base_package("aspen", package_id)
        except Exception as e:
            errors.append(e)

    threads = [
        threading.Thread(target=promote, args=(pid,))
        for pid in ("classic", "signature", "classic", "signature")
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    bases = active_bases(store)
    assert len(bases) == 1
    # Every sibling is priced against whichever base won last
    settled = {p.id: p.client_price for p in store.list_packages("aspen")}
    catalog.resolver.recalculate_all("aspen")
    assert {p.id: p.client_price for p in store.list_packages("aspen")} == settled


def test_auto_promote_disabled_raises(store, settings):
    settings.auto_promote_first_package = False
    engine = PricingEngine(store, settings=settings)
    store.save_plan(Plan(id="aspen", name="The Aspen", base_price=450000))

    with pytest.raises(NoBasePackage):
        engine.compute_and_persist_price(InteriorPackage(id="p1", plan_id="aspen", name="P1"))

    assert store.find_package("p1") is None


def test_rebalance_picks_lowest_cost(catalog, store):
    catalog.compute_and_persist_price(InteriorPackage(
        id="starter", plan_id="aspen", name="Starter",
        components=PackageComponents(lvp="c-lvp", carpet="c-carpet"),
    ))

    base = catalog.rebalance_base_package("aspen")

    assert base.id == "starter"
    assert base.total_cost == 6000
    # Classic is now 9000 over the base: 9000 + 12150
    assert store.get_package("classic").client_price == 21150


def test_rebalance_tie_keeps_current_base(catalog):
    catalog.compute_and_persist_price(InteriorPackage(
        id="twin", plan_id="aspen", name="Twin",
        components=PackageComponents(
            lvp="c-lvp", carpet="c-carpet", backsplash="c-backsplash",
            countertop="c-counter", primary_cabinets="c-cab",
        ),
    ))
    assert catalog.rebalance_base_package("aspen").id == "classic"


def test_rebalance_with_no_packages(engine):
    assert engine.rebalance_base_package("aspen") is None
