from licsync.core.catalog import Catalog
from licsync.core.desired_state import build_desired, currently_disabled_tokens
from licsync.core.models import DesiredAssignment, LicenseAssignment, ServicePlan, SkuRecord
from licsync.core.reconciler import reconcile

from conftest import E1, E3, E5, PHONE, TEAMS, YAMMER


def test_output_independent_of_input_order(catalog):
    e3, e5 = catalog.sku_by_id(E3), catalog.sku_by_id(E5)
    a = build_desired([e5, e3], ["teams1", "YAMMER_ENTERPRISE"])
    b = build_desired([e3, e5], ["YAMMER_ENTERPRISE", "TEAMS1"])
    assert a == b
    assert a == [
        DesiredAssignment(E3, (TEAMS, YAMMER)),
        DesiredAssignment(E5, (TEAMS, YAMMER)),
    ]


def test_disabled_plans_are_a_subset_of_the_sku(catalog):
    e3, e5 = catalog.sku_by_id(E3), catalog.sku_by_id(E5)
    desired = build_desired([e3, e5], ["MCOEV"])
    assert desired == [DesiredAssignment(E3), DesiredAssignment(E5, (PHONE,))]
    for d in desired:
        assert set(d.disabled_plan_ids) <= catalog.sku_by_id(d.sku_id).plan_ids


def test_bare_assignment_payload_has_no_disabled_plans(catalog):
    [d] = build_desired([catalog.sku_by_id(E1)])
    assert d.to_payload() == {"skuId": E1}


def test_duplicate_targets_collapse(catalog):
    e3 = catalog.sku_by_id(E3)
    assert build_desired([e3, e3], ["TEAMS1"]) == [DesiredAssignment(E3, (TEAMS,))]


def test_preserve_carries_disabled_plans_to_new_sku(catalog):
    current = [LicenseAssignment(E3, frozenset({YAMMER}))]
    e5 = catalog.sku_by_id(E5)
    kept = build_desired([e5], ["TEAMS1"], preserve=True, current=current, catalog=catalog)
    assert kept == [DesiredAssignment(E5, (TEAMS, YAMMER))]

    fresh = build_desired([e5], ["TEAMS1"], preserve=False, current=current, catalog=catalog)
    assert fresh == [DesiredAssignment(E5, (TEAMS,))]


def test_preserve_ignores_plans_the_target_lacks(catalog):
    current = [LicenseAssignment(E3, frozenset({YAMMER}))]
    e1 = catalog.sku_by_id(E1)
    assert build_desired([e1], preserve=True, current=current, catalog=catalog) == [DesiredAssignment(E1)]


def test_preserve_matches_by_plan_name_across_ids():
    old = SkuRecord("old-sku", "OLD", (ServicePlan("old-yam", "YAMMER_ENTERPRISE"),))
    new = SkuRecord("new-sku", "NEW", (ServicePlan("new-yam", "YAMMER_ENTERPRISE"), ServicePlan("x", "OTHER")))
    cat = Catalog([old, new])
    current = [LicenseAssignment("old-sku", frozenset({"old-yam"}))]

    assert currently_disabled_tokens(current, cat) == {"old-yam", "YAMMER_ENTERPRISE"}
    assert build_desired([new], preserve=True, current=current, catalog=cat) == [
        DesiredAssignment("new-sku", ("new-yam",))
    ]


def test_blank_plan_tokens_are_ignored(catalog):
    assert build_desired([catalog.sku_by_id(E3)], ["", "  "]) == [DesiredAssignment(E3)]


def test_held_sku_keeps_only_its_own_disabled_plans(catalog):
    current = [LicenseAssignment(E3, frozenset({YAMMER})), LicenseAssignment(E5)]
    e5 = catalog.sku_by_id(E5)
    desired = build_desired([e5], [], preserve=True, current=current, catalog=catalog)
    assert desired == [DesiredAssignment(E5)]
    assert reconcile(current, desired).is_noop


def test_held_and_new_targets_preserve_independently(catalog):
    current = [LicenseAssignment(E3, frozenset({YAMMER})), LicenseAssignment(E5, frozenset({PHONE}))]
    e1, e5 = catalog.sku_by_id(E1), catalog.sku_by_id(E5)
    desired = build_desired([e5, e1], ["TEAMS1"], preserve=True, current=current, catalog=catalog)
    # E1 is not held and exposes neither YAMMER nor MCOEV
    assert desired == [DesiredAssignment(E1, (TEAMS,)), DesiredAssignment(E5, (PHONE, TEAMS))]
