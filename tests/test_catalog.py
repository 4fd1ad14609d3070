import pytest

from licsync.core.catalog import Catalog, CatalogLookupError

from conftest import E1, E3, E5, TEAMS, YAMMER


def test_skus_sorted_by_part_number(catalog):
    assert [s.sku_part_number for s in catalog.skus] == ["ENTERPRISEPACK", "ENTERPRISEPREMIUM", "STANDARDPACK"]
    assert len(catalog) == 3


def test_resolve_by_part_number_or_id_case_insensitive(catalog):
    skus = catalog.resolve_skus(["enterprisepack", E5.upper()])
    assert [s.sku_id for s in skus] == [E3, E5]


def test_resolve_deduplicates_and_skips_blank(catalog):
    skus = catalog.resolve_skus(["ENTERPRISEPACK", E3, "  "])
    assert [s.sku_id for s in skus] == [E3]


def test_unknown_tokens_are_all_reported(catalog):
    with pytest.raises(CatalogLookupError) as exc:
        catalog.resolve_skus(["ENTERPRISEPACK", "FOO", "BAR"])
    assert exc.value.tokens == ["FOO", "BAR"]
    assert "FOO" in str(exc.value) and "BAR" in str(exc.value)


def test_source_role_in_message(catalog):
    with pytest.raises(CatalogLookupError, match="Unknown source SKU"):
        catalog.resolve_skus(["M365_F1"], role="source")


def test_available_filters_exhausted_skus(catalog):
    assert [s.sku_id for s in catalog.available()] == [E3, E1]
    e3 = catalog.sku_by_id(E3)
    assert e3.available_units == 5


def test_plan_lookup_is_scoped_to_sku(catalog):
    e1 = catalog.sku_by_id(E1)
    assert e1.resolve_plan_ids(["TEAMS1", "YAMMER_ENTERPRISE"]) == frozenset({TEAMS})
    e3 = catalog.sku_by_id(E3)
    assert e3.resolve_plan_ids(["yammer_enterprise", TEAMS.upper()]) == frozenset({YAMMER, TEAMS})


def test_describe_helpers(catalog):
    assert catalog.plan_name(YAMMER.upper()) == "YAMMER_ENTERPRISE"
    assert catalog.describe_sku(E5) == "ENTERPRISEPREMIUM"
    assert catalog.describe_sku("unknown-id") == "unknown-id"
    assert catalog.describe_plans([TEAMS, "x"]) == ["TEAMS1", "x"]


def test_items_without_ids_are_skipped():
    cat = Catalog.from_graph([
        {"skuPartNumber": "BROKEN"},
        {"skuId": "abc", "skuPartNumber": "OK", "servicePlans": [{"servicePlanName": "NOID"}]},
    ])
    assert [s.sku_part_number for s in cat.skus] == ["OK"]
    assert cat.skus[0].service_plans == ()
