import pytest

from homelead.services import tagging
from homelead.services.errors import Conflict, NotFound, ValidationFailed


def test_ensure_tag_creates_once():
    catalog = {"tags": []}
    first = tagging.ensure_tag(catalog, "Osaka", "#5856d6", "prefecture")
    second = tagging.ensure_tag(catalog, "Osaka", "#000000", "prefecture")
    assert first is second
    assert len(catalog["tags"]) == 1
    assert first["id"].startswith("tag_")
    assert first["color"] == "#5856d6"


def test_ensure_tag_backfills_but_never_overwrites_category():
    catalog = {"tags": [{"id": "t1", "name": "Osaka", "color": "#fff", "category": ""}]}
    tagging.ensure_tag(catalog, "Osaka", "#5856d6", "prefecture")
    assert catalog["tags"][0]["category"] == "prefecture"

    tagging.ensure_tag(catalog, "Osaka", "#5856d6", "something-else")
    assert catalog["tags"][0]["category"] == "prefecture"


@pytest.mark.parametrize("value", [None, "", "-", "unspecified", "未入力", "  -  "])
def test_sentinels_are_not_tagged(value):
    catalog = {"tags": []}
    record = {"prefecture": value, "tags": []}
    assert tagging.retag(record, catalog, "prefecture") is False
    assert catalog["tags"] == []
    assert record["tags"] == []


def test_apply_auto_tags_on_new_record():
    catalog = {"tags": []}
    record = {"prefecture": "Osaka", "propertyType": "Condo"}
    tagging.apply_auto_tags(record, catalog)
    assert record["tags"] == ["Osaka", "Condo"]
    cats = {t["name"]: t["category"] for t in catalog["tags"]}
    assert cats == {"Osaka": "prefecture", "Condo": "propertyType"}


def test_retag_replaces_old_value_only_on_this_record():
    catalog = {"tags": []}
    rec = {"propertyType": "Condo", "tags": ["Condo", "VIP"]}
    tagging.ensure_tag(catalog, "Condo", "#0071e3", "propertyType")

    before = dict(rec)
    rec["propertyType"] = "House"
    tagging.apply_auto_tags(rec, catalog, previous=before)

    assert rec["tags"] == ["VIP", "House"]
    assert {t["name"] for t in catalog["tags"]} == {"Condo", "House"}


def test_unchanged_field_is_left_alone():
    catalog = {"tags": []}
    rec = {"prefecture": "Osaka", "tags": []}
    tagging.apply_auto_tags(rec, catalog, previous=dict(rec))
    assert rec["tags"] == []


def test_add_tag_never_duplicates():
    rec = {"tags": ["A"]}
    tagging.add_tag(rec, "A")
    tagging.add_tag(rec, "B")
    assert rec["tags"] == ["A", "B"]
    assert tagging.dedupe(["A", "B", "A", " ", "B "]) == ["A", "B"]


def test_create_catalog_tag_rules():
    catalog = {"tags": []}
    tag = tagging.create_catalog_tag(catalog, "  VIP ", None, None)
    assert tag["name"] == "VIP"
    assert tag["color"] == tagging.DEFAULT_COLOR
    with pytest.raises(Conflict):
        tagging.create_catalog_tag(catalog, "VIP")
    with pytest.raises(ValidationFailed):
        tagging.create_catalog_tag(catalog, "   ")


def test_delete_catalog_tag_strips_it_from_every_customer():
    catalog = {"tags": [{"id": "t1", "name": "VIP"}, {"id": "t2", "name": "Osaka"}]}
    customers = {
        "a": {"tags": ["VIP", "Osaka"]},
        "b": {"tags": ["VIP"]},
        "c": {},
    }
    tagging.delete_catalog_tag(catalog, customers, "t1")
    assert [t["name"] for t in catalog["tags"]] == ["Osaka"]
    assert customers["a"]["tags"] == ["Osaka"]
    assert customers["b"]["tags"] == []

    with pytest.raises(NotFound):
        tagging.delete_catalog_tag(catalog, customers, "t1")


def test_placeholder_in_between_never_leaves_two_auto_tags():
    catalog = {"tags": []}
    rec = {"prefecture": "Osaka", "tags": []}
    tagging.apply_auto_tags(rec, catalog)

    before = dict(rec)
    rec["prefecture"] = "-"
    tagging.apply_auto_tags(rec, catalog, previous=before)
    assert rec["tags"] == []

    before = dict(rec)
    rec["prefecture"] = "Kyoto"
    assert tagging.apply_auto_tags(rec, catalog, previous=before) == ["Kyoto"]
    assert rec["tags"] == ["Kyoto"]
    assert {t["name"] for t in catalog["tags"]} == {"Osaka", "Kyoto"}
