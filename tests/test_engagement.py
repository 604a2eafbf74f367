import pytest

from homelead.services import engagement, lifecycle
from homelead.services.errors import NotFound, ValidationFailed


@pytest.fixture
def token(stores):
    return lifecycle.register(stores, {"name": "Ken", "prefecture": "Osaka"})["token"]


def test_extracted_property_type_is_auto_tagged(stores, token):
    applied = engagement.apply_extracted_fields(stores, token, {"propertyType": "House", "pet": "dog"})
    assert sorted(applied) == ["pet", "propertyType"]

    rec = stores.customers.get(token)
    assert rec["propertyType"] == "House"
    assert rec["tags"] == ["Osaka", "House"]
    house = next(t for t in stores.tags.list() if t["name"] == "House")
    assert house["category"] == "propertyType"


def test_extracted_fields_never_overwrite_real_values(stores, token):
    engagement.apply_extracted_fields(stores, token, {"propertyType": "House"})
    assert engagement.apply_extracted_fields(stores, token, {"propertyType": "Condo"}) == []
    assert stores.customers.get(token)["tags"] == ["Osaka", "House"]


def test_extracted_fields_rejects_non_object(stores, token):
    with pytest.raises(ValidationFailed):
        engagement.apply_extracted_fields(stores, token, ["propertyType"])
    with pytest.raises(NotFound):
        engagement.apply_extracted_fields(stores, "missing", {})


def test_todo_lifecycle(stores, token):
    todo = engagement.add_todo(stores, token, {"text": "Call bank", "priority": "HIGH", "id": "forged"})
    assert todo["id"] != "forged"
    assert todo["priority"] == "high"
    assert engagement.update_todo(stores, token, todo["id"], {"priority": "whenever"})["priority"] == "medium"
    with pytest.raises(NotFound):
        engagement.update_todo(stores, token, "nope", {"done": True})
