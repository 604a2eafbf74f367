import json

import pytest

from homelead.services import email_templates
from homelead.services.llm_service import LLMError


@pytest.fixture
def customer(client, profile):
    r = client.post("/api/register", json=profile(password="secret123"))
    return r.json()["token"]


def _register(client, **fields):
    return client.post("/api/register", json=fields).json()["token"]


def test_admin_routes_require_the_shared_secret(client):
    assert client.get("/api/admin/customers").status_code == 401
    assert client.get("/api/admin/customers", headers={"x-admin-pass": "wrong"}).status_code == 401


def test_list_and_get_customer(client, admin, customer):
    rows = client.get("/api/admin/customers", headers=admin).json()["customers"]
    assert [r["token"] for r in rows] == [customer]
    assert rows[0]["status"] == "active"
    assert rows[0]["tags"] == ["Osaka", "Condo"]

    detail = client.get(f"/api/admin/customer/{customer}", headers=admin).json()["customer"]
    assert detail["email"] == "hana@example.com"
    assert "passwordHash" not in detail
    assert client.get("/api/admin/customer/missing", headers=admin).status_code == 404


def test_admin_update_and_delete(client, admin, customer):
    r = client.put(f"/api/admin/customer/{customer}", headers=admin, json={"stage": 3, "memo": "prefers south-facing"})
    assert set(r.json()["changed"]) == {"stage", "memo"}
    detail = client.get(f"/api/admin/customer/{customer}", headers=admin).json()["customer"]
    assert detail["stage"] == 3

    assert client.delete(f"/api/admin/customer/{customer}", headers=admin).json()["success"]
    assert client.get(f"/api/admin/customer/{customer}", headers=admin).status_code == 404


def test_block_unblock(client, admin, customer):
    assert client.post(f"/api/admin/block/{customer}", headers=admin).json()["success"]
    row = client.get("/api/admin/customers", headers=admin).json()["customers"][0]
    assert row["status"] == "blocked" and row["blockedAt"]

    client.post(f"/api/admin/unblock/{customer}", headers=admin)
    row = client.get("/api/admin/customers", headers=admin).json()["customers"][0]
    assert row["status"] == "active" and row["blockedAt"] is None


def test_admin_password_change(client, admin):
    r = client.post("/api/admin/change-password", headers=admin, json={"currentPassword": "bad", "newPassword": "next-pass"})
    assert r.status_code == 401
    r = client.post("/api/admin/change-password", headers=admin, json={"currentPassword": "test-admin", "newPassword": "next-pass"})
    assert r.json()["success"]
    assert client.get("/api/admin/customers", headers=admin).status_code == 401
    assert client.get("/api/admin/customers", headers={"x-admin-pass": "next-pass"}).status_code == 200


def test_direct_chat_emails_customer(client, admin, notifier, customer):
    notifier.sent.clear()
    r = client.post(f"/api/admin/direct-chat/{customer}", headers=admin, json={"message": "The seller accepted!"})
    assert r.json()["success"]
    assert [m["to"] for m in notifier.sent] == ["hana@example.com"]

    msgs = client.get(f"/api/admin/direct-chat/{customer}", headers=admin).json()["messages"]
    assert msgs[-1]["role"] == "agent"
    assert msgs[-1]["content"] == "The seller accepted!"

    assert client.post(f"/api/admin/direct-chat/{customer}", headers=admin, json={"message": " "}).status_code == 400


def test_tag_catalog(client, admin, customer):
    r = client.post("/api/admin/tags", headers=admin, json={"name": "VIP", "color": "#ff0000"})
    tag = r.json()["tag"]
    assert client.post("/api/admin/tags", headers=admin, json={"name": "VIP"}).status_code == 409
    assert client.post("/api/admin/tags", headers=admin, json={"name": ""}).status_code == 400

    r = client.put(f"/api/admin/customer/{customer}/tags", headers=admin, json={"tags": ["Osaka", "VIP", "VIP"]})
    assert r.json()["tags"] == ["Osaka", "VIP"]

    assert client.delete(f"/api/admin/tags/{tag['id']}", headers=admin).json()["success"]
    names = [t["name"] for t in client.get("/api/admin/tags", headers=admin).json()["tags"]]
    assert "VIP" not in names
    row = client.get("/api/admin/customers", headers=admin).json()["customers"][0]
    assert row["tags"] == ["Osaka"]
    assert client.delete(f"/api/admin/tags/{tag['id']}", headers=admin).status_code == 404


def test_broadcast_preview_and_send(client, admin, notifier, profile):
    osaka = _register(client, **profile(email="a@example.com"))
    kyoto = _register(client, **profile(email="b@example.com", prefecture="Kyoto"))
    blocked = _register(client, **profile(email="c@example.com"))
    client.post(f"/api/admin/block/{blocked}", headers=admin)
    notifier.sent.clear()

    r = client.post("/api/admin/broadcasts/preview", headers=admin, json={"filterType": "include-all", "tags": ["Osaka"]})
    assert r.json()["matchCount"] == 1
    assert r.json()["customers"][0]["token"] == osaka

    r = client.post("/api/admin/broadcasts/preview", headers=admin, json={"filterType": "all"})
    assert {c["token"] for c in r.json()["customers"]} == {osaka, kyoto}

    r = client.post("/api/admin/broadcasts/preview", headers=admin, json={"filterType": "sometimes", "tags": ["Osaka"]})
    assert r.status_code == 400

    r = client.post(
        "/api/admin/broadcasts/send", headers=admin,
        json={"filterType": "exclude-any", "tags": ["Osaka"], "message": "Open house this weekend"},
    )
    body = r.json()
    assert body["success"] and body["sentCount"] == 1
    assert [m["to"] for m in notifier.sent] == ["b@example.com"]

    history = client.get(f"/api/admin/direct-chat/{kyoto}", headers=admin).json()["messages"]
    assert history[-1]["broadcastId"] == body["broadcastId"]

    log = client.get("/api/admin/broadcasts", headers=admin).json()["broadcasts"]
    assert log[0]["id"] == body["broadcastId"]
    assert log[0]["recipientTokens"] == [kyoto]


def test_broadcast_rejects_empty_message_and_audience(client, admin, customer):
    r = client.post("/api/admin/broadcasts/send", headers=admin, json={"filterType": "all", "message": "  "})
    assert r.status_code == 400
    r = client.post(
        "/api/admin/broadcasts/send", headers=admin,
        json={"filterType": "include-any", "tags": ["Nowhere"], "message": "hello"},
    )
    assert r.status_code == 400
    assert client.get("/api/admin/broadcasts", headers=admin).json()["broadcasts"] == []


def test_broadcast_survives_a_failing_recipient(client, admin, notifier, profile):
    _register(client, **profile(email="a@example.com"))
    _register(client, **profile(email="b@example.com"))
    notifier.sent.clear()
    notifier.fail_for = {"a@example.com"}

    r = client.post("/api/admin/broadcasts/send", headers=admin, json={"filterType": "all", "message": "New listings"})
    assert r.status_code == 200
    assert r.json()["sentCount"] == 2
    assert [m["to"] for m in notifier.sent] == ["b@example.com"]


def test_interactions_todos_checklist(client, admin, customer):
    base = "/api/admin"
    i1 = client.post(f"{base}/interactions/{customer}", headers=admin, json={"method": "phone", "content": "first call"}).json()["interaction"]
    i2 = client.post(f"{base}/interactions/{customer}", headers=admin, json={"method": "visit", "content": "viewing"}).json()["interaction"]
    listed = client.get(f"{base}/interactions/{customer}", headers=admin).json()["interactions"]
    assert [i["id"] for i in listed] == [i2["id"], i1["id"]]
    client.delete(f"{base}/interaction/{customer}/{i1['id']}", headers=admin)
    assert len(client.get(f"{base}/interactions/{customer}", headers=admin).json()["interactions"]) == 1

    todo = client.post(f"{base}/todos/{customer}", headers=admin, json={"text": "Send loan docs", "priority": "URGENT"}).json()["todo"]
    assert todo["done"] is False and todo["priority"] == "medium"
    updated = client.put(f"{base}/todo/{customer}/{todo['id']}", headers=admin, json={"done": True}).json()["todo"]
    assert updated["done"] is True
    assert client.put(f"{base}/todo/{customer}/nope", headers=admin, json={"done": True}).status_code == 404
    client.delete(f"{base}/todo/{customer}/{todo['id']}", headers=admin)
    assert client.get(f"{base}/todos/{customer}", headers=admin).json()["todos"] == []

    template = client.get(f"{base}/checklist-template", headers=admin).json()["template"]
    checklist = client.get(f"{base}/checklist/{customer}", headers=admin).json()["checklist"]
    assert len(checklist) == len(template)
    checklist[0]["items"][0]["checked"] = True
    assert client.put(f"{base}/checklist/{customer}", headers=admin, json={"checklist": checklist}).json()["success"]
    again = client.get(f"{base}/checklist/{customer}", headers=admin).json()["checklist"]
    assert again[0]["items"][0]["checked"] is True


def test_ai_helpers(client, admin, llm, customer):
    base = "/api/admin"
    llm.replies = [json.dumps({"suggestions": [{"text": "Call about financing", "priority": "high", "reason": "budget set"}]})]
    r = client.post(f"{base}/suggest-todos/{customer}", headers=admin)
    assert r.json()["suggestions"] == [{"text": "Call about financing", "priority": "high", "reason": "budget set"}]

    llm.replies = ['Sure: ```json\n{"insight": "Keen on schools", "suggestedTodos": [{"text": "Send school map", "priority": "low"}],}\n```']
    r = client.post(f"{base}/analyze-interaction/{customer}", headers=admin, json={"content": "Asked about schools"})
    assert r.json() == {"insight": "Keen on schools", "suggestedTodos": [{"text": "Send school map", "priority": "low"}]}

    llm.replies = ["Call them tomorrow."]
    r = client.post(f"{base}/chat-agent/{customer}", headers=admin, json={"messages": [{"role": "user", "content": "next step?"}]})
    assert r.json() == {"reply": "Call them tomorrow."}
    assert "Hana Sato" in llm.calls[-1]["messages"][0]["content"]

    llm.error = LLMError("HTTP 500")
    r = client.post(f"{base}/suggest-todos/{customer}", headers=admin)
    assert r.status_code == 200
    assert r.json() == {"error": "A temporary error occurred. Please try again."}


def test_extract_and_apply(client, admin, llm, customer):
    base = "/api/admin"
    # no AI chat yet
    assert client.post(f"{base}/extract-from-chat/{customer}", headers=admin).json() == {"extracted": {}}

    client.post(f"/api/chat-history/{customer}", json={"messages": [{"role": "user", "content": "We have a cat and need parking"}]})
    llm.replies = [json.dumps({"pet": "cat", "parking": "1 car", "timeline": None, "passwordHash": "x"})]
    extracted = client.post(f"{base}/extract-from-chat/{customer}", headers=admin).json()["extracted"]
    assert extracted == {"pet": "cat", "parking": "1 car"}

    r = client.post(f"{base}/apply-extracted-info/{customer}", headers=admin, json={"fields": {**extracted, "area": "Umeda", "token": "x"}})
    assert sorted(r.json()["applied"]) == ["parking", "pet"]
    detail = client.get(f"{base}/customer/{customer}", headers=admin).json()["customer"]
    assert detail["pet"] == "cat"
    assert detail["area"] == "Suita"

    assert client.post(f"{base}/apply-extracted-info/{customer}", headers=admin, json={"fields": ["pet"]}).status_code == 400


def _broken_template(*args):
    raise RuntimeError("template missing")


def test_direct_chat_succeeds_when_email_cannot_be_rendered(client, admin, notifier, customer, monkeypatch):
    monkeypatch.setattr(email_templates, "render_agent_message", _broken_template)
    notifier.sent.clear()

    r = client.post(f"/api/admin/direct-chat/{customer}", headers=admin, json={"message": "Keys are ready"})
    assert r.status_code == 200
    assert notifier.sent == []
    msgs = client.get(f"/api/admin/direct-chat/{customer}", headers=admin).json()["messages"]
    assert msgs[-1]["content"] == "Keys are ready"


def test_broadcast_succeeds_when_email_cannot_be_rendered(client, admin, notifier, customer, monkeypatch):
    monkeypatch.setattr(email_templates, "render_broadcast", _broken_template)
    notifier.sent.clear()

    r = client.post("/api/admin/broadcasts/send", headers=admin, json={"filterType": "all", "message": "Price drop"})
    assert r.status_code == 200
    assert r.json()["sentCount"] == 1
    assert notifier.sent == []
    assert len(client.get("/api/admin/broadcasts", headers=admin).json()["broadcasts"]) == 1


def test_broadcast_emails_render_with_customer_name(client, admin, notifier, customer):
    notifier.sent.clear()
    client.post("/api/admin/broadcasts/send", headers=admin, json={"filterType": "all", "message": "Price drop"})
    assert len(notifier.sent) == 1
    assert "Hana Sato" in notifier.sent[0]["html"]
    assert "Price drop" in notifier.sent[0]["html"]
