import pytest
from fastapi.testclient import TestClient

from homelead.main import create_app
from homelead.services.json_store import Stores
from homelead.services.llm_service import LLMClient
from homelead.services.notifier import Notifier

ADMIN_PASS = "test-admin"


class FakeNotifier(Notifier):
    def __init__(self, fail_for=()):
        super().__init__(api_key=None)
        self.sent = []
        self.fail_for = set(fail_for)

    def notify(self, to, subject, html):
        if to in self.fail_for:
            raise RuntimeError(f"transport down for {to}")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True


class FakeLLM(LLMClient):
    """Scripted provider: returns queued replies in order, or raises `error`."""

    def __init__(self, replies=None, error=None, timeout=2.0):
        super().__init__(api_key="test-key", url="http://llm.invalid/chat", model="fake-model", timeout=timeout)
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def complete(self, messages, temperature=0.7, json_mode=False):
        self.calls.append({"messages": messages, "json_mode": json_mode})
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else "OK"


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def stores(data_dir):
    return Stores(data_dir, ADMIN_PASS)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def app(data_dir, notifier, llm):
    return create_app(data_dir=data_dir, notifier=notifier, llm=llm, admin_pass=ADMIN_PASS)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin():
    return {"x-admin-pass": ADMIN_PASS}


def full_profile(**overrides):
    """Registration payload with all ten completeness fields filled."""
    payload = {
        "name": "Hana Sato",
        "birthYear": "1990",
        "prefecture": "Osaka",
        "family": "couple + 1 child",
        "householdIncome": "9M",
        "propertyType": "Condo",
        "area": "Suita",
        "budget": "50M",
        "email": "hana@example.com",
        "phone": "090-0000-0000",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def profile():
    return full_profile
