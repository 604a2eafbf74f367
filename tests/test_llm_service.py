import asyncio
import time

import pytest
import requests

from homelead.services.llm_service import (
    GENERIC_FALLBACK,
    LLMClient,
    LLMError,
    LLMNotConfigured,
    LLMRateLimited,
    LLMTimeout,
    fallback_message,
    parse_json_loose,
    to_provider_turns,
)


class _Resp:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _Session:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.posts = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append({"url": url, "headers": headers, "json": json})
        if self.exc is not None:
            raise self.exc
        return self.response


def _client(**kw):
    return LLMClient(api_key="k", url="http://llm.invalid/chat", model="m", timeout=2.0, session=_Session(**kw))


def _ok(content):
    return _Resp(200, {"choices": [{"message": {"content": content}}]}, text="{}")


def test_complete_returns_content_and_sends_bearer():
    c = _client(response=_ok("hello"))
    assert c.complete([{"role": "user", "content": "hi"}]) == "hello"
    post = c._session.posts[0]
    assert post["headers"]["Authorization"] == "Bearer k"
    assert post["json"]["model"] == "m"
    assert "response_format" not in post["json"]


def test_json_mode_requests_json_object():
    c = _client(response=_ok("{}"))
    c.complete([{"role": "user", "content": "hi"}], json_mode=True)
    assert c._session.posts[0]["json"]["response_format"] == {"type": "json_object"}


def test_rate_limit():
    with pytest.raises(LLMRateLimited):
        _client(response=_Resp(429, text="slow down")).complete([])
    with pytest.raises(LLMRateLimited):
        _client(response=_Resp(400, text='{"error": "RESOURCE_EXHAUSTED"}')).complete([])


def test_server_error_and_bad_shape():
    with pytest.raises(LLMError) as exc:
        _client(response=_Resp(500, text="boom")).complete([])
    assert not isinstance(exc.value, LLMRateLimited)
    with pytest.raises(LLMError):
        _client(response=_Resp(200, {"choices": []}, text="{}")).complete([])


def test_transport_errors():
    with pytest.raises(LLMTimeout):
        _client(exc=requests.ReadTimeout("read timed out")).complete([])
    with pytest.raises(LLMError):
        _client(exc=requests.ConnectionError("refused")).complete([])


def test_not_configured():
    with pytest.raises(LLMNotConfigured):
        LLMClient(api_key="").complete([])


class _SlowClient(LLMClient):
    def complete(self, messages, temperature=0.7, json_mode=False):
        time.sleep(0.5)
        return "late"


def test_generate_reply_is_bounded_by_timeout():
    c = _SlowClient(api_key="k", timeout=0.05)
    with pytest.raises(LLMTimeout):
        asyncio.run(c.generate_reply("sys", [], "hi"))


def test_generate_reply_builds_provider_messages():
    c = _client(response=_ok("answer"))
    prior = [{"role": "user", "content": "q1"}, {"role": "agent", "content": "a1"}]
    assert asyncio.run(c.generate_reply("sys", prior, "q2")) == "answer"
    sent = c._session.posts[0]["json"]["messages"]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[-1]["content"] == "q2"


def test_to_provider_turns():
    assert to_provider_turns([{"role": "assistant", "content": None}]) == [{"role": "assistant", "content": ""}]


@pytest.mark.parametrize("text, expected", [
    ('{"a": 1}', {"a": 1}),
    ('Here you go:\n```json\n{"a": [1, 2,]}\n```', {"a": [1, 2]}),
    ("indices: [0, 4, 7]", [0, 4, 7]),
])
def test_parse_json_loose(text, expected):
    assert parse_json_loose(text) == expected


def test_parse_json_loose_gives_up():
    with pytest.raises(LLMError):
        parse_json_loose("no json here")


def test_fallback_messages():
    assert "longer than usual" in fallback_message(LLMTimeout("x"))
    assert "wait a moment" in fallback_message(LLMRateLimited("x"))
    assert fallback_message(LLMError("x")) == GENERIC_FALLBACK
