# homelead/services/llm_service.py
"""
Bridge to the AI provider (OpenAI-compatible chat completions, DeepSeek by default).

- one pooled requests.Session, no retries: a failed call is reported, never repeated
- generate_reply() is bounded by a wall-clock timeout; a stalled provider
  surfaces as LLMTimeout instead of hanging the request
- callers turn every LLMError into a user-safe message via fallback_message()
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from homelead.core.config import DEEPSEEK_API_KEY, DEEPSEEK_MODEL, DEEPSEEK_URL, LLM_TIMEOUT

logger = logging.getLogger("homelead.llm")

# ---------- Tunables ----------
CONNECT_TIMEOUT = float(os.getenv("DEEPSEEK_CONNECT_TIMEOUT", "5"))   # seconds
POOL_MAXSIZE    = int(os.getenv("DEEPSEEK_POOL_MAXSIZE", "20"))


class LLMError(Exception):
    """Provider failure that is not a timeout or a rate limit."""


class LLMTimeout(LLMError):
    pass


class LLMRateLimited(LLMError):
    pass


class LLMNotConfigured(LLMError):
    pass


FALLBACK_MESSAGES = {
    LLMTimeout: "Generating the answer is taking longer than usual. Please try again.",
    LLMRateLimited: "Please wait a moment and try again.",
    LLMNotConfigured: "The AI assistant is not configured right now.",
}
GENERIC_FALLBACK = "A temporary error occurred. Please try again."


def fallback_message(err: Exception) -> str:
    for kind, msg in FALLBACK_MESSAGES.items():
        if isinstance(err, kind):
            return msg
    return GENERIC_FALLBACK


def to_provider_turns(messages: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Stored chat turns -> provider roles (anything that isn't the user is the assistant)."""
    out = []
    for m in messages or []:
        role = "user" if m.get("role") == "user" else "assistant"
        out.append({"role": role, "content": str(m.get("content") or "")})
    return out


class LLMClient:
    def __init__(
        self,
        api_key: str = DEEPSEEK_API_KEY,
        url: str = DEEPSEEK_URL,
        model: str = DEEPSEEK_MODEL,
        timeout: float = LLM_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self._session = session

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_session(self) -> requests.Session:
        if self._session is None:
            s = requests.Session()
            adapter = HTTPAdapter(max_retries=0, pool_maxsize=POOL_MAXSIZE)
            s.mount("https://", adapter)
            s.mount("http://", adapter)
            self._session = s
        return self._session

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def complete(self, messages: List[Dict[str, str]], temperature: float = 0.7, json_mode: bool = False) -> str:
        """Blocking chat-completions call. Raises an LLMError subclass on failure."""
        if not self.configured:
            raise LLMNotConfigured("AI provider API key is not set")

        body: Dict[str, Any] = {"model": self.model, "messages": messages, "temperature": temperature}
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            resp = self._get_session().post(
                self.url, headers=self._headers(), json=body, timeout=(CONNECT_TIMEOUT, self.timeout)
            )
        except requests.Timeout as e:
            raise LLMTimeout(str(e)) from e
        except requests.RequestException as e:
            logger.error("LLM transport error: %r", e)
            raise LLMError(str(e)) from e

        if resp.status_code == 429 or "RESOURCE_EXHAUSTED" in resp.text[:500]:
            logger.warning("LLM rate limited (HTTP %d)", resp.status_code)
            raise LLMRateLimited(f"HTTP {resp.status_code}")
        if resp.status_code >= 400:
            logger.warning("LLM HTTP %d: %s", resp.status_code, resp.text[:300])
            raise LLMError(f"HTTP {resp.status_code}")

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("LLM returned an unexpected body: %s", resp.text[:300])
            raise LLMError("Unexpected response shape") from e
        return content or ""

    async def _bounded(self, messages: List[Dict[str, str]], **kw) -> str:
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.complete, messages, **kw), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("LLM call exceeded %.1fs", self.timeout)
            raise LLMTimeout("TIMEOUT") from e

    async def generate_reply(self, system_prompt: str, prior_turns: List[Dict[str, Any]], latest_message: str) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages += to_provider_turns(prior_turns)
        messages.append({"role": "user", "content": latest_message})
        return await self._bounded(messages)

    async def generate_json(self, prompt: str, temperature: float = 0.3) -> Any:
        """One-shot prompt whose answer should be JSON; recovered loosely."""
        text = await self._bounded([{"role": "user", "content": prompt}], temperature=temperature, json_mode=True)
        return parse_json_loose(text)


_ARRAY = re.compile(r"\[[\s\S]*\]")
_OBJECT = re.compile(r"\{[\s\S]*\}")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def parse_json_loose(text: str) -> Any:
    """
    Parse JSON out of a model answer that may wrap it in prose or code fences.
    Raises LLMError when nothing usable is found.
    """
    text = (text or "").strip()
    candidates = [text]
    for pattern in (_OBJECT, _ARRAY):
        m = pattern.search(text)
        if m:
            candidates.append(m.group(0))
    for raw in candidates:
        for attempt in (raw, _TRAILING_COMMA.sub(r"\1", _CONTROL.sub(" ", raw))):
            try:
                return json.loads(attempt)
            except ValueError:
                continue
    logger.error("Could not parse JSON from model output: %s", text[:300])
    raise LLMError("Could not parse the AI response")


_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
