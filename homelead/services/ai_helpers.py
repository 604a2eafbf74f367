# homelead/services/ai_helpers.py
"""
AI-assisted operations: the customer chat turn, the agent's consultation chat,
and the structured helpers (to-do suggestions, interaction analysis, field
extraction, article picks for the welcome email).

Every function raises LLMError subclasses on provider trouble; the API layer
turns those into soft {"error": ...} payloads.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from homelead.services import articles, lifecycle, prompts
from homelead.services.engagement import EXTRACTABLE_FIELDS, normalize_priority
from homelead.services.errors import NotFound, ValidationFailed
from homelead.services.json_store import Stores
from homelead.services.llm_service import LLMClient, LLMError
from homelead.services.security import short

logger = logging.getLogger("homelead.ai")

MAX_SUGGESTIONS = 5


def _split_turns(messages: List[Dict[str, Any]]):
    if not messages:
        raise ValidationFailed("messages must not be empty")
    latest = messages[-1] or {}
    return messages[:-1], str(latest.get("content") or "")


def _record(stores: Stores, token: str) -> Dict[str, Any]:
    record = stores.customers.get(token)
    if record is None:
        raise NotFound("Customer not found")
    return record


async def customer_chat(
    stores: Stores,
    llm: LLMClient,
    customer: Dict[str, Any],
    messages: List[Dict[str, Any]],
    token: str | None = None,
) -> str:
    """
    One customer-facing AI turn. Blocked or withdrawn tokens raise Forbidden.
    The cleaned reply is appended to the stored AI chat history.
    """
    stored = lifecycle.customer_for_chat(stores, token)
    # the stored record wins over whatever profile the client sent along
    profile = {**(customer or {}), **(stored or {})}
    prior, latest = _split_turns(messages)

    raw = await llm.generate_reply(prompts.customer_chat_prompt(profile), prior, latest)
    reply = prompts.clean_reply(raw)

    if stored is not None:
        await asyncio.to_thread(lifecycle.append_chat_reply, stores, token, messages, reply)
    logger.info("AI chat reply token=%s chars=%d", short(token or ""), len(reply))
    return reply


def _save_agent_thread(stores: Stores, token: str, thread: List[Dict[str, Any]]) -> None:
    with stores.customers.transaction() as db:
        if token in db:
            db[token]["agentChatHistory"] = thread


async def agent_chat(stores: Stores, llm: LLMClient, token: str, messages: List[Dict[str, Any]]) -> str:
    """Agent consults the model about one customer; the thread is kept on the record."""
    record = _record(stores, token)
    prior, latest = _split_turns(messages)
    reply = await llm.generate_reply(prompts.agent_consult_prompt(record), prior, latest)

    await asyncio.to_thread(_save_agent_thread, stores, token, list(messages) + [{"role": "assistant", "content": reply}])
    return reply


async def customer_chat_preview(stores: Stores, llm: LLMClient, token: str, messages: List[Dict[str, Any]]) -> str:
    """How the assistant would answer this customer, for the agent to try out."""
    record = _record(stores, token)
    prior, latest = _split_turns(messages)
    raw = await llm.generate_reply(prompts.customer_preview_prompt(record), prior, latest)
    return prompts.clean_reply(raw)


def normalize_suggestions(parsed: Any) -> List[Dict[str, str]]:
    if isinstance(parsed, dict):
        parsed = parsed.get("suggestions") or parsed.get("todos") or [parsed]
    if not isinstance(parsed, list):
        raise LLMError("Suggestions were not a list")
    out = []
    for s in parsed[:MAX_SUGGESTIONS]:
        if not isinstance(s, dict):
            continue
        out.append({
            "text": str(s.get("text") or s.get("todo") or "")[:100],
            "priority": normalize_priority(s.get("priority")),
            "reason": str(s.get("reason") or "")[:150],
        })
    return out


async def suggest_todos(stores: Stores, llm: LLMClient, token: str) -> List[Dict[str, str]]:
    record = _record(stores, token)
    parsed = await llm.generate_json(prompts.suggest_todos_prompt(record), temperature=0.7)
    return normalize_suggestions(parsed)


async def analyze_interaction(stores: Stores, llm: LLMClient, token: str, content: str) -> Dict[str, Any]:
    record = _record(stores, token)
    parsed = await llm.generate_json(prompts.analyze_interaction_prompt(record, content or ""))
    if not isinstance(parsed, dict):
        raise LLMError("Analysis was not an object")
    todos = parsed.get("suggestedTodos") or []
    return {
        "insight": str(parsed.get("insight") or ""),
        "suggestedTodos": [
            {"text": str(t.get("text") or ""), "priority": normalize_priority(t.get("priority"))}
            for t in todos if isinstance(t, dict)
        ],
    }


async def extract_from_chat(stores: Stores, llm: LLMClient, token: str) -> Dict[str, Any]:
    """Profile fields stated in the AI chat history. Nulls are dropped."""
    record = _record(stores, token)
    history = record.get("chatHistory") or []
    if not history:
        return {}
    parsed = await llm.generate_json(prompts.extract_fields_prompt(history, EXTRACTABLE_FIELDS))
    if not isinstance(parsed, dict):
        raise LLMError("Extraction was not an object")
    return {
        k: v for k, v in parsed.items()
        if k in EXTRACTABLE_FIELDS and v is not None and v not in ("null", "")
    }


async def pick_articles(llm: LLMClient, customer: Dict[str, Any]) -> List[Dict[str, str]]:
    """Three articles for the welcome email; any failure falls back to a fixed list."""
    if not llm.configured:
        return articles.fallback_picks()
    try:
        parsed = await llm.generate_json(prompts.article_pick_prompt(customer))
        picks = articles.picks_from_indices(parsed.get("indices") if isinstance(parsed, dict) else None)
    except LLMError as e:
        logger.warning("Article pick failed, using fallback: %s", e)
        picks = []
    return picks or articles.fallback_picks()
