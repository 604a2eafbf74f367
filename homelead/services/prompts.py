# homelead/services/prompts.py
"""
Prompt assembly for the AI provider, plus cleanup of what comes back.

Everything here is a pure function of the customer record and fixed text, so
the same record always yields the same prompt.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from homelead.core.config import BOOKING_URL
from homelead.services import articles
from homelead.services.checklist import progress
from homelead.services.tagging import is_sentinel

NOT_PROVIDED = "not provided"

# order matters: the first missing one is what the assistant asks about next
PRIORITY_FIELDS = ("area", "budget", "family", "propertyType", "purpose", "timeline", "occupation", "income")

FIELD_LABELS = {
    "area": "preferred area",
    "budget": "budget",
    "family": "family composition",
    "propertyType": "property type",
    "purpose": "reason for registering",
    "timeline": "purchase timeline",
    "occupation": "occupation",
    "income": "annual income",
}

# (label, key) pairs for the admin-side context block
CONTEXT_FIELDS = (
    ("Age", "age"), ("Prefecture", "prefecture"), ("Family", "family"),
    ("Household income", "householdIncome"), ("Current home", "currentHome"),
    ("Search reason (registration)", "searchReason"), ("Reason for moving", "reason"),
    ("Property type", "propertyType"), ("Purpose", "purpose"), ("Preferred area", "area"),
    ("Budget", "budget"), ("Free comment (registration)", "freeComment"),
    ("Size", "size"), ("Layout", "layout"), ("Station distance", "stationDistance"),
    ("Occupation", "occupation"), ("Income", "income"), ("Savings", "savings"),
    ("Loan status", "loanStatus"), ("Motivation", "motivation"), ("Timeline", "timeline"),
    ("Email", "email"), ("Phone", "phone"), ("Messaging handle", "line"),
    ("Spouse occupation", "spouseOccupation"), ("Spouse income", "spouseIncome"),
    ("Current rent", "currentRent"), ("Pet", "pet"), ("Parking", "parking"),
    ("Special requirements", "specialRequirements"), ("Memo", "memo"),
)

CHAT_POLICY = """You are the AI assistant of an independent home-purchase agent.
You talk with a registered customer about buying a home. Always put the
customer's interest first, never pressure them, and answer in plain language.

Conversation rules:
- Address the customer by name with "{name}".
- Keep replies short: two or three paragraphs at most.
- Explain jargon the first time you use it.
- When a blog article would genuinely help, add it on its own line as
  {{{{ARTICLE|exact article title}}}} using a title from the article list. Never
  write URLs yourself.
- When offering the customer a few clear options, put them on the last line as
  {{{{CHOICES|option one|option two|option three}}}}.

Booking an online meeting:
- Suggest a short online meeting only when the customer's question really needs
  the agent (financing decisions, builder introductions, property searches).
- Show the booking link {{{{BOOKING|{booking_url}}}}} only after the customer has
  agreed to a meeting. If they decline, accept it warmly, keep helping, and do
  not bring the meeting up again in this conversation.

Article list: {article_list}"""


def value_or_placeholder(record: Dict[str, Any], key: str) -> str:
    v = record.get(key)
    return NOT_PROVIDED if is_sentinel(v) else str(v)


def first_missing_field(customer: Dict[str, Any]) -> Optional[str]:
    for f in PRIORITY_FIELDS:
        if is_sentinel(customer.get(f)):
            return f
    return None


def missing_field_hint(customer: Dict[str, Any]) -> str:
    field = first_missing_field(customer)
    if field is None:
        return ""
    return (
        f"Information gathering: the customer's {FIELD_LABELS[field]} is still unknown. "
        "If it fits the flow of the conversation, ask about it naturally in one short "
        "question. Never ask about more than one missing item per reply, and skip it "
        "entirely if the customer is upset or in the middle of a question."
    )


def customer_profile_block(customer: Dict[str, Any]) -> str:
    name = value_or_placeholder(customer, "name")
    lines = [
        "[Customer profile]",
        f"Name: {name}",
        f"Family: {value_or_placeholder(customer, 'family')}",
        f"Household income: {value_or_placeholder(customer, 'householdIncome')}",
        f"Property type: {value_or_placeholder(customer, 'propertyType')}",
        f"Purpose: {value_or_placeholder(customer, 'purpose')}",
        f"Search reason: {value_or_placeholder(customer, 'searchReason')}",
        f"Preferred area: {value_or_placeholder(customer, 'area')}",
        f"Budget: {value_or_placeholder(customer, 'budget')}",
        f"Free comment: {customer.get('freeComment') or ''}",
    ]
    return "\n".join(lines)


def customer_chat_prompt(customer: Dict[str, Any]) -> str:
    """System prompt for the customer-facing AI chat."""
    name = customer.get("name") or "the customer"
    policy = CHAT_POLICY.format(name=name, booking_url=BOOKING_URL, article_list=articles.compact_list())
    parts = [policy, customer_profile_block(customer)]
    hint = missing_field_hint(customer)
    if hint:
        parts.append(hint)
    return "\n\n".join(parts)


def _turns(messages: List[Dict[str, Any]], last: int, user_label: str, other_label: str) -> List[str]:
    out = []
    for m in (messages or [])[-last:]:
        role = user_label if m.get("role") == "user" else other_label
        out.append(f"{role}: {str(m.get('content') or '')[:300]}")
    return out


def customer_context(record: Dict[str, Any]) -> str:
    """Full picture of one customer for the agent-side helpers."""
    name = value_or_placeholder(record, "name")
    birth = (
        f"{record['birthYear']}-{record['birthMonth']}"
        if record.get("birthYear") and record.get("birthMonth") else NOT_PROVIDED
    )
    lines = ["[Customer]", f"Name: {name}", f"Born: {birth}"]
    lines += [f"{label}: {value_or_placeholder(record, key)}" for label, key in CONTEXT_FIELDS]
    ctx = "\n".join(lines)

    interactions = (record.get("interactions") or [])[:10]
    if interactions:
        ctx += "\n\n[Recent interactions]\n" + "\n".join(
            f"{i.get('date') or i.get('createdAt', '')} ({i.get('method') or '-'}): {i.get('content') or ''}"
            for i in interactions
        )

    todos = record.get("todos") or []
    if todos:
        ctx += "\n\n[Current to-dos]\n" + "\n".join(
            f"[{'done' if t.get('done') else 'open'}] {t.get('priority') or 'medium'} {t.get('text') or ''}"
            + (f" (due {t['deadline']})" if t.get("deadline") else "")
            for t in todos
        )

    if record.get("checklist"):
        done, total = progress(record["checklist"])
        ctx += f"\n\n[Checklist progress] {done}/{total} done"

    chat = _turns(record.get("chatHistory") or [], 20, "Customer", "AI")
    if chat:
        ctx += "\n\n[AI chat history]\n" + "\n".join(chat)

    direct = _turns(record.get("directChatHistory") or [], 15, "Customer", "Agent")
    if direct:
        ctx += "\n\n[Direct chat with the agent]\n" + "\n".join(direct)

    return ctx


def agent_consult_prompt(record: Dict[str, Any]) -> str:
    return f"""You are a senior real-estate brokerage advisor helping an independent agent
handle one of their customers. Everything known about the customer follows.

{customer_context(record)}

Answer the agent's questions with:
- concrete proposals grounded in this customer's situation
- the next action to take
- risks or points to watch
- hypotheses about needs the customer has not voiced

Be brief and practical; bullet points are fine. If concrete to-dos come up,
list them at the end under "To-do candidates"."""


def customer_preview_prompt(record: Dict[str, Any]) -> str:
    name = record.get("name") or "the customer"
    return f"""You are the AI assistant of an independent home-purchase agent, talking with {name}.

{customer_context(record)}

Be warm, honest and approachable. Address worries first, answer purchase
questions accurately, and explain jargon plainly."""


def suggest_todos_prompt(record: Dict[str, Any]) -> str:
    return f"""You are the right hand of a top real-estate agent. Propose 3 to 5 actionable
to-dos that tell the agent what to do next for this customer.

{customer_context(record)}

Focus on:
1. interests, worries and temperature visible in the AI chat
2. promises or open items from the direct chat with the agent
3. the customer's attributes and current progress
4. which existing to-dos are done or still open

Output only a JSON array. Keep every value short.
[{{"text": "to-do", "priority": "high|medium|low", "reason": "why"}}]"""


def analyze_interaction_prompt(record: Dict[str, Any], content: str) -> str:
    return f"""You are a professional real-estate advisor.

{customer_context(record)}

Analyse the interaction note below and return insights and next-action candidates.

Interaction: {content}

Return only JSON:
{{"insight": "key observations", "suggestedTodos": [{{"text": "action", "priority": "high|medium|low"}}]}}"""


def extract_fields_prompt(chat_history: List[Dict[str, Any]], fields: tuple) -> str:
    chat_text = "\n".join(
        f"{'User' if m.get('role') == 'user' else 'AI'}: {m.get('content') or ''}" for m in chat_history
    )
    template = json.dumps({f: "value or null" for f in fields}, indent=2)
    return f"""Extract the customer's information from the chat history below.
Only extract what is actually stated in the conversation. Do not guess.

Fields: {", ".join(fields)}

Chat history:
{chat_text}

Answer with this JSON only:
{template}"""


def article_pick_prompt(customer: Dict[str, Any]) -> str:
    profile = ", ".join(
        f"{label}: {value_or_placeholder(customer, key)}"
        for label, key in (
            ("Name", "name"), ("Family", "family"), ("Property type", "propertyType"),
            ("Purpose", "purpose"), ("Area", "area"), ("Budget", "budget"),
            ("Household income", "householdIncome"), ("Search reason", "searchReason"),
        )
    )
    return f"""Pick the three articles this customer should read first, based on their
situation, worries and goals.

Customer profile: {profile}

Articles:
{articles.indexed_list()}

Answer with JSON only: {{"indices": [0, 1, 2]}}"""


# scripts the model sometimes drifts into mid-reply
_STRAY_SCRIPTS = re.compile(
    r"[\u0980-\u09FF\u0400-\u04FF\u0600-\u06FF\u0E00-\u0E7F\u0900-\u097F\u1100-\u11FF\uAC00-\uD7AF]"
)
_BLANK_RUNS = re.compile(r"\n{3,}")


def clean_reply(reply: str) -> str:
    """Strip stray scripts, collapse blank-line runs and resolve article tags."""
    text = _STRAY_SCRIPTS.sub("", reply or "")
    text = _BLANK_RUNS.sub("\n\n", text).strip()
    return articles.resolve_tags(text)
