# homelead/services/email_templates.py
"""
Notification emails rendered from homelead/templates with Jinja2 (HTML autoescaped).

Each render_* function returns (subject, html).
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from homelead.core.config import APP_URL

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)

AGENT_PREVIEW_CHARS = 200
CUSTOMER_PREVIEW_CHARS = 300
BROADCAST_PREVIEW_CHARS = 500


def _render(template: str, **ctx: Any) -> str:
    return _env.get_template(template).render(app_url=APP_URL, **ctx)


def _name(customer: Dict[str, Any], default: str = "Customer") -> str:
    return customer.get("name") or default


def render_welcome(customer: Dict[str, Any], token: str, picks: List[Dict[str, str]]) -> Tuple[str, str]:
    name = _name(customer)
    html = _render(
        "welcome.html",
        name=name,
        articles=picks,
        withdraw_url=f"{APP_URL}?t={token}&withdraw=true",
    )
    return f"{name}, thank you for registering!", html


def render_lead_alert(customer: Dict[str, Any]) -> Tuple[str, str]:
    rows = [
        ("Name", customer.get("name")), ("Email", customer.get("email")), ("Phone", customer.get("phone")),
        ("Prefecture", customer.get("prefecture")), ("Family", customer.get("family")),
        ("Household income", customer.get("householdIncome")), ("Property type", customer.get("propertyType")),
        ("Purpose", customer.get("purpose")), ("Area", customer.get("area")), ("Budget", customer.get("budget")),
        ("Search reason", customer.get("searchReason")), ("Free comment", customer.get("freeComment")),
    ]
    html = _render("lead_alert.html", rows=[(k, v or "-") for k, v in rows], stage=customer.get("stage"))
    return f"New registration: {_name(customer)}", html


def render_direct_message_alert(customer_name: str, content: str) -> Tuple[str, str]:
    name = customer_name or "Unregistered name"
    html = _render("direct_message_alert.html", name=name, preview=(content or "")[:AGENT_PREVIEW_CHARS])
    return f"New message from {name}", html


def render_agent_message(customer_name: str, content: str) -> Tuple[str, str]:
    html = _render(
        "agent_message.html",
        name=customer_name or "Customer",
        preview=(content or "")[:CUSTOMER_PREVIEW_CHARS],
    )
    return "You have a new message from your agent", html


def render_broadcast(customer_name: str, message: str) -> Tuple[str, str]:
    html = _render(
        "broadcast.html",
        name=customer_name or "Customer",
        preview=(message or "")[:BROADCAST_PREVIEW_CHARS],
    )
    return "A message from your home-purchase agent", html
