# homelead/services/engagement.py
"""
Agent-side engagement records kept on a customer: interaction notes, to-dos,
the sales checklist, and fields extracted from the AI conversation.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from homelead.services import checklist as checklist_tpl
from homelead.services.errors import NotFound, ValidationFailed
from homelead.services.json_store import Stores
from homelead.services.lifecycle import now_iso
from homelead.services.security import generate_id, short
from homelead.services.tagging import apply_auto_tags, is_sentinel

logger = logging.getLogger("homelead.engagement")

PRIORITIES = ("high", "medium", "low")

EXTRACTABLE_FIELDS = (
    "age", "family", "currentHome", "reason", "area", "budget", "propertyType",
    "size", "layout", "stationDistance", "occupation", "income", "savings",
    "loanStatus", "motivation", "timeline", "spouseOccupation", "spouseIncome",
    "currentRent", "pet", "parking", "specialRequirements",
)

# record keys an engagement payload can never overwrite
_PROTECTED = frozenset({"id", "createdAt"})


def _record(db: Dict[str, Any], token: str) -> Dict[str, Any]:
    record = db.get(token)
    if record is None:
        raise NotFound("Customer not found")
    return record


def normalize_priority(value: Any) -> str:
    v = str(value or "").strip().lower()
    return v if v in PRIORITIES else "medium"


# ---- interactions -----------------------------------------------------------

def list_interactions(stores: Stores, token: str) -> List[Dict[str, Any]]:
    return _record(stores.customers.load(), token).get("interactions") or []


def add_interaction(stores: Stores, token: str, body: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in (body or {}).items() if k not in _PROTECTED}
    interaction = {"id": generate_id(), **fields, "createdAt": now_iso()}
    with stores.customers.transaction() as db:
        record = _record(db, token)
        record.setdefault("interactions", []).insert(0, interaction)
    logger.info("Interaction added token=%s id=%s", short(token), interaction["id"])
    return interaction


def delete_interaction(stores: Stores, token: str, interaction_id: str) -> None:
    with stores.customers.transaction() as db:
        record = _record(db, token)
        record["interactions"] = [i for i in record.get("interactions") or [] if i.get("id") != interaction_id]


# ---- to-dos -----------------------------------------------------------------

def list_todos(stores: Stores, token: str) -> List[Dict[str, Any]]:
    return _record(stores.customers.load(), token).get("todos") or []


def add_todo(stores: Stores, token: str, body: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in (body or {}).items() if k not in _PROTECTED}
    todo = {"id": generate_id(), "done": False, **fields, "createdAt": now_iso()}
    if "priority" in todo:
        todo["priority"] = normalize_priority(todo["priority"])
    with stores.customers.transaction() as db:
        _record(db, token).setdefault("todos", []).append(todo)
    logger.info("Todo added token=%s id=%s", short(token), todo["id"])
    return todo


def update_todo(stores: Stores, token: str, todo_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    with stores.customers.transaction() as db:
        record = _record(db, token)
        todo = next((t for t in record.get("todos") or [] if t.get("id") == todo_id), None)
        if todo is None:
            raise NotFound("Todo not found")
        todo.update({k: v for k, v in (changes or {}).items() if k not in _PROTECTED})
        if "priority" in (changes or {}):
            todo["priority"] = normalize_priority(todo["priority"])
        return dict(todo)


def delete_todo(stores: Stores, token: str, todo_id: str) -> None:
    with stores.customers.transaction() as db:
        record = _record(db, token)
        record["todos"] = [t for t in record.get("todos") or [] if t.get("id") != todo_id]


# ---- checklist --------------------------------------------------------------

def get_checklist(stores: Stores, token: str) -> List[Dict[str, Any]]:
    """The customer's checklist, created from the template on first access."""
    existing = _record(stores.customers.load(), token).get("checklist")
    if existing:
        return existing
    with stores.customers.transaction() as db:
        record = _record(db, token)
        if not record.get("checklist"):
            record["checklist"] = checklist_tpl.fresh_checklist()
            logger.info("Checklist initialised token=%s", short(token))
        return record["checklist"]


def replace_checklist(stores: Stores, token: str, checklist: List[Dict[str, Any]]) -> None:
    if not isinstance(checklist, list):
        raise ValidationFailed("checklist must be a list")
    with stores.customers.transaction() as db:
        _record(db, token)["checklist"] = checklist


# ---- extracted fields -------------------------------------------------------

def apply_extracted_fields(stores: Stores, token: str, fields: Any) -> List[str]:
    """Fill empty or placeholder profile fields only. Returns the keys written."""
    if not isinstance(fields, dict):
        raise ValidationFailed("fields must be an object")
    applied = []
    with stores.customers.transaction() as db, stores.tags.transaction() as catalog:
        record = _record(db, token)
        before = dict(record)
        for key, value in fields.items():
            if key not in EXTRACTABLE_FIELDS or value in (None, ""):
                continue
            if is_sentinel(record.get(key)):
                record[key] = value
                applied.append(key)
        apply_auto_tags(record, catalog, previous=before)
    logger.info("Extracted fields applied token=%s fields=%s", short(token), applied)
    return applied
