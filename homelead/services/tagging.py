# homelead/services/tagging.py
"""
Tag catalog reconciliation.

Every catalog entry is created through ensure_tag(), whether it comes from a
registration, a profile edit or an admin creating a tag by hand:
  - names are unique across the catalog
  - an existing entry without a category gets it backfilled, a non-empty one
    is never overwritten
"""
from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Dict, Iterable, List, Optional

from homelead.services.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger("homelead.tagging")

SENTINELS = frozenset({"", "-", "unspecified", "未入力"})

DEFAULT_COLOR = "#0071e3"

# field -> (color, category)
AUTO_TAG_FIELDS: Dict[str, tuple] = {
    "prefecture": ("#5856d6", "prefecture"),
    "propertyType": ("#0071e3", "propertyType"),
}


def is_sentinel(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() in SENTINELS
    return False


def new_tag_id() -> str:
    return f"tag_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def find_tag(tags: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for t in tags:
        if t.get("name") == name:
            return t
    return None


def ensure_tag(catalog: Dict[str, Any], name: str, color: str = DEFAULT_COLOR, category: str = "") -> Dict[str, Any]:
    """
    Return the catalog entry for `name`, creating it if absent. Mutates `catalog`.
    """
    tags = catalog.setdefault("tags", [])
    existing = find_tag(tags, name)
    if existing is None:
        entry = {"id": new_tag_id(), "name": name, "color": color or DEFAULT_COLOR, "category": category or ""}
        tags.append(entry)
        logger.info("Tag created name=%s category=%s", name, entry["category"] or "-")
        return entry
    if category and not existing.get("category"):
        existing["category"] = category
        logger.info("Tag category backfilled name=%s category=%s", name, category)
    return existing


def add_tag(record: Dict[str, Any], name: str) -> None:
    tags = record.setdefault("tags", [])
    if name not in tags:
        tags.append(name)


def dedupe(names: Iterable[str]) -> List[str]:
    out: List[str] = []
    for n in names:
        n = str(n).strip()
        if n and n not in out:
            out.append(n)
    return out


def retag(record: Dict[str, Any], catalog: Dict[str, Any], field: str, old_value: Any = None) -> bool:
    """
    Reconcile the auto-tag for one tracked field of `record`.

    If the value changed from a real `old_value` (to another value or to a
    placeholder), the old name leaves this customer's tag list; other
    customers and the catalog are untouched.
    Returns True when the record's tags were touched.
    """
    color, category = AUTO_TAG_FIELDS[field]
    new_value = None if is_sentinel(record.get(field)) else str(record.get(field)).strip()
    touched = False
    if not is_sentinel(old_value) and str(old_value).strip() != new_value:
        old_name = str(old_value).strip()
        if old_name in (record.get("tags") or []):
            record["tags"] = [t for t in record["tags"] if t != old_name]
            touched = True
    if new_value is None:
        return touched
    ensure_tag(catalog, new_value, color, category)
    add_tag(record, new_value)
    return True


def apply_auto_tags(record: Dict[str, Any], catalog: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> List[str]:
    """Run retag() for every tracked field whose value is new or changed. Returns the tags applied."""
    previous = previous or {}
    applied = []
    for field in AUTO_TAG_FIELDS:
        old = previous.get(field)
        if previous and old == record.get(field):
            continue
        if retag(record, catalog, field, old) and not is_sentinel(record.get(field)):
            applied.append(str(record.get(field)).strip())
    if applied:
        logger.info("Auto-tags applied: %s", ", ".join(applied))
    return applied


def create_catalog_tag(catalog: Dict[str, Any], name: Optional[str], color: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Tag name is required")
    if find_tag(catalog.get("tags") or [], name) is not None:
        raise Conflict("A tag with that name already exists")
    return ensure_tag(catalog, name, color or DEFAULT_COLOR, category or "")


def delete_catalog_tag(catalog: Dict[str, Any], customers: Dict[str, Dict[str, Any]], tag_id: str) -> Dict[str, Any]:
    """Remove a tag from the catalog and from every customer carrying it."""
    tags = catalog.get("tags") or []
    victim = next((t for t in tags if t.get("id") == tag_id), None)
    if victim is None:
        raise NotFound("Tag not found")
    catalog["tags"] = [t for t in tags if t.get("id") != tag_id]
    name = victim.get("name")
    affected = 0
    for record in customers.values():
        if name in (record.get("tags") or []):
            record["tags"] = [t for t in record["tags"] if t != name]
            affected += 1
    logger.info("Tag deleted name=%s customers_affected=%d", name, affected)
    return victim
