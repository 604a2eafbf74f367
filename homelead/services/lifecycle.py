# homelead/services/lifecycle.py
"""
Customer record state transitions.

status: active <-> blocked, active -> withdrawn (histories wiped)
stage:  1 -> 2 automatically once the profile is 70% complete; customers may
        step forward one stage at a time up to 3; admins may set any value.

Every mutation runs inside a store transaction. When a call needs both the
customer table and the tag catalog, customers are always locked first.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from homelead.services import tagging
from homelead.services.errors import AuthenticationFailed, Forbidden, NotFound, ValidationFailed
from homelead.services.json_store import Stores
from homelead.services.security import generate_token, hash_password, secrets_match, short, verify_password

logger = logging.getLogger("homelead.lifecycle")

STATUS_ACTIVE = "active"
STATUS_BLOCKED = "blocked"
STATUS_WITHDRAWN = "withdrawn"

MAX_STAGE = 3
MIN_CUSTOMER_PASSWORD = 6

COMPLETENESS_FIELDS = (
    "name", "birthYear", "prefecture", "family", "householdIncome",
    "propertyType", "area", "budget", "email", "phone",
)
COMPLETENESS_RATIO = 0.7

PUBLIC_FIELDS = (
    "name", "family", "householdIncome", "propertyType", "purpose", "searchReason",
    "area", "budget", "freeComment", "email", "phone",
)

CUSTOMER_EDITABLE = (
    "name", "birthYear", "birthMonth", "prefecture", "family", "householdIncome",
    "propertyType", "purpose", "searchReason", "area", "budget", "freeComment",
    "email", "phone", "line",
)

ADMIN_UPDATABLE = (
    "name", "birthYear", "birthMonth", "age", "prefecture", "family", "householdIncome",
    "currentHome", "reason", "searchReason", "area", "budget", "freeComment",
    "propertyType", "purpose", "size", "layout", "stationDistance", "occupation",
    "income", "savings", "loanStatus", "motivation", "timeline", "email", "phone",
    "line", "referral", "spouseOccupation", "spouseIncome", "currentRent", "pet",
    "parking", "specialRequirements", "memo", "stage",
)

# keys a registration payload may not set on its own record
RESERVED = frozenset({
    "token", "password", "passwordHash", "status", "stage", "tags", "createdAt",
    "blockedAt", "withdrawnAt", "chatHistory", "directChatHistory", "agentChatHistory",
    "interactions", "todos", "checklist",
})

VAGUE_LOGIN_ERROR = "Email address or password is incorrect"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def status_of(record: Dict[str, Any]) -> str:
    return record.get("status") or STATUS_ACTIVE


def stage_of(record: Dict[str, Any]) -> int:
    try:
        return int(record.get("stage") or 1)
    except (TypeError, ValueError):
        return 1


def filled_count(record: Dict[str, Any]) -> int:
    return sum(1 for f in COMPLETENESS_FIELDS if record.get(f) and not tagging.is_sentinel(record.get(f)))


def meets_completeness(record: Dict[str, Any]) -> bool:
    return filled_count(record) >= math.ceil(len(COMPLETENESS_FIELDS) * COMPLETENESS_RATIO)


def compute_age(birth_year: Any, birth_month: Any, today: Optional[datetime] = None) -> Optional[int]:
    try:
        year = int(birth_year)
        month = int(birth_month)
    except (TypeError, ValueError):
        return None
    today = today or datetime.now()
    age = today.year - year
    if today.month < month:
        age -= 1
    return age


def public_profile(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: record.get(k) for k in PUBLIC_FIELDS}


def _session_payload(token: str, record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "token": token,
        "customer": public_profile(record),
        "chatHistory": record.get("chatHistory") or [],
        "directChatHistory": record.get("directChatHistory") or [],
    }


def _require(db: Dict[str, Any], token: str) -> Dict[str, Any]:
    record = db.get(token)
    if record is None:
        raise NotFound("Customer not found")
    return record


def _require_customer_access(db: Dict[str, Any], token: str) -> Dict[str, Any]:
    record = _require(db, token)
    if status_of(record) in (STATUS_BLOCKED, STATUS_WITHDRAWN):
        raise Forbidden("Access denied")
    return record


def _find_by_email(db: Dict[str, Any], email: str):
    needle = (email or "").strip().lower()
    if not needle:
        return None, None
    for token, record in db.items():
        if status_of(record) == STATUS_WITHDRAWN:
            continue
        if (record.get("email") or "").strip().lower() == needle:
            return token, record
    return None, None


# ----------------------------------------------------------------- customer side

def register(stores: Stores, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a record from a registration payload. Returns the stored record
    (without the digest) so the caller can send the welcome notifications.
    """
    password = payload.get("password") or ""
    profile = {k: v for k, v in payload.items() if k not in RESERVED}

    token = generate_token()
    record: Dict[str, Any] = {
        **profile,
        "passwordHash": hash_password(password) if password else None,
        "token": token,
        "status": STATUS_ACTIVE,
        "chatHistory": [],
        "directChatHistory": [],
        "tags": [],
        "interactions": [],
        "todos": [],
        "stage": 2 if meets_completeness(profile) else 1,
        "createdAt": now_iso(),
    }
    age = compute_age(profile.get("birthYear"), profile.get("birthMonth"))
    if age is not None:
        record["age"] = age

    with stores.customers.transaction() as db, stores.tags.transaction() as catalog:
        while token in db:
            token = generate_token()
            record["token"] = token
        tagging.apply_auto_tags(record, catalog)
        db[token] = record

    logger.info(
        "Registered customer token=%s stage=%d filled=%d/%d tags=%s",
        short(token), record["stage"], filled_count(record), len(COMPLETENESS_FIELDS), record["tags"],
    )
    out = dict(record)
    out.pop("passwordHash", None)
    return out


def login(stores: Stores, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
    if not email:
        raise ValidationFailed("Please enter your email address")
    db = stores.customers.load()
    token, record = _find_by_email(db, email)
    if record is None:
        logger.info("Login failed: unknown email")
        raise AuthenticationFailed(VAGUE_LOGIN_ERROR)
    if status_of(record) == STATUS_BLOCKED:
        logger.info("Login refused for blocked token=%s", short(token))
        raise Forbidden("This account has been blocked")

    if not record.get("passwordHash"):
        logger.info("Login without password digest token=%s (needs password)", short(token))
        return {"success": True, "needsPassword": True, **_session_payload(token, record)}

    if not verify_password(password or "", record["passwordHash"]):
        logger.info("Login failed: bad password token=%s", short(token))
        raise AuthenticationFailed(VAGUE_LOGIN_ERROR)

    logger.info("Login success token=%s", short(token))
    return {"success": True, **_session_payload(token, record)}


def restore_session(stores: Stores, token: str) -> Dict[str, Any]:
    record = stores.customers.get(token)
    if record is None or status_of(record) == STATUS_WITHDRAWN:
        return {"found": False}
    if status_of(record) == STATUS_BLOCKED:
        return {"found": True, "blocked": True}
    payload = _session_payload(token, record)
    payload.pop("token")
    return {"found": True, **payload}


def get_profile(stores: Stores, token: str) -> Dict[str, Any]:
    db = stores.customers.load()
    record = _require_customer_access(db, token)
    profile = {k: record.get(k) or "" for k in CUSTOMER_EDITABLE}
    profile["stage"] = stage_of(record)
    return profile


def update_profile(stores: Stores, token: str, updates: Dict[str, Any]) -> List[str]:
    """Apply customer-editable fields. Returns the names of fields that changed."""
    with stores.customers.transaction() as db, stores.tags.transaction() as catalog:
        record = _require_customer_access(db, token)
        before = dict(record)
        changed = []
        for key in CUSTOMER_EDITABLE:
            if key in updates and updates[key] is not None and updates[key] != record.get(key):
                record[key] = updates[key]
                changed.append(key)

        if updates.get("birthYear") and updates.get("birthMonth"):
            age = compute_age(updates["birthYear"], updates["birthMonth"])
            if age is not None:
                record["age"] = age

        tagging.apply_auto_tags(record, catalog, previous=before)

        if stage_of(record) < 2 and meets_completeness(record):
            record["stage"] = 2
            logger.info("Auto-advanced to stage 2 token=%s", short(token))

    logger.info("Profile updated token=%s changed=%s", short(token), changed)
    return changed


def advance_stage(stores: Stores, token: str, requested: Any) -> Dict[str, Any]:
    try:
        requested = int(requested)
    except (TypeError, ValueError):
        requested = 0
    with stores.customers.transaction() as db:
        record = _require_customer_access(db, token)
        current = stage_of(record)
        if current < requested <= min(current + 1, MAX_STAGE):
            record["stage"] = requested
            logger.info("Stage advanced token=%s %d -> %d", short(token), current, requested)
            return {"success": True, "stage": requested}
    logger.info("Stage change rejected token=%s current=%d requested=%d", short(token), current, requested)
    return {"success": False, "message": "Stage cannot be changed", "stage": current}


def _check_new_password(new_password: Optional[str]) -> str:
    if not new_password or len(new_password) < MIN_CUSTOMER_PASSWORD:
        raise ValidationFailed(f"Password must be at least {MIN_CUSTOMER_PASSWORD} characters")
    return new_password


def change_password(stores: Stores, token: str, new_password: Optional[str]) -> None:
    with stores.customers.transaction() as db:
        record = _require_customer_access(db, token)
        record["passwordHash"] = hash_password(_check_new_password(new_password))
    logger.info("Password changed token=%s", short(token))


def reset_password(stores: Stores, email: Optional[str], new_password: Optional[str] = None) -> Dict[str, Any]:
    """
    Phase 1 (no new password): confirm the email is registered.
    Phase 2: overwrite the digest. Each call re-validates the email.
    """
    if not email:
        raise ValidationFailed("Please enter your email address")
    if not new_password:
        token, record = _find_by_email(stores.customers.load(), email)
        if record is None:
            raise NotFound("This email address is not registered")
        return {"success": True, "verified": True}

    _check_new_password(new_password)
    with stores.customers.transaction() as db:
        token, record = _find_by_email(db, email)
        if record is None:
            raise NotFound("This email address is not registered")
        record["passwordHash"] = hash_password(new_password)
    logger.info("Password reset token=%s", short(token))
    return {"success": True, "reset": True}


def save_chat_history(stores: Stores, token: str, messages: List[Dict[str, Any]]) -> None:
    with stores.customers.transaction() as db:
        record = _require_customer_access(db, token)
        record["chatHistory"] = list(messages or [])


def save_direct_chat_history(stores: Stores, token: str, messages: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Replace the direct-chat history. Returns {name, content} when the new list
    ends with a freshly appended customer message, so the agent can be alerted.
    """
    messages = list(messages or [])
    with stores.customers.transaction() as db:
        record = _require_customer_access(db, token)
        old = record.get("directChatHistory") or []
        record["directChatHistory"] = messages
        name = record.get("name")
    if len(messages) > len(old):
        latest = messages[-1] or {}
        if latest.get("role") == "user":
            return {"name": name, "content": str(latest.get("content") or "")}
    return None


def withdraw(stores: Stores, token: str) -> Dict[str, Any]:
    with stores.customers.transaction() as db:
        record = _require(db, token)
        if status_of(record) == STATUS_WITHDRAWN:
            return {"success": True, "alreadyWithdrawn": True}
        record["status"] = STATUS_WITHDRAWN
        record["withdrawnAt"] = now_iso()
        record["chatHistory"] = []
        record["directChatHistory"] = []
    logger.info("Customer withdrew token=%s", short(token))
    return {"success": True, "alreadyWithdrawn": False}


def customer_for_chat(stores: Stores, token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    The stored record behind an AI chat turn. Raises Forbidden for blocked or
    withdrawn customers; returns None when the token is unknown or absent.
    """
    if not token:
        return None
    record = stores.customers.get(token)
    if record is not None and status_of(record) in (STATUS_BLOCKED, STATUS_WITHDRAWN):
        raise Forbidden("This account cannot use the chat")
    return record


def append_chat_reply(stores: Stores, token: str, messages: List[Dict[str, Any]], reply: str) -> None:
    with stores.customers.transaction() as db:
        record = db.get(token)
        if record is None or status_of(record) != STATUS_ACTIVE:
            return
        record["chatHistory"] = list(messages) + [{"role": "assistant", "content": reply, "timestamp": now_iso()}]


# -------------------------------------------------------------------- admin side

def summary_row(token: str, record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "token": token,
        "name": record.get("name") or "-",
        "email": record.get("email") or "-",
        "phone": record.get("phone") or "-",
        "family": record.get("family") or "-",
        "area": record.get("area") or "-",
        "budget": record.get("budget") or "-",
        "stage": stage_of(record),
        "status": status_of(record),
        "createdAt": record.get("createdAt"),
        "blockedAt": record.get("blockedAt"),
        "withdrawnAt": record.get("withdrawnAt"),
        "messageCount": len(record.get("chatHistory") or []),
        "directChatCount": len(record.get("directChatHistory") or []),
        "tags": record.get("tags") or [],
    }


def list_customers(stores: Stores) -> List[Dict[str, Any]]:
    return [summary_row(token, record) for token, record in stores.customers.items()]


def get_customer(stores: Stores, token: str) -> Dict[str, Any]:
    record = stores.customers.get(token)
    if record is None:
        raise NotFound("Customer not found")
    record.pop("passwordHash", None)
    return record


def admin_update(stores: Stores, token: str, updates: Dict[str, Any]) -> List[str]:
    """Admin edit over the full field set. `stage` may be set to any value."""
    with stores.customers.transaction() as db, stores.tags.transaction() as catalog:
        record = _require(db, token)
        before = dict(record)
        changed = []
        for key in ADMIN_UPDATABLE:
            if key in updates and updates[key] is not None:
                if record.get(key) != updates[key]:
                    changed.append(key)
                record[key] = updates[key]
        tagging.apply_auto_tags(record, catalog, previous=before)
    logger.info("Admin updated token=%s changed=%s", short(token), changed)
    return changed


def _set_status(stores: Stores, token: str, status: str) -> Dict[str, Any]:
    with stores.customers.transaction() as db:
        record = _require(db, token)
        record["status"] = status
        record["blockedAt"] = now_iso() if status == STATUS_BLOCKED else None
        name = record.get("name")
    logger.info("Status set token=%s status=%s", short(token), status)
    return {"success": True, "name": name, "status": status}


def block(stores: Stores, token: str) -> Dict[str, Any]:
    return _set_status(stores, token, STATUS_BLOCKED)


def unblock(stores: Stores, token: str) -> Dict[str, Any]:
    return _set_status(stores, token, STATUS_ACTIVE)


def delete_customer(stores: Stores, token: str) -> None:
    if not stores.customers.delete(token):
        raise NotFound("Customer not found")
    logger.info("Customer hard-deleted token=%s", short(token))


def set_tags(stores: Stores, token: str, tags: List[str]) -> List[str]:
    with stores.customers.transaction() as db:
        record = _require(db, token)
        record["tags"] = tagging.dedupe(tags or [])
        return list(record["tags"])


def get_direct_chat(stores: Stores, token: str) -> List[Dict[str, Any]]:
    return get_customer(stores, token).get("directChatHistory") or []


def post_agent_message(stores: Stores, token: str, message: Optional[str]) -> Dict[str, Any]:
    """Append an agent turn to the direct chat. Returns the recipient for the email alert."""
    text = (message or "").strip()
    if not text:
        raise ValidationFailed("Message must not be empty")
    with stores.customers.transaction() as db:
        record = _require(db, token)
        record.setdefault("directChatHistory", []).append(
            {"role": "agent", "content": text, "timestamp": now_iso()}
        )
        recipient = {"email": record.get("email"), "name": record.get("name"), "content": text}
    logger.info("Agent message posted token=%s", short(token))
    return recipient


def change_admin_password(stores: Stores, current: Optional[str], new: Optional[str]) -> None:
    if not current or not new:
        raise ValidationFailed("Current and new password are required")
    if not secrets_match(current, stores.settings.admin_password):
        raise AuthenticationFailed("Current password is incorrect")
    if len(new) < 4:
        raise ValidationFailed("New password must be at least 4 characters")
    stores.settings.set_admin_password(new)
    logger.info("Admin password changed")
