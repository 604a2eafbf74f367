# homelead/services/broadcast.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from homelead.services import email_templates, segmentation
from homelead.services.errors import ValidationFailed
from homelead.services.json_store import Stores
from homelead.services.lifecycle import now_iso
from homelead.services.notifier import Notifier

logger = logging.getLogger("homelead.broadcast")


def list_broadcasts(stores: Stores) -> List[Dict[str, Any]]:
    return stores.broadcasts.newest_first()


def preview(stores: Stores, mode: str, tag_names: Optional[Sequence[str]]) -> Dict[str, Any]:
    matched = segmentation.select(stores.customers.items(), mode, tag_names)
    return {
        "matchCount": len(matched),
        "customers": [
            {"token": token, "name": r.get("name") or "", "email": r.get("email") or ""}
            for token, r in matched
        ],
    }


def send(stores: Stores, message: Optional[str], mode: str, tag_names: Optional[Sequence[str]]) -> Dict[str, Any]:
    """
    Deliver `message` to the selected audience's direct chat and log the broadcast.

    Returns the log entry plus a `recipients` list of {email, name} for the
    caller to email; the log entry itself never changes after this call.
    """
    text = (message or "").strip()
    if not text:
        raise ValidationFailed("Please enter a message")

    tag_names = [t for t in (tag_names or []) if t]
    with stores.customers.transaction() as db:
        matched = segmentation.select(list(db.items()), mode, tag_names)
        if not matched:
            raise ValidationFailed("No customers match this audience")

        broadcast_id = f"bcast_{int(time.time() * 1000)}"
        sent_at = now_iso()
        recipients = []
        for token, record in matched:
            record.setdefault("directChatHistory", []).append(
                {"role": "agent", "content": text, "timestamp": sent_at, "broadcastId": broadcast_id}
            )
            if record.get("email"):
                recipients.append({"email": record["email"], "name": record.get("name")})

    entry = {
        "id": broadcast_id,
        "sentAt": sent_at,
        "message": text,
        "filterType": mode,
        "filterTags": tag_names,
        "recipientCount": len(matched),
        "recipientTokens": [token for token, _ in matched],
    }
    stores.broadcasts.append(entry)
    logger.info("Broadcast %s delivered to %d customers (mode=%s tags=%s)", broadcast_id, len(matched), mode, tag_names)
    return {"entry": entry, "recipients": recipients}


async def email_recipients(notifier: Notifier, recipients: List[Dict[str, Any]], message: str) -> int:
    """Email every recipient concurrently. Returns how many sends succeeded."""
    batch = []
    for r in recipients:
        try:
            subject, html = email_templates.render_broadcast(r.get("name"), message)
        except Exception as e:
            logger.error("Broadcast email render failed to=%s: %s", r["email"], e)
            continue
        batch.append((r["email"], subject, html))
    results = await notifier.notify_many(batch)
    ok = sum(1 for r in results if r)
    if ok < len(recipients):
        logger.warning("Broadcast emails: %d/%d delivered", ok, len(recipients))
    return ok
