# homelead/api/admin.py
"""
Admin console API. Every route requires the shared secret in the x-admin-pass header.
"""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from homelead.api.deps import get_llm, get_notifier, get_stores, require_admin
from homelead.models import (
    AdminCustomerUpdate,
    AdminPasswordChange,
    AgentMessage,
    ApplyExtracted,
    BroadcastFilter,
    BroadcastSend,
    ChatTurns,
    ChecklistPayload,
    CustomerTags,
    InteractionAnalysis,
    InteractionCreate,
    TagCreate,
    TodoCreate,
    TodoUpdate,
)
from homelead.services import ai_helpers, broadcast, checklist, email_templates, engagement, lifecycle, tagging
from homelead.services.json_store import Stores
from homelead.services.llm_service import LLMClient, LLMError, fallback_message
from homelead.services.notifier import Notifier
from homelead.services.security import short

logger = logging.getLogger("homelead.api.admin")
router = APIRouter(dependencies=[Depends(require_admin)])


# -------------------- customers --------------------
@router.get("/customers")
def list_customers(stores: Stores = Depends(get_stores)):
    return {"customers": lifecycle.list_customers(stores)}


@router.get("/customer/{token}")
def get_customer(token: str, stores: Stores = Depends(get_stores)):
    return {"customer": lifecycle.get_customer(stores, token)}


@router.put("/customer/{token}")
def update_customer(token: str, payload: AdminCustomerUpdate, stores: Stores = Depends(get_stores)):
    changed = lifecycle.admin_update(stores, token, payload.model_dump())
    return {"success": True, "message": "Saved", "changed": changed}


@router.delete("/customer/{token}")
def delete_customer(token: str, stores: Stores = Depends(get_stores)):
    lifecycle.delete_customer(stores, token)
    return {"success": True, "message": "Customer data deleted permanently"}


@router.post("/block/{token}")
def block(token: str, stores: Stores = Depends(get_stores)):
    r = lifecycle.block(stores, token)
    return {"success": True, "message": f"Blocked {r['name'] or 'customer'}"}


@router.post("/unblock/{token}")
def unblock(token: str, stores: Stores = Depends(get_stores)):
    r = lifecycle.unblock(stores, token)
    return {"success": True, "message": f"Unblocked {r['name'] or 'customer'}"}


@router.post("/change-password")
def change_admin_password(payload: AdminPasswordChange, stores: Stores = Depends(get_stores)):
    lifecycle.change_admin_password(stores, payload.currentPassword, payload.newPassword)
    return {"success": True, "message": "Password changed"}


# -------------------- direct chat --------------------
@router.get("/direct-chat/{token}")
def get_direct_chat(token: str, stores: Stores = Depends(get_stores)):
    return {"messages": lifecycle.get_direct_chat(stores, token)}


@router.post("/direct-chat/{token}")
def post_direct_chat(
    token: str,
    payload: AgentMessage,
    background: BackgroundTasks,
    stores: Stores = Depends(get_stores),
    notifier: Notifier = Depends(get_notifier),
):
    recipient = lifecycle.post_agent_message(stores, token, payload.message)
    if recipient.get("email"):
        background.add_task(
            notifier.notify_rendered, recipient["email"],
            email_templates.render_agent_message, recipient.get("name"), recipient["content"],
        )
    return {"success": True}


# -------------------- tags --------------------
@router.get("/tags")
def list_tags(stores: Stores = Depends(get_stores)):
    return {"tags": stores.tags.list()}


@router.post("/tags")
def create_tag(payload: TagCreate, stores: Stores = Depends(get_stores)):
    with stores.tags.transaction() as catalog:
        tag = tagging.create_catalog_tag(catalog, payload.name, payload.color, payload.category)
    return {"success": True, "tag": tag}


@router.delete("/tags/{tag_id}")
def delete_tag(tag_id: str, stores: Stores = Depends(get_stores)):
    with stores.customers.transaction() as db, stores.tags.transaction() as catalog:
        tagging.delete_catalog_tag(catalog, db, tag_id)
    return {"success": True}


@router.put("/customer/{token}/tags")
def set_customer_tags(token: str, payload: CustomerTags, stores: Stores = Depends(get_stores)):
    return {"success": True, "tags": lifecycle.set_tags(stores, token, payload.tags)}


# -------------------- broadcasts --------------------
@router.get("/broadcasts")
def list_broadcasts(stores: Stores = Depends(get_stores)):
    return {"broadcasts": broadcast.list_broadcasts(stores)}


@router.post("/broadcasts/preview")
def preview_broadcast(payload: BroadcastFilter, stores: Stores = Depends(get_stores)):
    return broadcast.preview(stores, payload.filterType, payload.tags)


@router.post("/broadcasts/send")
async def send_broadcast(
    payload: BroadcastSend,
    stores: Stores = Depends(get_stores),
    notifier: Notifier = Depends(get_notifier),
):
    result = await asyncio.to_thread(broadcast.send, stores, payload.message, payload.filterType, payload.tags)
    entry = result["entry"]
    await broadcast.email_recipients(notifier, result["recipients"], entry["message"])
    return {"success": True, "broadcastId": entry["id"], "sentCount": entry["recipientCount"]}


# -------------------- interactions / todos / checklist --------------------
@router.get("/interactions/{token}")
def list_interactions(token: str, stores: Stores = Depends(get_stores)):
    return {"interactions": engagement.list_interactions(stores, token)}


@router.post("/interactions/{token}")
def add_interaction(token: str, payload: InteractionCreate, stores: Stores = Depends(get_stores)):
    return {"success": True, "interaction": engagement.add_interaction(stores, token, payload.model_dump(exclude_none=True))}


@router.delete("/interaction/{token}/{interaction_id}")
def delete_interaction(token: str, interaction_id: str, stores: Stores = Depends(get_stores)):
    engagement.delete_interaction(stores, token, interaction_id)
    return {"success": True}


@router.get("/todos/{token}")
def list_todos(token: str, stores: Stores = Depends(get_stores)):
    return {"todos": engagement.list_todos(stores, token)}


@router.post("/todos/{token}")
def add_todo(token: str, payload: TodoCreate, stores: Stores = Depends(get_stores)):
    return {"success": True, "todo": engagement.add_todo(stores, token, payload.model_dump(exclude_none=True))}


@router.put("/todo/{token}/{todo_id}")
def update_todo(token: str, todo_id: str, payload: TodoUpdate, stores: Stores = Depends(get_stores)):
    return {"success": True, "todo": engagement.update_todo(stores, token, todo_id, payload.model_dump())}


@router.delete("/todo/{token}/{todo_id}")
def delete_todo(token: str, todo_id: str, stores: Stores = Depends(get_stores)):
    engagement.delete_todo(stores, token, todo_id)
    return {"success": True}


@router.get("/checklist-template")
def checklist_template():
    return {"template": checklist.template()}


@router.get("/checklist/{token}")
def get_checklist(token: str, stores: Stores = Depends(get_stores)):
    return {"checklist": engagement.get_checklist(stores, token)}


@router.put("/checklist/{token}")
def replace_checklist(token: str, payload: ChecklistPayload, stores: Stores = Depends(get_stores)):
    engagement.replace_checklist(stores, token, payload.checklist)
    return {"success": True}


# -------------------- AI helpers --------------------
def _soft_error(what: str, token: str, e: LLMError) -> dict:
    logger.error("%s failed token=%s: %r", what, short(token), e)
    return {"error": fallback_message(e)}


@router.post("/chat-agent/{token}")
async def chat_agent(token: str, payload: ChatTurns, stores: Stores = Depends(get_stores), llm: LLMClient = Depends(get_llm)):
    try:
        return {"reply": await ai_helpers.agent_chat(stores, llm, token, payload.messages)}
    except LLMError as e:
        return _soft_error("Agent chat", token, e)


@router.post("/chat-customer/{token}")
async def chat_customer_preview(token: str, payload: ChatTurns, stores: Stores = Depends(get_stores), llm: LLMClient = Depends(get_llm)):
    try:
        return {"reply": await ai_helpers.customer_chat_preview(stores, llm, token, payload.messages)}
    except LLMError as e:
        return _soft_error("Customer chat preview", token, e)


@router.post("/suggest-todos/{token}")
async def suggest_todos(token: str, stores: Stores = Depends(get_stores), llm: LLMClient = Depends(get_llm)):
    try:
        return {"suggestions": await ai_helpers.suggest_todos(stores, llm, token)}
    except LLMError as e:
        return _soft_error("Todo suggestion", token, e)


@router.post("/analyze-interaction/{token}")
async def analyze_interaction(token: str, payload: InteractionAnalysis, stores: Stores = Depends(get_stores), llm: LLMClient = Depends(get_llm)):
    try:
        return await ai_helpers.analyze_interaction(stores, llm, token, payload.content)
    except LLMError as e:
        return _soft_error("Interaction analysis", token, e)


@router.post("/extract-from-chat/{token}")
async def extract_from_chat(token: str, stores: Stores = Depends(get_stores), llm: LLMClient = Depends(get_llm)):
    try:
        return {"extracted": await ai_helpers.extract_from_chat(stores, llm, token)}
    except LLMError as e:
        return _soft_error("Chat extraction", token, e)


@router.post("/apply-extracted-info/{token}")
def apply_extracted_info(token: str, payload: ApplyExtracted, stores: Stores = Depends(get_stores)):
    applied = engagement.apply_extracted_fields(stores, token, payload.fields)
    return {"success": True, "message": "Information applied", "applied": applied}
