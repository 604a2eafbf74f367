# homelead/api/customer.py
"""
Customer-facing routes. The token in the path is the customer's session credential.
"""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from homelead.api.deps import get_llm, get_notifier, get_stores
from homelead.core.config import NOTIFY_EMAIL
from homelead.models import (
    ChatRequest,
    HistoryPayload,
    LoginRequest,
    PasswordChange,
    PasswordReset,
    ProfileUpdate,
    RegisterRequest,
    StageRequest,
)
from homelead.services import ai_helpers, email_templates, lifecycle
from homelead.services.errors import Forbidden, ValidationFailed
from homelead.services.json_store import Stores
from homelead.services.llm_service import LLMClient, LLMError, fallback_message
from homelead.services.notifier import Notifier
from homelead.services.security import short

logger = logging.getLogger("homelead.api.customer")
router = APIRouter()


async def send_registration_emails(notifier: Notifier, llm: LLMClient, record: dict) -> None:
    """Welcome email with article picks for the customer, lead alert for the agent."""
    if record.get("email"):
        picks = await ai_helpers.pick_articles(llm, record)
        await asyncio.to_thread(
            notifier.notify_rendered, record["email"], email_templates.render_welcome, record, record["token"], picks
        )
    await asyncio.to_thread(notifier.notify_rendered, NOTIFY_EMAIL, email_templates.render_lead_alert, record)


@router.post("/register")
def register(
    payload: RegisterRequest,
    background: BackgroundTasks,
    stores: Stores = Depends(get_stores),
    notifier: Notifier = Depends(get_notifier),
    llm: LLMClient = Depends(get_llm),
):
    record = lifecycle.register(stores, payload.model_dump(exclude_none=True))
    background.add_task(send_registration_emails, notifier, llm, record)
    return {"success": True, "token": record["token"]}


@router.post("/login")
def login(payload: LoginRequest, stores: Stores = Depends(get_stores)):
    return lifecycle.login(stores, payload.email, payload.password)


@router.get("/session/{token}")
def restore_session(token: str, stores: Stores = Depends(get_stores)):
    return lifecycle.restore_session(stores, token)


@router.get("/customer/profile/{token}")
def get_profile(token: str, stores: Stores = Depends(get_stores)):
    return {"success": True, "profile": lifecycle.get_profile(stores, token)}


@router.put("/customer/profile/{token}")
def update_profile(token: str, payload: ProfileUpdate, stores: Stores = Depends(get_stores)):
    changed = lifecycle.update_profile(stores, token, payload.model_dump())
    return {"success": True, "message": "Saved", "changed": changed}


@router.post("/customer/advance-stage/{token}")
def advance_stage(token: str, payload: StageRequest, stores: Stores = Depends(get_stores)):
    return lifecycle.advance_stage(stores, token, payload.stage)


@router.post("/customer/change-password/{token}")
def change_password(token: str, payload: PasswordChange, stores: Stores = Depends(get_stores)):
    lifecycle.change_password(stores, token, payload.newPassword)
    return {"success": True, "message": "Password changed"}


@router.post("/reset-password")
def reset_password(payload: PasswordReset, stores: Stores = Depends(get_stores)):
    return lifecycle.reset_password(stores, payload.email, payload.newPassword)


@router.post("/chat-history/{token}")
def save_chat_history(token: str, payload: HistoryPayload, stores: Stores = Depends(get_stores)):
    lifecycle.save_chat_history(stores, token, payload.messages)
    return {"success": True}


@router.post("/direct-chat-history/{token}")
def save_direct_chat_history(
    token: str,
    payload: HistoryPayload,
    background: BackgroundTasks,
    stores: Stores = Depends(get_stores),
    notifier: Notifier = Depends(get_notifier),
):
    new_message = lifecycle.save_direct_chat_history(stores, token, payload.messages)
    if new_message:
        background.add_task(
            notifier.notify_rendered, NOTIFY_EMAIL,
            email_templates.render_direct_message_alert, new_message["name"], new_message["content"],
        )
        logger.info("Direct message from token=%s, agent alert scheduled", short(token))
    return {"success": True}


@router.post("/withdraw/{token}")
def withdraw(token: str, stores: Stores = Depends(get_stores)):
    result = lifecycle.withdraw(stores, token)
    message = "You have already withdrawn" if result["alreadyWithdrawn"] else "Thank you for using the service. Your withdrawal is complete."
    return {"success": True, "message": message}


@router.post("/chat")
async def chat(payload: ChatRequest, stores: Stores = Depends(get_stores), llm: LLMClient = Depends(get_llm)):
    if not payload.messages:
        raise ValidationFailed("messages must not be empty")
    try:
        reply = await ai_helpers.customer_chat(stores, llm, payload.customer, payload.messages, payload.token)
    except Forbidden:
        return {"error": "This service is not available for your account."}
    except LLMError as e:
        logger.error("AI chat failed token=%s: %r", short(payload.token or ""), e)
        return {"error": fallback_message(e)}
    return {"reply": reply}
