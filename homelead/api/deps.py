# homelead/api/deps.py
from typing import Optional

from fastapi import Depends, Header, Request

from homelead.services.errors import AuthenticationFailed
from homelead.services.json_store import Stores
from homelead.services.llm_service import LLMClient
from homelead.services.notifier import Notifier
from homelead.services.security import secrets_match


def get_stores(request: Request) -> Stores:
    return request.app.state.stores


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_llm(request: Request) -> LLMClient:
    return request.app.state.llm


def require_admin(
    stores: Stores = Depends(get_stores),
    x_admin_pass: Optional[str] = Header(default=None),
) -> None:
    if not secrets_match(x_admin_pass, stores.settings.admin_password):
        raise AuthenticationFailed("Authentication error: the admin password is incorrect")
