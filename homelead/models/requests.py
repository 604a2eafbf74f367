# homelead/models/requests.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _FlexibleModel(BaseModel):
    model_config = ConfigDict(extra="allow")


Turn = Dict[str, Any]


# ---- customer side ----------------------------------------------------------

class RegisterRequest(_FlexibleModel):
    """Registration form; any extra profile fields are kept on the record."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    prefecture: Optional[str] = None
    propertyType: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(_FlexibleModel):
    pass


class StageRequest(BaseModel):
    stage: Optional[Union[int, str]] = None


class PasswordChange(BaseModel):
    newPassword: Optional[str] = None


class PasswordReset(BaseModel):
    email: Optional[str] = None
    newPassword: Optional[str] = None


class HistoryPayload(BaseModel):
    messages: List[Turn] = Field(default_factory=list)


class ChatRequest(BaseModel):
    customer: Dict[str, Any] = Field(default_factory=dict)
    messages: List[Turn] = Field(default_factory=list)
    token: Optional[str] = None


# ---- admin side -------------------------------------------------------------

class AdminPasswordChange(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


class AgentMessage(BaseModel):
    message: Optional[str] = None


class AdminCustomerUpdate(_FlexibleModel):
    pass


class TagCreate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None


class CustomerTags(BaseModel):
    tags: List[str] = Field(default_factory=list)


class BroadcastFilter(BaseModel):
    filterType: str = "all"
    tags: List[str] = Field(default_factory=list)


class BroadcastSend(BroadcastFilter):
    message: Optional[str] = None


class InteractionCreate(_FlexibleModel):
    date: Optional[str] = None
    method: Optional[str] = None
    content: Optional[str] = None


class TodoCreate(_FlexibleModel):
    text: Optional[str] = None
    priority: Optional[str] = None
    deadline: Optional[str] = None


class TodoUpdate(_FlexibleModel):
    pass


class ChecklistPayload(BaseModel):
    checklist: List[Dict[str, Any]] = Field(default_factory=list)


class ChatTurns(BaseModel):
    messages: List[Turn] = Field(default_factory=list)


class InteractionAnalysis(BaseModel):
    content: str = ""


class ApplyExtracted(BaseModel):
    fields: Any = None
