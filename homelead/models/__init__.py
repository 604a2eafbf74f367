# Make `from homelead.models import RegisterRequest, ...` work
from .requests import (  # re-export
    AdminCustomerUpdate,
    AdminPasswordChange,
    AgentMessage,
    ApplyExtracted,
    BroadcastFilter,
    BroadcastSend,
    ChatRequest,
    ChatTurns,
    ChecklistPayload,
    CustomerTags,
    HistoryPayload,
    InteractionAnalysis,
    InteractionCreate,
    LoginRequest,
    PasswordChange,
    PasswordReset,
    ProfileUpdate,
    RegisterRequest,
    StageRequest,
    TagCreate,
    TodoCreate,
    TodoUpdate,
)
