# schemas/chat_schemas.py
"""
Pydantic v2 schemas for the Concierge API
Chat requests, quota status, port listing and checkout
"""

from enum import Enum
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, model_validator


# ============================================
# Enums
# ============================================

class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    UNLIMITED = "unlimited"


# ============================================
# Chat
# ============================================

class ConversationMessage(BaseModel):
    """Single chat turn"""
    role: Literal["system", "user", "assistant"]
    content: str = ""


class ChatRequest(BaseModel):
    """
    Chat request body.
    Accepts the conversation under `messages` or `history`, plus an
    optional standalone `query`.
    """
    messages: List[ConversationMessage] = Field(default_factory=list)
    query: Optional[str] = Field(None, max_length=4000)
    stream: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_history_alias(cls, data):
        if isinstance(data, dict) and not data.get("messages") and data.get("history"):
            data = {**data, "messages": data["history"]}
        return data

    def effective_query(self) -> str:
        """Explicit query if non-empty, else the last user message"""
        if self.query and self.query.strip():
            return self.query.strip()
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content.strip()
        return ""

    def split_history(self) -> List[ConversationMessage]:
        """
        Prior turns without the pending user turn.
        A trailing user message equal to the effective query is dropped so
        the composer can always append the turn itself.
        """
        history = list(self.messages)
        query = self.effective_query()
        if history and history[-1].role == "user" and history[-1].content.strip() == query:
            history = history[:-1]
        return history


# ============================================
# Quota status (/api/me)
# ============================================

class QuotaStatus(BaseModel):
    plan: PlanTier
    limit: Union[int, Literal["unlimited"]]
    used: int = Field(..., ge=0)
    month: str
    customerId: Optional[str] = None


# ============================================
# Ports listing (/api/ports)
# ============================================

class PortListItem(BaseModel):
    id: str
    name: str
    region: str = ""


# ============================================
# Checkout
# ============================================

class CheckoutRequest(BaseModel):
    plan: str = ""


class CheckoutResponse(BaseModel):
    url: str
