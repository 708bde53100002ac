# schemas/__init__.py
"""
Pydantic Schemas Package

Contains Pydantic v2 models for API requests/responses and the error
taxonomy.
"""

from .chat_schemas import (
    ChatRequest, CheckoutRequest, CheckoutResponse, ConversationMessage,
    PlanTier, PortListItem, QuotaStatus
)
from .errors import (
    BillingUnavailable, ConciergeError, EmbeddingUnavailable, EmptyQueryError,
    FreeQuotaExceededError, ModelUnavailable, PaymentConfigError, QuotaExceededError,
    UnknownPlanError, WebhookSignatureError
)

__all__ = [
    "ChatRequest", "CheckoutRequest", "CheckoutResponse", "ConversationMessage",
    "PlanTier", "PortListItem", "QuotaStatus",
    "BillingUnavailable", "ConciergeError", "EmbeddingUnavailable", "EmptyQueryError",
    "FreeQuotaExceededError", "ModelUnavailable", "PaymentConfigError", "QuotaExceededError",
    "UnknownPlanError", "WebhookSignatureError"
]
