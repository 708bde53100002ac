# schemas/errors.py
"""
Error taxonomy for the Concierge service.
Every error carries an HTTP status, a machine-readable code and a
message that is safe to show to the caller.
"""

from typing import Optional


class ConciergeError(Exception):
    """Base class for errors surfaced to the caller"""

    status_code: int = 500
    code: Optional[str] = "INTERNAL_ERROR"
    message: str = "Something went wrong while planning your port day. Please try again."

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


class EmptyQueryError(ConciergeError):
    """No effective user query in the request"""

    status_code = 400
    code = "EMPTY_QUERY"
    message = "Please ask a question (no text received)."


class QuotaExceededError(ConciergeError):
    """Caller used up the monthly allowance of their plan"""

    status_code = 402
    code = "LIMIT_REACHED"
    message = "You've reached your monthly Pro limit. Upgrade to Unlimited to keep planning."


class FreeQuotaExceededError(QuotaExceededError):
    code = "FREE_LIMIT_REACHED"
    message = "Free plan includes 3 chats/month. Upgrade to Pro for 25 or Unlimited for infinite."


class BillingUnavailable(ConciergeError):
    """Plan could not be resolved; the gate fails closed"""

    status_code = 503
    code = "BILLING_UNAVAILABLE"
    message = "We couldn't verify your plan right now. Please retry in a moment."


class ModelUnavailable(ConciergeError):
    """Language model provider missing or failing"""

    status_code = 500
    code = "MODEL_UNAVAILABLE"
    message = "The assistant is temporarily unavailable. Please try again."


class PaymentConfigError(ConciergeError):
    """Checkout requested without Stripe configuration"""

    status_code = 500
    code = "PAYMENT_NOT_CONFIGURED"
    message = "Checkout is not configured."


class EmbeddingUnavailable(Exception):
    """
    Embedding provider missing or failing.
    Never surfaced to the caller: the pipeline falls back to keyword ranking.
    """


class UnknownPlanError(ConciergeError):
    """Checkout requested for a plan that is not sold"""

    status_code = 400
    code = "UNKNOWN_PLAN"
    message = "Unknown or missing plan."


class WebhookSignatureError(ConciergeError):
    """Stripe-Signature header did not verify"""

    status_code = 400
    code = "BAD_SIGNATURE"
    message = "Webhook signature verification failed."
