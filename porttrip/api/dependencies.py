# api/dependencies.py
"""
FastAPI dependencies
Collaborators are built once in the lifespan and stored on app.state.
"""

from fastapi import Request, Response

from ..agents.concierge_agent import ConciergeAgent
from ..config import settings
from ..interfaces.corpus_store import CorpusStore
from ..interfaces.payments import StripeClient
from ..interfaces.usage_gate import CallerIdentity, UsageGate
from ..interfaces.usage_store import UsageRecord


def get_agent(request: Request) -> ConciergeAgent:
    return request.app.state.agent


def get_gate(request: Request) -> UsageGate:
    return request.app.state.gate


def get_corpus(request: Request) -> CorpusStore:
    return request.app.state.corpus


def get_stripe(request: Request) -> StripeClient:
    return request.app.state.stripe


def get_identity(request: Request) -> CallerIdentity:
    """Caller identity from the customer and free-usage cookies"""
    customer_id = (request.cookies.get(settings.CUSTOMER_COOKIE) or "").strip()
    return CallerIdentity(
        customer_id=customer_id or None,
        free_token=request.cookies.get(settings.FREE_USAGE_COOKIE),
    )


def set_free_usage_cookie(response: Response, record: UsageRecord):
    """Write the anonymous usage counter back to the client"""
    response.set_cookie(
        key=settings.FREE_USAGE_COOKIE,
        value=UsageGate.free_token_for(record),
        max_age=settings.COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )
