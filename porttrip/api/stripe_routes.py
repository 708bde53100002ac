# api/stripe_routes.py
"""
Stripe Endpoints
- Checkout: start a Pro or Unlimited subscription
- Webhook: plan changes and period resets land in customer metadata

The usage gate only reads plans; this module is the only writer of the
`plan` metadata key.
"""

import json
from typing import Optional
import stripe
from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError
from loguru import logger

from ..config import settings
from ..interfaces.payments import StripeClient
from ..interfaces.usage_store import month_key
from ..schemas.chat_schemas import CheckoutRequest, CheckoutResponse, PlanTier
from ..schemas.errors import PaymentConfigError, UnknownPlanError, WebhookSignatureError
from .dependencies import get_stripe


router = APIRouter(prefix="/api/stripe", tags=["billing"])

PAID_PLANS = (PlanTier.PRO.value, PlanTier.UNLIMITED.value)


# ============================================
# Checkout
# ============================================

def _assert_checkout_env():
    missing = []
    if not settings.STRIPE_SECRET_KEY:
        missing.append("STRIPE_SECRET_KEY")
    if not settings.STRIPE_PRICE_PRO_ID:
        missing.append("STRIPE_PRICE_PRO_ID")
    if not settings.STRIPE_PRICE_UNLIMITED_ID:
        missing.append("STRIPE_PRICE_UNLIMITED_ID")
    if missing:
        raise PaymentConfigError(f"Missing env vars: {', '.join(missing)}")


def _origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


async def _plan_from_body(request: Request) -> str:
    try:
        return CheckoutRequest.model_validate(await request.json()).plan
    except (ValueError, ValidationError):
        return ""


@router.api_route("/checkout", methods=["GET", "POST"], response_model=CheckoutResponse)
async def checkout(
    request: Request,
    plan: Optional[str] = Query(None, description="pro or unlimited"),
    stripe_client: StripeClient = Depends(get_stripe)
):
    """
    Create a subscription Checkout Session

    GET /api/stripe/checkout?plan=pro, or POST with {"plan": "unlimited"}

    Returns:
        {"url": "https://checkout.stripe.com/..."}
    """
    _assert_checkout_env()

    if not plan and request.method == "POST":
        plan = await _plan_from_body(request)
    plan = (plan or "").strip().lower()

    if plan not in PAID_PLANS:
        raise UnknownPlanError(f'Unknown or missing plan: "{plan}"')

    origin = _origin(request)
    url = await stripe_client.create_checkout_session(
        plan=plan,
        price_id=settings.price_for_plan(plan),
        success_url=f"{origin}/chat?status=success&plan={plan}",
        cancel_url=f"{origin}/chat?status=cancel",
    )
    return CheckoutResponse(url=url)


# ============================================
# Webhook
# ============================================

@router.post("/webhook")
async def webhook(request: Request, stripe_client: StripeClient = Depends(get_stripe)):
    """
    Stripe event receiver

    Handled events:
        checkout.session.completed       -> {plan, month, used: "0"}
        customer.subscription.created    -> {month, used: "0"}
        customer.subscription.updated    -> {month, used: "0"}
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise PaymentConfigError("Missing env vars: STRIPE_WEBHOOK_SECRET")

    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, settings.STRIPE_WEBHOOK_SECRET
        )
        event = json.loads(payload)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise WebhookSignatureError()

    event_type = event.get("type", "")
    data = (event.get("data") or {}).get("object") or {}
    customer_id = data.get("customer")

    if event_type == "checkout.session.completed" and customer_id:
        plan = (data.get("metadata") or {}).get("plan") or PlanTier.PRO.value
        await stripe_client.update_customer_metadata(customer_id, {
            "plan": plan,
            "month": month_key(),
            "used": "0",
        })
        logger.info(f"Checkout completed: {customer_id} now on {plan}")

    elif event_type in ("customer.subscription.created", "customer.subscription.updated") and customer_id:
        await stripe_client.update_customer_metadata(customer_id, {
            "month": month_key(),
            "used": "0",
        })
        logger.info(f"Subscription period reset for {customer_id} ({event_type})")

    else:
        logger.debug(f"Ignored Stripe event: {event_type}")

    return {"received": True}
