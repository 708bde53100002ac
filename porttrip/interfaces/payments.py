# interfaces/payments.py
"""
Stripe client
Customer metadata is the authoritative store for subscriber usage
({plan, month, used}); checkout sessions start a subscription.

Calls go through the Stripe SDK's async methods on an httpx transport.
All API and network failures raise BillingUnavailable so the usage gate
can fail closed.
"""

from typing import Any, Dict, Optional
import stripe
from loguru import logger

from ..config import settings
from ..schemas.errors import BillingUnavailable, PaymentConfigError


class StripeClient:
    """Async Stripe wrapper scoped to what the usage plans need"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[stripe.StripeClient] = None
    ):
        self.secret_key = settings.STRIPE_SECRET_KEY if secret_key is None else secret_key
        self.timeout = timeout if timeout is not None else settings.STRIPE_TIMEOUT
        self._client = client
        self._http_client: Optional[stripe.HTTPXClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _sdk(self) -> stripe.StripeClient:
        """Lazy SDK client (needs STRIPE_SECRET_KEY)"""
        if not self.configured:
            raise PaymentConfigError("Missing env vars: STRIPE_SECRET_KEY")

        if self._client is None:
            self._http_client = stripe.HTTPXClient(timeout=self.timeout)
            self._client = stripe.StripeClient(
                self.secret_key,
                http_client=self._http_client,
                max_network_retries=1,
            )
            logger.info("Stripe client initialized")

        return self._client

    async def aclose(self):
        if self._http_client is not None:
            await self._http_client.close_async()

    # ============================================
    # Customers
    # ============================================

    async def get_customer_metadata(self, customer_id: str) -> Dict[str, str]:
        sdk = self._sdk()
        try:
            customer = await sdk.v1.customers.retrieve_async(customer_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe customer lookup failed for {customer_id}: {e}")
            raise BillingUnavailable() from e

        return _metadata_of(customer)

    async def update_customer_metadata(self, customer_id: str, metadata: Dict[str, Any]) -> Dict[str, str]:
        """
        Merge keys into the customer's metadata

        Example:
            await stripe.update_customer_metadata("cus_123", {"used": "4"})
        """
        sdk = self._sdk()
        params = {"metadata": {key: str(value) for key, value in metadata.items()}}
        try:
            customer = await sdk.v1.customers.update_async(customer_id, params)
        except stripe.StripeError as e:
            logger.error(f"Stripe metadata update failed for {customer_id}: {e}")
            raise BillingUnavailable() from e

        logger.debug(f"Stripe metadata updated for {customer_id}: {sorted(metadata)}")
        return _metadata_of(customer)

    # ============================================
    # Checkout
    # ============================================

    async def create_checkout_session(
        self,
        plan: str,
        price_id: str,
        success_url: str,
        cancel_url: str
    ) -> str:
        """
        Create a subscription Checkout Session

        Returns:
            str: Hosted checkout URL
        """
        sdk = self._sdk()
        params = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"plan": plan},
        }
        try:
            session = await sdk.v1.checkout.sessions.create_async(params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session failed for plan={plan}: {e}")
            raise BillingUnavailable() from e

        logger.info(f"Checkout session created for plan={plan}")
        return session.to_dict().get("url") or ""


def _metadata_of(customer: stripe.StripeObject) -> Dict[str, str]:
    metadata = customer.to_dict().get("metadata") or {}
    return {str(k): str(v) for k, v in metadata.items()}
