# interfaces/usage_store.py
"""
Usage records and their stores

- Anonymous callers: the record lives in a client-held cookie
  "YYYY-MM:count" that the server never persists.
- Subscribers: the record lives in Stripe customer metadata
  ({plan, month, used}), read and written by customer id.
- CommitLedger: remembers which request ids already committed usage so
  a second commit for the same request is a no-op.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional
from redis.exceptions import RedisError
from loguru import logger

from ..config import settings
from ..schemas.chat_schemas import PlanTier
from .payments import StripeClient


def month_key(now: Optional[datetime] = None) -> str:
    """
    Calendar-month period key in UTC

    Example:
        >>> month_key(datetime(2025, 9, 3, tzinfo=timezone.utc))
        '2025-09'
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


def _to_int(value) -> int:
    try:
        return max(0, int(str(value).strip()))
    except (TypeError, ValueError):
        return 0


@dataclass
class UsageRecord:
    plan_tier: PlanTier
    period_key: str
    used_count: int = 0

    def rolled_over(self, current_period: str) -> "UsageRecord":
        """Same record seen from `current_period`: a new month starts at 0"""
        if self.period_key == current_period:
            return self
        return UsageRecord(plan_tier=self.plan_tier, period_key=current_period, used_count=0)


# ============================================
# Anonymous usage token (cookie)
# ============================================

def parse_free_token(value: Optional[str], current_period: str) -> UsageRecord:
    """
    Read the anonymous usage cookie

    Examples:
        >>> parse_free_token("2025-09:2", "2025-09").used_count
        2
        >>> parse_free_token("2025-08:3", "2025-09").used_count
        0
    """
    if not value:
        return UsageRecord(PlanTier.FREE, current_period, 0)

    period, _, count = value.partition(":")
    record = UsageRecord(PlanTier.FREE, period.strip(), _to_int(count))
    return record.rolled_over(current_period)


def format_free_token(record: UsageRecord) -> str:
    return f"{record.period_key}:{record.used_count}"


# ============================================
# Subscriber usage (Stripe customer metadata)
# ============================================

class SubscriptionUsageStore:
    """
    Reads and writes {plan, month, used} on a Stripe customer.
    Missing plan metadata means "pro" (the customer exists because they paid).
    """

    def __init__(self, stripe: StripeClient):
        self.stripe = stripe

    @property
    def configured(self) -> bool:
        return self.stripe.configured

    @staticmethod
    def _plan_from(metadata: Dict[str, str]) -> PlanTier:
        plan = (metadata.get("plan") or "pro").strip().lower()
        if plan == PlanTier.UNLIMITED.value:
            return PlanTier.UNLIMITED
        return PlanTier.PRO

    async def read(self, customer_id: str, current_period: str, persist_rollover: bool = True) -> UsageRecord:
        """
        Load the customer's usage for the current period

        Args:
            customer_id: Stripe customer id
            current_period: month_key() of now
            persist_rollover: Write the month reset back to Stripe

        Raises:
            BillingUnavailable: Stripe unreachable or erroring
        """
        metadata = await self.stripe.get_customer_metadata(customer_id)
        stored = UsageRecord(
            plan_tier=self._plan_from(metadata),
            period_key=metadata.get("month") or current_period,
            used_count=_to_int(metadata.get("used", "0")),
        )
        record = stored.rolled_over(current_period)

        if record is not stored and persist_rollover:
            await self.stripe.update_customer_metadata(customer_id, {
                "month": current_period,
                "used": "0",
                "plan": record.plan_tier.value,
            })
            logger.info(f"Usage period rolled over for {customer_id}: {stored.period_key} -> {current_period}")

        return record

    async def write_used(self, customer_id: str, used: int):
        await self.stripe.update_customer_metadata(customer_id, {"used": str(used)})


# ============================================
# Commit ledger (idempotency)
# ============================================

class CommitLedger:
    """
    Single-use claim per request id.
    Redis SET NX EX when Redis is reachable, process memory otherwise.
    """

    KEY_PREFIX = "usage:commit:"

    def __init__(self, redis_client=None, ttl_seconds: Optional[int] = None):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.COMMIT_LEDGER_TTL
        self._memory: Dict[str, float] = {}

    def _claim_in_memory(self, request_id: str) -> bool:
        # no await in here, so the check-and-set is atomic on the event loop
        now = time.time()
        expired = [key for key, expires in self._memory.items() if expires <= now]
        for key in expired:
            del self._memory[key]

        if request_id in self._memory:
            return False
        self._memory[request_id] = now + self.ttl_seconds
        return True

    async def claim(self, request_id: str) -> bool:
        """
        Claim a request id

        Returns:
            bool: True the first time, False for every later claim
        """
        if self.redis_client is not None:
            try:
                claimed = await self.redis_client.set(
                    f"{self.KEY_PREFIX}{request_id}", "1", nx=True, ex=self.ttl_seconds
                )
                return bool(claimed)
            except RedisError as e:
                logger.error(f"Redis ledger error, using in-memory ledger: {e}")

        return self._claim_in_memory(request_id)

    async def release(self, request_id: str):
        """Forget a claim (used when the write behind it failed)"""
        if self.redis_client is not None:
            try:
                await self.redis_client.delete(f"{self.KEY_PREFIX}{request_id}")
            except RedisError as e:
                logger.error(f"Redis ledger release error: {e}")
        self._memory.pop(request_id, None)


def plan_limit(plan: PlanTier, free_limit: int, pro_limit: int) -> Optional[int]:
    """Monthly request limit for a plan, None for unlimited"""
    if plan == PlanTier.UNLIMITED:
        return None
    if plan == PlanTier.PRO:
        return pro_limit
    return free_limit


def limit_label(limit: Optional[int]):
    return "unlimited" if limit is None else limit

