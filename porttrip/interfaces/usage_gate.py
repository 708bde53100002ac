# interfaces/usage_gate.py
"""
Usage Gate
Plan resolution, monthly quota checks and post-success usage commits.

Identity states:
    anonymous (no customer cookie)  -> free, 3/month, counter in a cookie
    customer cookie, plan "pro"      -> 25/month, counter in Stripe metadata
    customer cookie, plan "unlimited"-> never blocked, never counted

Plan changes come from Stripe webhooks (api/stripe.py); the gate only
reads plans and writes usage.

Failure policy: if a customer's plan cannot be read the gate fails
closed with BillingUnavailable. A customer cookie without Stripe
credentials is gated as anonymous only when ALLOW_UNMETERED_FALLBACK is
set (local development).
"""

import asyncio
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional
from loguru import logger

from ..config import settings
from ..schemas.chat_schemas import PlanTier
from ..schemas.errors import BillingUnavailable
from .usage_store import (
    CommitLedger,
    SubscriptionUsageStore,
    UsageRecord,
    format_free_token,
    limit_label,
    month_key,
    parse_free_token,
    plan_limit,
)

REASON_OK = "ok"
REASON_FREE_LIMIT = "free-limit-reached"
REASON_PRO_LIMIT = "pro-limit-reached"


@dataclass(frozen=True)
class CallerIdentity:
    """Who is asking, as seen from request cookies"""
    customer_id: Optional[str] = None
    free_token: Optional[str] = None

    @property
    def is_subscriber(self) -> bool:
        return bool(self.customer_id)


@dataclass
class QuotaInfo:
    plan: PlanTier
    limit: Optional[int]
    used: int
    period_key: str
    customer_id: Optional[str] = None

    @property
    def unlimited(self) -> bool:
        return self.limit is None

    def to_status(self) -> dict:
        status = {
            "plan": self.plan.value,
            "limit": limit_label(self.limit),
            "used": self.used,
            "month": self.period_key,
        }
        if self.customer_id:
            status["customerId"] = self.customer_id
        return status


@dataclass
class UsageTicket:
    """Issued by admit(), redeemed once by commit()"""
    quota: QuotaInfo
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class Admission:
    allowed: bool
    reason: str
    ticket: Optional[UsageTicket] = None


class UsageGate:
    """
    Usage:
        gate = UsageGate(SubscriptionUsageStore(stripe), CommitLedger(redis_client))
        admission = await gate.admit(identity)
        if admission.allowed:
            ... model call ...
            record = await gate.commit(admission.ticket)
    """

    def __init__(
        self,
        subscriptions: SubscriptionUsageStore,
        ledger: CommitLedger,
        free_limit: Optional[int] = None,
        pro_limit: Optional[int] = None,
        allow_unmetered_fallback: Optional[bool] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.subscriptions = subscriptions
        self.ledger = ledger
        self.free_limit = settings.FREE_LIMIT if free_limit is None else free_limit
        self.pro_limit = settings.PRO_LIMIT if pro_limit is None else pro_limit
        self.allow_unmetered_fallback = (
            settings.ALLOW_UNMETERED_FALLBACK if allow_unmetered_fallback is None
            else allow_unmetered_fallback
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def current_period(self) -> str:
        return month_key(self.clock())

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _uses_subscription(self, identity: CallerIdentity) -> bool:
        if not identity.is_subscriber:
            return False
        if self.subscriptions.configured:
            return True
        if self.allow_unmetered_fallback:
            logger.warning(
                "Stripe not configured; gating customer as anonymous free "
                "(ALLOW_UNMETERED_FALLBACK)"
            )
            return False
        logger.error("Customer cookie present but STRIPE_SECRET_KEY missing; failing closed")
        raise BillingUnavailable()

    # ============================================
    # Quota
    # ============================================

    async def check_quota(self, identity: CallerIdentity, persist_rollover: bool = True) -> QuotaInfo:
        """
        Resolve plan and current usage

        Args:
            identity: Caller cookies
            persist_rollover: For subscribers, write a month reset back to
                Stripe (False for read-only status queries)

        Raises:
            BillingUnavailable: Plan cannot be resolved
        """
        period = self.current_period()

        if self._uses_subscription(identity):
            record = await self.subscriptions.read(identity.customer_id, period, persist_rollover)
            return QuotaInfo(
                plan=record.plan_tier,
                limit=plan_limit(record.plan_tier, self.free_limit, self.pro_limit),
                used=record.used_count,
                period_key=period,
                customer_id=identity.customer_id,
            )

        record = parse_free_token(identity.free_token, period)
        return QuotaInfo(
            plan=PlanTier.FREE,
            limit=self.free_limit,
            used=record.used_count,
            period_key=period,
        )

    async def quota_status(self, identity: CallerIdentity) -> dict:
        """Read-only status for /api/me"""
        quota = await self.check_quota(identity, persist_rollover=False)
        return quota.to_status()

    async def admit(self, identity: CallerIdentity) -> Admission:
        """
        Decide whether a request may proceed

        Returns:
            Admission: allowed + reason; a ticket when allowed
        """
        quota = await self.check_quota(identity)

        if quota.unlimited or quota.used < quota.limit:
            logger.info(
                f"Admitted {quota.plan.value} caller "
                f"({quota.used}/{limit_label(quota.limit)} in {quota.period_key})"
            )
            return Admission(allowed=True, reason=REASON_OK, ticket=UsageTicket(quota=quota))

        reason = REASON_FREE_LIMIT if quota.plan == PlanTier.FREE else REASON_PRO_LIMIT
        logger.info(f"Denied {quota.plan.value} caller: {reason} ({quota.used}/{quota.limit})")
        return Admission(allowed=False, reason=reason)

    # ============================================
    # Commit
    # ============================================

    async def commit(self, ticket: UsageTicket) -> Optional[UsageRecord]:
        """
        Count one successful request. Call only after the answer exists.

        A second commit of the same ticket is a no-op. For subscribers the
        stored count is re-read under a per-customer lock so overlapping
        requests never lose an increment.

        Returns:
            UsageRecord: New usage (anonymous callers store it as a cookie),
                or None for unlimited plans and repeated commits

        Raises:
            BillingUnavailable: Stripe write failed (the claim is released)
        """
        quota = ticket.quota

        if quota.unlimited:
            return None

        if not await self.ledger.claim(ticket.request_id):
            logger.warning(f"Duplicate usage commit ignored for request {ticket.request_id}")
            return None

        if quota.customer_id is None:
            record = UsageRecord(PlanTier.FREE, quota.period_key, quota.used + 1)
            logger.info(f"Anonymous usage now {record.used_count}/{quota.limit}")
            return record

        async with self._lock_for(quota.customer_id):
            try:
                current = await self.subscriptions.read(quota.customer_id, self.current_period())
                used = current.used_count + 1
                await self.subscriptions.write_used(quota.customer_id, used)
            except Exception:
                await self.ledger.release(ticket.request_id)
                raise

        logger.info(f"Customer {quota.customer_id} usage now {used}/{quota.limit}")
        return UsageRecord(current.plan_tier, current.period_key, used)

    @staticmethod
    def free_token_for(record: UsageRecord) -> str:
        return format_free_token(record)
