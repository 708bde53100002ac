"""Tests for usage records, the commit ledger and the usage gate."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis

from porttrip.cache.redis_client import check_redis_health
from porttrip.interfaces.usage_gate import (
    REASON_FREE_LIMIT,
    REASON_OK,
    REASON_PRO_LIMIT,
    CallerIdentity,
    UsageGate,
)
from porttrip.interfaces.usage_store import (
    CommitLedger,
    SubscriptionUsageStore,
    UsageRecord,
    format_free_token,
    month_key,
    parse_free_token,
    plan_limit,
)
from porttrip.schemas.chat_schemas import PlanTier
from porttrip.schemas.errors import BillingUnavailable


class TestMonthKey:
    """UTC calendar-month period keys."""

    def test_formats_year_and_month(self):
        assert month_key(datetime(2025, 9, 3, tzinfo=timezone.utc)) == "2025-09"

    def test_converts_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        # 2025-09-30 22:00 at UTC-5 is already October in UTC
        assert month_key(datetime(2025, 9, 30, 22, 0, tzinfo=eastern)) == "2025-10"


class TestFreeToken:
    """Anonymous usage cookie."""

    def test_parse_current_month(self):
        record = parse_free_token("2025-09:2", "2025-09")
        assert (record.period_key, record.used_count) == ("2025-09", 2)

    def test_parse_previous_month_rolls_over(self):
        record = parse_free_token("2025-08:3", "2025-09")
        assert (record.period_key, record.used_count) == ("2025-09", 0)

    def test_missing_or_garbage_is_zero(self):
        assert parse_free_token(None, "2025-09").used_count == 0
        assert parse_free_token("2025-09:abc", "2025-09").used_count == 0
        assert parse_free_token("2025-09:-4", "2025-09").used_count == 0

    def test_format(self):
        assert format_free_token(UsageRecord(PlanTier.FREE, "2025-09", 3)) == "2025-09:3"


class TestPlanLimit:

    def test_limits_per_plan(self):
        assert plan_limit(PlanTier.FREE, 3, 25) == 3
        assert plan_limit(PlanTier.PRO, 3, 25) == 25
        assert plan_limit(PlanTier.UNLIMITED, 3, 25) is None


class TestCommitLedger:
    """Single-use claims per request id."""

    @pytest.mark.asyncio
    async def test_in_memory_claim_once(self):
        ledger = CommitLedger()
        assert await ledger.claim("req-1") is True
        assert await ledger.claim("req-1") is False
        assert await ledger.claim("req-2") is True

    @pytest.mark.asyncio
    async def test_release_allows_reclaim(self):
        ledger = CommitLedger()
        await ledger.claim("req-1")
        await ledger.release("req-1")
        assert await ledger.claim("req-1") is True

    @pytest.mark.asyncio
    async def test_redis_set_nx(self):
        client = MagicMock()
        client.set = AsyncMock(side_effect=[True, None])
        ledger = CommitLedger(client, ttl_seconds=60)

        assert await ledger.claim("req-1") is True
        assert await ledger.claim("req-1") is False
        client.set.assert_awaited_with("usage:commit:req-1", "1", nx=True, ex=60)

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self):
        client = MagicMock()
        client.set = AsyncMock(side_effect=redis.ConnectionError("down"))
        ledger = CommitLedger(client)

        assert await ledger.claim("req-1") is True
        assert await ledger.claim("req-1") is False

    @pytest.mark.asyncio
    async def test_release_deletes_redis_key(self):
        client = MagicMock()
        client.delete = AsyncMock()
        ledger = CommitLedger(client)

        await ledger.release("req-1")

        client.delete.assert_awaited_once_with("usage:commit:req-1")

    @pytest.mark.asyncio
    async def test_slow_redis_does_not_block_the_event_loop(self):
        async def slow_set(*args, **kwargs):
            await asyncio.sleep(0.05)
            return True

        client = MagicMock()
        client.set = AsyncMock(side_effect=slow_set)
        ledger = CommitLedger(client)
        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append(1)
                await asyncio.sleep(0.01)

        claimed, _ = await asyncio.gather(ledger.claim("req-1"), ticker())

        assert claimed is True
        assert len(ticks) == 3


class TestRedisHealth:
    """Health check against the ledger's client."""

    @pytest.mark.asyncio
    async def test_missing_client_is_down(self):
        assert await check_redis_health(None) is False

    @pytest.mark.asyncio
    async def test_ping_ok(self):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        assert await check_redis_health(client) is True

    @pytest.mark.asyncio
    async def test_ping_error_is_down(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=redis.ConnectionError("refused"))
        assert await check_redis_health(client) is False



class TestSubscriptionUsageStore:
    """Stripe metadata as the subscriber record."""

    @pytest.mark.asyncio
    async def test_missing_plan_defaults_to_pro(self, fake_stripe):
        fake_stripe.customers["cus_1"] = {"month": "2025-09", "used": "4"}
        store = SubscriptionUsageStore(fake_stripe)

        record = await store.read("cus_1", "2025-09")

        assert record.plan_tier == PlanTier.PRO
        assert record.used_count == 4

    @pytest.mark.asyncio
    async def test_rollover_is_written_back(self, fake_stripe):
        fake_stripe.customers["cus_1"] = {"plan": "pro", "month": "2025-08", "used": "25"}
        store = SubscriptionUsageStore(fake_stripe)

        record = await store.read("cus_1", "2025-09")

        assert record.used_count == 0
        assert fake_stripe.customers["cus_1"] == {"plan": "pro", "month": "2025-09", "used": "0"}

    @pytest.mark.asyncio
    async def test_read_only_rollover_leaves_stripe_alone(self, fake_stripe):
        fake_stripe.customers["cus_1"] = {"plan": "pro", "month": "2025-08", "used": "25"}
        store = SubscriptionUsageStore(fake_stripe)

        record = await store.read("cus_1", "2025-09", persist_rollover=False)

        assert record.used_count == 0
        fake_stripe.update_customer_metadata.assert_not_called()


class TestAnonymousGate:
    """Free tier, counter carried in a cookie."""

    @pytest.mark.asyncio
    async def test_admission_boundary(self, gate):
        identity = CallerIdentity(free_token="2025-09:2")

        admission = await gate.admit(identity)
        assert admission.allowed is True
        assert admission.reason == REASON_OK

        record = await gate.commit(admission.ticket)
        assert record.used_count == 3

        next_identity = CallerIdentity(free_token=UsageGate.free_token_for(record))
        denied = await gate.admit(next_identity)
        assert denied.allowed is False
        assert denied.reason == REASON_FREE_LIMIT
        assert denied.ticket is None

    @pytest.mark.asyncio
    async def test_previous_month_is_reset(self, gate):
        admission = await gate.admit(CallerIdentity(free_token="2025-08:3"))

        assert admission.allowed is True
        assert admission.ticket.quota.used == 0

    @pytest.mark.asyncio
    async def test_commit_is_idempotent(self, gate):
        admission = await gate.admit(CallerIdentity())

        first = await gate.commit(admission.ticket)
        second = await gate.commit(admission.ticket)

        assert first.used_count == 1
        assert second is None

    @pytest.mark.asyncio
    async def test_status_for_anonymous(self, gate):
        status = await gate.quota_status(CallerIdentity(free_token="2025-09:1"))
        assert status == {"plan": "free", "limit": 3, "used": 1, "month": "2025-09"}


class TestSubscriberGate:
    """Pro and unlimited customers, counter in Stripe."""

    @pytest.mark.asyncio
    async def test_pro_admit_and_commit(self, gate, fake_stripe):
        fake_stripe.customers["cus_1"] = {"plan": "pro", "month": "2025-09", "used": "24"}
        identity = CallerIdentity(customer_id="cus_1")

        admission = await gate.admit(identity)
        assert admission.allowed is True

        record = await gate.commit(admission.ticket)
        assert record.used_count == 25
        assert fake_stripe.customers["cus_1"]["used"] == "25"

        denied = await gate.admit(identity)
        assert denied.allowed is False
        assert denied.reason == REASON_PRO_LIMIT

    @pytest.mark.asyncio
    async def test_unlimited_is_never_counted(self, gate, fake_stripe):
        fake_stripe.customers["cus_u"] = {"plan": "unlimited", "month": "2025-09", "used": "999"}
        identity = CallerIdentity(customer_id="cus_u")

        admission = await gate.admit(identity)
        assert admission.allowed is True
        assert await gate.commit(admission.ticket) is None
        assert fake_stripe.customers["cus_u"]["used"] == "999"

        status = await gate.quota_status(identity)
        assert status["limit"] == "unlimited"
        assert status["customerId"] == "cus_u"

    @pytest.mark.asyncio
    async def test_concurrent_commits_do_not_lose_updates(self, gate, fake_stripe):
        fake_stripe.customers["cus_1"] = {"plan": "pro", "month": "2025-09", "used": "0"}
        identity = CallerIdentity(customer_id="cus_1")

        admissions = [await gate.admit(identity) for _ in range(5)]
        await asyncio.gather(*(gate.commit(a.ticket) for a in admissions))

        assert fake_stripe.customers["cus_1"]["used"] == "5"

    @pytest.mark.asyncio
    async def test_stripe_outage_fails_closed(self, gate, fake_stripe):
        fake_stripe.get_customer_metadata.side_effect = BillingUnavailable()

        with pytest.raises(BillingUnavailable):
            await gate.admit(CallerIdentity(customer_id="cus_1"))

    @pytest.mark.asyncio
    async def test_failed_write_releases_claim(self, gate, fake_stripe):
        fake_stripe.customers["cus_1"] = {"plan": "pro", "month": "2025-09", "used": "1"}
        admission = await gate.admit(CallerIdentity(customer_id="cus_1"))
        original = fake_stripe.update_customer_metadata.side_effect
        fake_stripe.update_customer_metadata.side_effect = BillingUnavailable()

        with pytest.raises(BillingUnavailable):
            await gate.commit(admission.ticket)

        fake_stripe.update_customer_metadata.side_effect = original
        record = await gate.commit(admission.ticket)
        assert record.used_count == 2


class TestMissingStripeCredentials:
    """Customer cookie without a Stripe key."""

    def _gate(self, allow_fallback):
        stripe = MagicMock()
        stripe.configured = False
        stripe.get_customer_metadata = AsyncMock()
        return UsageGate(
            SubscriptionUsageStore(stripe),
            CommitLedger(),
            free_limit=3,
            pro_limit=25,
            allow_unmetered_fallback=allow_fallback,
            clock=lambda: datetime(2025, 9, 1, tzinfo=timezone.utc),
        )

    @pytest.mark.asyncio
    async def test_fails_closed_by_default(self):
        with pytest.raises(BillingUnavailable):
            await self._gate(False).admit(CallerIdentity(customer_id="cus_1"))

    @pytest.mark.asyncio
    async def test_fallback_flag_gates_as_free(self):
        admission = await self._gate(True).admit(
            CallerIdentity(customer_id="cus_1", free_token="2025-09:3")
        )

        assert admission.allowed is False
        assert admission.reason == REASON_FREE_LIMIT

    @pytest.mark.asyncio
    async def test_anonymous_unaffected(self):
        admission = await self._gate(False).admit(CallerIdentity())
        assert admission.allowed is True
