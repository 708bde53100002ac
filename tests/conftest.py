"""Shared fixtures for the PortTrip Concierge tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from porttrip.interfaces.corpus_store import CorpusStore, load_corpus
from porttrip.interfaces.usage_gate import UsageGate
from porttrip.interfaces.usage_store import CommitLedger, SubscriptionUsageStore


SEPTEMBER = datetime(2025, 9, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def raw_rows():
    return [
        {"port": "Barcelona", "category": "transport", "snippet": "Taxi to Sagrada Família ~€12–15",
         "aliases": ["BCN"], "region": "Mediterranean"},
        {"port": "Barcelona", "type": "sights", "text": "Buy timed tickets for Park Guell"},
        {"port": "Athens (Piraeus)", "category": "transport", "note": "Metro line 1 to Monastiraki",
         "aliases": ["Piraeus", "Athens"], "region": "Mediterranean"},
        {"port": "Rome (Civitavecchia)", "category": "timing", "snippet": "Regional train takes about an hour",
         "aliases": ["Civitavecchia", "Rome"]},
    ]


@pytest.fixture
def corpus(raw_rows):
    return CorpusStore(load_corpus(raw_rows))


@pytest.fixture
def fake_stripe():
    """StripeClient double with in-memory customer metadata"""
    customers = {}

    async def get_metadata(customer_id):
        return dict(customers.get(customer_id, {}))

    async def update_metadata(customer_id, metadata):
        customers.setdefault(customer_id, {}).update({k: str(v) for k, v in metadata.items()})
        return dict(customers[customer_id])

    stripe = MagicMock()
    stripe.configured = True
    stripe.customers = customers
    stripe.get_customer_metadata = AsyncMock(side_effect=get_metadata)
    stripe.update_customer_metadata = AsyncMock(side_effect=update_metadata)
    return stripe


@pytest.fixture
def gate(fake_stripe):
    return UsageGate(
        SubscriptionUsageStore(fake_stripe),
        CommitLedger(),
        free_limit=3,
        pro_limit=25,
        allow_unmetered_fallback=False,
        clock=lambda: SEPTEMBER,
    )
