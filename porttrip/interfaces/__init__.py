# interfaces/__init__.py
"""
Interfaces Package

Contains data stores and external services:
- corpus_store: Port snippets and alias index
- usage_store / usage_gate: Monthly quotas
- payments: Stripe REST client
- web_search: Tavily client
"""

from .corpus_store import CorpusStore, PortSnippet, load_corpus, load_corpus_files
from .payments import StripeClient
from .usage_gate import Admission, CallerIdentity, QuotaInfo, UsageGate, UsageTicket
from .usage_store import CommitLedger, SubscriptionUsageStore, UsageRecord, month_key
from .web_search import WebSearchClient, WebSnippet

__all__ = [
    "CorpusStore",
    "PortSnippet",
    "load_corpus",
    "load_corpus_files",
    "StripeClient",
    "Admission",
    "CallerIdentity",
    "QuotaInfo",
    "UsageGate",
    "UsageTicket",
    "CommitLedger",
    "SubscriptionUsageStore",
    "UsageRecord",
    "month_key",
    "WebSearchClient",
    "WebSnippet"
]
