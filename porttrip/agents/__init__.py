# agents/__init__.py
"""
Agents Package

- ConciergeAgent: Chat-facing agent (one request, start to finish)
- RetrievalPipeline: Local passages and web snippets for a query
"""

from .concierge_agent import ConciergeAgent, ConciergeAnswer, PreparedTurn
from .retrieval_pipeline import RetrievalPipeline, RetrievalResult, looks_like_web_need

__all__ = [
    "ConciergeAgent",
    "ConciergeAnswer",
    "PreparedTurn",
    "RetrievalPipeline",
    "RetrievalResult",
    "looks_like_web_need"
]
