# agents/retrieval_pipeline.py
"""
Retrieval Pipeline
Keyword prefilter -> embedding rerank -> capped passage list,
plus the "does this need fresh web info?" decision and the web lookup.

Both enrichments (rerank, web) are optional: if either fails the
pipeline degrades to keyword-only ranking / no web snippets. It never
mutates the corpus and keeps no per-request state.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional
from loguru import logger

from ..algorithms.lexical_scorer import rank_by_keyword
from ..algorithms.reranker import EmbedFn, rerank
from ..config import settings
from ..interfaces.corpus_store import CorpusStore, PortSnippet
from ..interfaces.web_search import WebSearchClient, WebSnippet
from ..schemas.errors import EmbeddingUnavailable

FRESHNESS_PATTERN = re.compile(
    r"\b(today|latest|now|open|closed|hours?|opening|closing|prices?|tickets?|fare|"
    r"schedule|timetable|shuttle|bus|tram|metro|train|ferry|strike|closure|"
    r"construction|works?|delays?|weather|holiday|event|festival|changed)\b",
    re.IGNORECASE,
)
FORCE_WEB_PATTERN = re.compile(r"\b(search (the )?web|web search)\b", re.IGNORECASE)
BLOCK_WEB_PATTERN = re.compile(r"\b(no web|without (the )?web|offline only)\b", re.IGNORECASE)


def looks_like_web_need(query: str) -> bool:
    """
    Decide whether a query wants up-to-date information

    "no web" always wins over "search web"; otherwise any freshness word
    (whole word, any case) triggers a lookup.

    Examples:
        >>> looks_like_web_need("Is the ferry schedule today affected by a strike?")
        True
        >>> looks_like_web_need("How much is a taxi in Barcelona?")
        False
    """
    text = query or ""
    if BLOCK_WEB_PATTERN.search(text):
        return False
    if FORCE_WEB_PATTERN.search(text):
        return True
    return bool(FRESHNESS_PATTERN.search(text))


@dataclass
class RetrievalResult:
    passages: List[PortSnippet]
    needs_web: bool = False
    web_snippets: List[WebSnippet] = field(default_factory=list)


class RetrievalPipeline:
    """
    Orchestrates corpus -> keyword score -> rerank -> web lookup

    Usage:
        pipeline = RetrievalPipeline(corpus_store, embed=embedder.embed, web_search=web_client)
        result = await pipeline.retrieve("How much is a taxi in Barcelona?")
    """

    def __init__(
        self,
        corpus: CorpusStore,
        embed: Optional[EmbedFn] = None,
        web_search: Optional[WebSearchClient] = None,
        max_passages: Optional[int] = None,
        prefilter_width: Optional[int] = None,
        embeddings_enabled: Optional[bool] = None,
        web_enabled: Optional[bool] = None
    ):
        self.corpus = corpus
        self.embed = embed
        self.web_search = web_search
        self.max_passages = max_passages if max_passages is not None else settings.MAX_LOCAL_PASSAGES
        self.prefilter_width = prefilter_width if prefilter_width is not None else settings.PREFILTER_WIDTH
        self.embeddings_enabled = (
            settings.embeddings_enabled if embeddings_enabled is None else embeddings_enabled
        )
        self.web_enabled = settings.ALLOW_WEB if web_enabled is None else web_enabled

    async def rank_local(self, query: str, max_passages: Optional[int] = None) -> List[PortSnippet]:
        """
        Rank local passages for a query

        Returns keyword order when embeddings are off or fail.
        """
        limit = self.max_passages if max_passages is None else max_passages
        shortlist = rank_by_keyword(query, self.corpus.snapshot().records, self.prefilter_width)

        if not self.embeddings_enabled or self.embed is None:
            return shortlist[:limit]

        try:
            ranked = await rerank(query, shortlist, self.embed)
        except EmbeddingUnavailable as e:
            logger.warning(f"Embedding rerank unavailable, using keyword order: {e}")
            return shortlist[:limit]

        return ranked[:limit]

    async def fetch_web(self, query: str) -> List[WebSnippet]:
        if not self.web_enabled or self.web_search is None:
            return []
        try:
            return await self.web_search.search(query)
        except Exception as e:
            logger.warning(f"Web search error ignored: {e}")
            return []

    async def retrieve(self, query: str, max_passages: Optional[int] = None) -> RetrievalResult:
        """
        Full retrieval for one request

        Args:
            query: Effective user query
            max_passages: Override of the configured passage cap

        Returns:
            RetrievalResult: passages, needs_web, web snippets
        """
        needs_web = looks_like_web_need(query)

        if needs_web:
            passages, web_snippets = await asyncio.gather(
                self.rank_local(query, max_passages),
                self.fetch_web(query),
            )
        else:
            passages = await self.rank_local(query, max_passages)
            web_snippets = []

        logger.info(
            f"Retrieved {len(passages)} passage(s), needs_web={needs_web}, "
            f"web={len(web_snippets)}"
        )

        return RetrievalResult(
            passages=list(passages),
            needs_web=needs_web,
            web_snippets=list(web_snippets),
        )
