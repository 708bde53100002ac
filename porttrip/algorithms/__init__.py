"""
Ranking Algorithms Module
Keyword prefilter and embedding rerank for corpus passages
"""

from .lexical_scorer import ScoredCandidate, keyword_score, rank_by_keyword, tokenize
from .reranker import order_by_vectors, rerank, similarity_scores

__all__ = [
    "ScoredCandidate",
    "keyword_score",
    "rank_by_keyword",
    "tokenize",
    "order_by_vectors",
    "rerank",
    "similarity_scores"
]
