"""
Embedding Rerank Algorithm
Reorders a keyword shortlist by semantic similarity to the query

Similarity is the dot product of L2-normalized vectors, i.e. cosine
similarity whatever norm the provider returns. A zero vector scores 0.
"""

from typing import Awaitable, Callable, List, Sequence
import numpy as np
from loguru import logger

from ..interfaces.corpus_store import PortSnippet
from ..schemas.errors import EmbeddingUnavailable
from .lexical_scorer import ScoredCandidate

EmbedFn = Callable[[List[str]], Awaitable[List[List[float]]]]


def _normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


def similarity_scores(query_vector: Sequence[float], candidate_vectors: Sequence[Sequence[float]]) -> List[float]:
    """
    Cosine similarity of each candidate vector against the query vector

    Example:
        >>> similarity_scores([2.0, 0.0], [[1.0, 0.0], [0.0, 5.0]])
        [1.0, 0.0]
    """
    if not candidate_vectors:
        return []

    query = _normalize(np.asarray(query_vector, dtype=float).reshape(1, -1))
    candidates = _normalize(np.asarray(candidate_vectors, dtype=float))

    if candidates.shape[1] != query.shape[1]:
        raise EmbeddingUnavailable(
            f"Dimension mismatch: query {query.shape[1]} vs candidates {candidates.shape[1]}"
        )

    return [float(score) for score in candidates @ query[0]]


def order_by_vectors(
    candidates: Sequence[PortSnippet],
    vectors: Sequence[Sequence[float]]
) -> List[PortSnippet]:
    """
    Rank candidates given [query_vector, *candidate_vectors]

    Raises:
        EmbeddingUnavailable: If the vector count does not match
    """
    if len(vectors) != len(candidates) + 1:
        raise EmbeddingUnavailable(
            f"Expected {len(candidates) + 1} vectors, got {len(vectors)}"
        )

    scores = similarity_scores(vectors[0], vectors[1:])
    scored = [ScoredCandidate(record, score) for record, score in zip(candidates, scores)]
    scored.sort(key=lambda candidate: candidate.score, reverse=True)

    return [candidate.record for candidate in scored]


async def rerank(query: str, candidates: Sequence[PortSnippet], embed: EmbedFn) -> List[PortSnippet]:
    """
    Embed the query and candidates in one batch and sort by similarity

    Args:
        query: User query
        candidates: Keyword shortlist
        embed: Async callable texts -> vectors, one per text, same order

    Returns:
        List[PortSnippet]: Candidates by descending similarity

    Raises:
        EmbeddingUnavailable: On any embedding failure; callers fall back
            to the keyword order
    """
    if not candidates:
        return []

    texts = [query] + [record.search_text for record in candidates]

    try:
        vectors = await embed(texts)
    except EmbeddingUnavailable:
        raise
    except Exception as e:
        raise EmbeddingUnavailable(str(e)) from e

    try:
        ranked = order_by_vectors(candidates, vectors)
    except (TypeError, ValueError) as e:
        raise EmbeddingUnavailable(f"Malformed embedding vectors: {e}") from e

    logger.debug(f"Reranked {len(ranked)} candidates by embedding similarity")
    return ranked
