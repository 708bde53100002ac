"""
Keyword Score Algorithm
Cheap lexical pre-filter for the port knowledge base

Score = number of DISTINCT query tokens found as a substring of the
record text (case-insensitive). Repeating a word in the query does not
raise the score. A query with no tokens scores every record 0.

The corpus is small (tens to low hundreds of snippets), so a linear
scan per request is fine.
"""

import re
from typing import List, NamedTuple, Sequence
from loguru import logger

from ..interfaces.corpus_store import PortSnippet

_NON_WORD = re.compile(r"\W+")


class ScoredCandidate(NamedTuple):
    record: PortSnippet
    score: float


def tokenize(query: str) -> List[str]:
    """
    Lower-case and split on runs of non-word characters

    Example:
        >>> tokenize("How much is a taxi in Barcelona?")
        ['how', 'much', 'is', 'a', 'taxi', 'in', 'barcelona']
    """
    return [token for token in _NON_WORD.split((query or "").lower()) if token]


def keyword_score(query: str, text: str) -> int:
    """
    Count distinct query tokens contained in text

    Args:
        query: User query
        text: Record search text

    Returns:
        int: 0..number of distinct tokens

    Examples:
        >>> keyword_score("barcelona taxi", "Barcelona taxi fares are €12")
        2
        >>> keyword_score("taxi taxi taxi", "One taxi rank")
        1
    """
    tokens = set(tokenize(query))
    if not tokens:
        return 0

    haystack = (text or "").lower()
    return sum(1 for token in tokens if token in haystack)


def rank_by_keyword(
    query: str,
    records: Sequence[PortSnippet],
    width: int
) -> List[PortSnippet]:
    """
    Sort records by keyword score (descending) and keep the top `width`

    Python's sort is stable, so records with equal scores keep corpus order.
    """
    scored = [ScoredCandidate(record, keyword_score(query, record.search_text)) for record in records]
    scored.sort(key=lambda candidate: candidate.score, reverse=True)

    shortlist = [candidate.record for candidate in scored[:max(0, width)]]

    if scored:
        logger.debug(
            f"Keyword prefilter: {len(shortlist)}/{len(records)} kept, "
            f"top score {scored[0].score}"
        )

    return shortlist
