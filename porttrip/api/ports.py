# api/ports.py
"""
Port listing for the chat UI autocomplete
"""

from typing import List
from fastapi import APIRouter, Depends, Query, Response

from ..interfaces.corpus_store import CorpusStore
from ..schemas.chat_schemas import PortListItem
from .dependencies import get_corpus


router = APIRouter(prefix="/api", tags=["ports"])

PORTS_CACHE_CONTROL = "public, max-age=300, s-maxage=300, stale-while-revalidate=300"


@router.get("/ports", response_model=List[PortListItem])
async def list_ports(
    response: Response,
    q: str = Query("", max_length=100, description="Substring filter on port name"),
    limit: int = Query(50, description="Result cap (1-200)"),
    corpus: CorpusStore = Depends(get_corpus)
):
    """Unique ports from the corpus as [{id, name, region}]"""
    response.headers["Cache-Control"] = PORTS_CACHE_CONTROL
    return corpus.list_ports(q, limit)
