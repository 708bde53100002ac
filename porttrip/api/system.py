# api/system.py
"""
Service endpoints: health and corpus hot reload
"""

import hmac
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from loguru import logger

from ..cache.redis_client import check_redis_health
from ..config import settings
from ..interfaces.corpus_store import CorpusStore
from .dependencies import get_corpus


router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(request: Request):
    """Detailed health check"""
    state = request.app.state
    corpus: CorpusStore = state.corpus

    return {
        "status": "healthy",
        "environment": settings.API_ENV,
        "corpus": {
            "snippets": len(corpus.records),
            "ports": len(corpus.list_ports(limit=200)),
        },
        "components": {
            "llm": state.chat_client.available,
            "embeddings": state.pipeline.embeddings_enabled and state.embedder.available,
            "web_search": state.pipeline.web_enabled and state.web_search.available,
            "stripe": state.stripe.configured,
            "redis": await check_redis_health(state.gate.ledger.redis_client),
        },
    }


@router.post("/api/admin/reload-corpus")
async def reload_corpus(
    x_admin_token: str = Header("", alias="X-Admin-Token"),
    corpus: CorpusStore = Depends(get_corpus)
):
    """
    Re-read the corpus JSON files without a restart

    Requires ADMIN_TOKEN to be configured and sent as X-Admin-Token.
    """
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=404, detail="Not found")
    if not hmac.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        logger.warning("Corpus reload rejected: bad admin token")
        raise HTTPException(status_code=403, detail="Forbidden")

    count = corpus.reload()
    return {"status": "reloaded", "snippets": count}
