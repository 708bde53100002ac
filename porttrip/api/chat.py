# api/chat.py
"""
Chat API Endpoint
Cruise-port Q&A over the local corpus, optionally streamed.

Errors are raised as ConciergeError and rendered by the handler in
main.py as {error, code}.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, StreamingResponse
from loguru import logger

from ..agents.concierge_agent import ConciergeAgent
from ..interfaces.usage_gate import CallerIdentity
from ..schemas.chat_schemas import ChatRequest
from .dependencies import get_agent, get_identity, set_free_usage_cookie


router = APIRouter(prefix="/api", tags=["chat"])

TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


# ============================================
# Chat
# ============================================

@router.post("/chat")
async def chat(
    body: ChatRequest,
    agent: ConciergeAgent = Depends(get_agent),
    identity: CallerIdentity = Depends(get_identity)
):
    """
    Answer a cruise-port question

    Request body:
        {"messages": [{"role": "user", "content": "..."}], "query": "...", "stream": false}

    Returns:
        text/plain answer. With stream=true subscribers receive the answer
        token by token; anonymous callers always get a buffered answer so
        the usage cookie can be set.
    """
    turn = await agent.prepare(body, identity)

    if body.stream and not turn.is_anonymous:
        tokens = await agent.stream_answer(turn)
        logger.info(f"Streaming answer for customer {turn.ticket.quota.customer_id}")
        return StreamingResponse(
            tokens,
            media_type=TEXT_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache, no-transform", "X-Accel-Buffering": "no"},
        )

    answer = await agent.complete_turn(turn)
    response = PlainTextResponse(answer.text, media_type=TEXT_MEDIA_TYPE)

    if turn.is_anonymous and answer.usage is not None:
        set_free_usage_cookie(response, answer.usage)

    return response
