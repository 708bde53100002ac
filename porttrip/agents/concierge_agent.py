# agents/concierge_agent.py
"""
PortTrip Concierge Agent (chat-facing)

One request, strictly in order:
1. Usage gate admits or denies
2. Retrieval pipeline picks local passages (+ web snippets)
3. Prompt composer builds the message list
4. Model call (buffered or streamed)
5. Answer sanitizer (buffered answers)
6. Usage commit, only after the answer was produced
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional
from loguru import logger

from ..config import settings
from ..interfaces.corpus_store import CorpusStore
from ..interfaces.usage_gate import (
    REASON_FREE_LIMIT,
    CallerIdentity,
    UsageGate,
    UsageTicket,
)
from ..interfaces.usage_store import UsageRecord
from ..llm.chat_client import ChatClient
from ..llm.prompts import SYSTEM_PERSONA, build_context_block, compose_messages
from ..llm.sanitizer import sanitize_answer
from ..schemas.chat_schemas import ChatRequest, ConversationMessage
from ..schemas.errors import (
    ConciergeError,
    EmptyQueryError,
    FreeQuotaExceededError,
    ModelUnavailable,
    QuotaExceededError,
)
from .retrieval_pipeline import RetrievalPipeline, RetrievalResult

STREAM_INTERRUPTED_NOTICE = "\n\n(Streaming interrupted.)"


@dataclass
class PreparedTurn:
    """Everything decided before the model is called"""
    query: str
    ticket: UsageTicket
    port_hint: str
    retrieval: RetrievalResult
    messages: List[ConversationMessage] = field(default_factory=list)

    @property
    def is_anonymous(self) -> bool:
        return self.ticket.quota.customer_id is None


@dataclass
class ConciergeAnswer:
    text: str
    turn: PreparedTurn
    usage: Optional[UsageRecord] = None


class ConciergeAgent:
    """
    Cruise-port travel assistant.

    Collaborators are injected so the same agent serves the API and tests.
    """

    def __init__(
        self,
        corpus: CorpusStore,
        pipeline: RetrievalPipeline,
        gate: UsageGate,
        chat_client: ChatClient,
        max_local: Optional[int] = None,
        max_web: Optional[int] = None,
        persona: str = SYSTEM_PERSONA
    ):
        self.corpus = corpus
        self.pipeline = pipeline
        self.gate = gate
        self.chat_client = chat_client
        self.max_local = max_local if max_local is not None else settings.MAX_LOCAL_PASSAGES
        self.max_web = max_web if max_web is not None else settings.MAX_WEB_SNIPPETS
        self.persona = persona

    async def prepare(self, request: ChatRequest, identity: CallerIdentity) -> PreparedTurn:
        """
        Validate, gate, retrieve and compose

        Raises:
            EmptyQueryError: No effective query
            FreeQuotaExceededError / QuotaExceededError: Over the monthly limit
            BillingUnavailable: Plan could not be resolved
        """
        query = request.effective_query()
        if not query:
            raise EmptyQueryError()

        admission = await self.gate.admit(identity)
        if not admission.allowed:
            if admission.reason == REASON_FREE_LIMIT:
                raise FreeQuotaExceededError()
            raise QuotaExceededError()

        port_hint = self.corpus.infer_port_hint(query)
        retrieval = await self.pipeline.retrieve(query)

        context = build_context_block(
            retrieval.passages, retrieval.web_snippets, self.max_local, self.max_web
        )
        messages = compose_messages(
            self.persona, port_hint, context, request.split_history(), query
        )

        logger.info(
            f"Prepared turn: port_hint={port_hint or '-'}, "
            f"passages={len(retrieval.passages)}, web={len(retrieval.web_snippets)}"
        )

        return PreparedTurn(
            query=query,
            ticket=admission.ticket,
            port_hint=port_hint,
            retrieval=retrieval,
            messages=messages,
        )

    async def answer(self, request: ChatRequest, identity: CallerIdentity) -> ConciergeAnswer:
        """
        Buffered answer: sanitized text plus committed usage

        Raises:
            ConciergeError subclasses; usage is untouched on any failure
                before the answer exists
        """
        turn = await self.prepare(request, identity)
        return await self.complete_turn(turn)

    async def complete_turn(self, turn: PreparedTurn) -> ConciergeAnswer:
        """Model call, sanitize, then commit usage"""
        raw = await self.chat_client.complete(turn.messages)
        text = sanitize_answer(raw)

        usage = await self.gate.commit(turn.ticket)
        return ConciergeAnswer(text=text, turn=turn, usage=usage)

    async def stream_answer(self, turn: PreparedTurn) -> AsyncIterator[str]:
        """
        Open the model stream and return a token iterator.

        The stream is opened (and the first token awaited) before this
        returns, so provider failures still surface as errors instead of a
        broken 200 response. Usage is committed only when the stream ends
        without error; a disconnect or interruption commits nothing.
        """
        tokens = self.chat_client.stream(turn.messages)

        try:
            first = await tokens.__anext__()
        except StopAsyncIteration:
            first = ""
        except ConciergeError:
            raise
        except Exception as e:
            logger.error(f"Model stream failed before the first token: {e}")
            raise ModelUnavailable() from e

        return self._relay(turn, first, tokens)

    async def _relay(self, turn: PreparedTurn, first: str, tokens: AsyncIterator[str]) -> AsyncIterator[str]:
        completed = False
        try:
            if first:
                yield first
            async for token in tokens:
                yield token
            completed = True
        except Exception as e:
            logger.error(f"Streaming interrupted: {e}")
            yield STREAM_INTERRUPTED_NOTICE
        finally:
            await tokens.aclose()

        if completed:
            try:
                await self.gate.commit(turn.ticket)
            except Exception as e:
                logger.error(f"Usage commit after stream failed: {e}")
