# llm/chat_client.py
"""
Chat model client (OpenAI)
Buffered and streamed completions for the Concierge
"""

from typing import AsyncIterator, List, Optional, Sequence
from loguru import logger
from openai import AsyncOpenAI

from ..config import settings
from ..schemas.chat_schemas import ConversationMessage
from ..schemas.errors import ModelUnavailable


def to_openai_messages(messages: Sequence[ConversationMessage]) -> List[dict]:
    return [{"role": m.role, "content": m.content} for m in messages]


class ChatClient:
    """
    Wraps AsyncOpenAI chat completions

    Usage:
        client = ChatClient()
        text = await client.complete(messages)
        async for token in client.stream(messages):
            ...
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None
    ):
        self.model = model or settings.OPENAI_MODEL
        self.temperature = temperature if temperature is not None else settings.MODEL_TEMPERATURE
        self.client = client

        if self.client is None and settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)

        if self.client is not None:
            logger.info(f"✓ LLM Provider: OpenAI ({self.model})")
        else:
            logger.warning("✗ LLM Provider: OPENAI_API_KEY missing, chat will fail")

    @property
    def available(self) -> bool:
        return self.client is not None

    def _require_client(self) -> AsyncOpenAI:
        if self.client is None:
            logger.error("Server is missing OPENAI_API_KEY")
            raise ModelUnavailable()
        return self.client

    async def complete(self, messages: Sequence[ConversationMessage]) -> str:
        """
        Non-streaming completion

        Raises:
            ModelUnavailable: Missing key or provider failure
        """
        client = self._require_client()

        try:
            completion = await client.chat.completions.create(
                model=self.model,
                messages=to_openai_messages(messages),
                temperature=self.temperature,
                stream=False,
            )
        except Exception as e:
            logger.error(f"Model call failed: {e}")
            raise ModelUnavailable() from e

        choices = completion.choices or []
        text = (choices[0].message.content if choices else None) or ""
        logger.debug(f"Model answered with {len(text)} chars")
        return text

    async def stream(self, messages: Sequence[ConversationMessage]) -> AsyncIterator[str]:
        """
        Streaming completion yielding text deltas.

        Opening the stream fails with ModelUnavailable before any token is
        produced; errors after the first token propagate unchanged so the
        caller can mark the answer as interrupted. Closing the generator
        closes the provider connection.
        """
        client = self._require_client()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=to_openai_messages(messages),
                temperature=self.temperature,
                stream=True,
            )
        except Exception as e:
            logger.error(f"Model stream failed to open: {e}")
            raise ModelUnavailable() from e

        try:
            async for part in response:
                if not part.choices:
                    continue
                delta = part.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            await response.close()
