"""
Embedding Service using OpenAI
Batch embeddings for reranking the keyword shortlist
"""

import asyncio
from typing import List, Optional
from loguru import logger
from openai import AsyncOpenAI

from ..config import settings
from ..schemas.errors import EmbeddingUnavailable


class EmbeddingService:
    """
    OpenAI-based embedding service

    Features:
    - One request per batch (query + all candidates)
    - Hard timeout so a slow provider never stalls the chat
    - Failures surface as EmbeddingUnavailable

    Usage:
        embedder = EmbeddingService()
        vectors = await embedder.embed(["taxi in Barcelona", "Barcelona transport ..."])
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.model = model or settings.OPENAI_EMBED_MODEL
        self.timeout = timeout if timeout is not None else settings.EMBEDDING_TIMEOUT
        self.client = client

        if self.client is None and settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, max_retries=0)

        if self.client is not None:
            logger.info(f"Embedding Service initialized: {self.model}")
        else:
            logger.warning("Embedding Service: OPENAI_API_KEY missing, rerank disabled")

    @property
    def available(self) -> bool:
        return self.client is not None

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a batch of texts

        Args:
            texts: Strings to embed

        Returns:
            List[List[float]]: One vector per input, same order

        Raises:
            EmbeddingUnavailable: If unconfigured, slow or failing
        """
        if not self.available:
            raise EmbeddingUnavailable("Embedding provider is not configured")

        if not texts:
            return []

        try:
            response = await asyncio.wait_for(
                self.client.embeddings.create(model=self.model, input=texts),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingUnavailable(f"Embedding call timed out after {self.timeout}s") from e
        except Exception as e:
            raise EmbeddingUnavailable(f"Embedding generation failed: {e}") from e

        # Each result carries the index of its input
        data = sorted(response.data, key=lambda item: item.index)
        vectors = [list(item.embedding) for item in data]

        if len(vectors) != len(texts):
            raise EmbeddingUnavailable(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} inputs"
            )

        logger.debug(f"Generated {len(vectors)} embeddings ({len(vectors[0])} dims)")
        return vectors
