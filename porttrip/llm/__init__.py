# llm/__init__.py
"""
LLM Components Package

- chat_client: OpenAI chat completions (buffered and streamed)
- embeddings: OpenAI embeddings for rerank
- prompts: Persona, grounding rules and context block
- sanitizer: Answer formatting cleanup
"""

from .chat_client import ChatClient
from .embeddings import EmbeddingService
from .prompts import SYSTEM_PERSONA, build_context_block, compose_messages
from .sanitizer import sanitize_answer

__all__ = [
    "ChatClient",
    "EmbeddingService",
    "SYSTEM_PERSONA",
    "build_context_block",
    "compose_messages",
    "sanitize_answer"
]
