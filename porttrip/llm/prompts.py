# llm/prompts.py
"""
Prompt building for the PortTrip Concierge
Static persona + port hint + CONTEXT block + history + user turn
"""

from typing import Sequence
from loguru import logger

from ..interfaces.corpus_store import PortSnippet
from ..interfaces.web_search import WebSnippet
from ..schemas.chat_schemas import ConversationMessage

# ============================================
# Persona
# ============================================

SYSTEM_PERSONA = (
    "You are PortTrip Concierge, the go-to AI for cruise travelers. "
    "Write naturally and conversationally: short, dense paragraphs; compact lists only when they help. Avoid filler. "
    "Never assume the port; if unclear, ask one brief clarifying question first. "
    "Be specific for cruisers: where shuttles drop, taxi vs metro with typical fares and minutes, "
    "walking time from the terminal, ticket costs and whether to prebook, queue hot spots and how to avoid them, "
    "mobility/family alternatives, and a realistic back-to-ship buffer. "
    "Prefer grounded facts from CONTEXT; use WEB only if local info is missing or likely outdated. "
    "Cite sources by name (no raw URLs). "
    "Formatting: single line breaks only; numbered lists must count 1,2,3 without resets; "
    "headings should not be numbered. "
    "If information varies (hours, strikes, shuttles), say so briefly and state how to verify at the port."
)

GROUNDING_RULES = (
    "Provide dense, helpful answers. Resist generic filler. Keep paragraphs short. "
    "Always include a realistic back-to-ship buffer."
)

PORT_HINT_TEMPLATE = (
    "Port hint from user text: {port}. "
    "This is a guess from a name match; if the question does not fit this port, confirm it first."
)

NO_PORT_HINT = (
    "No clear port detected. Ask one brief question to confirm the port before recommending plans."
)


# ============================================
# Context block
# ============================================

def build_context_block(
    local: Sequence[PortSnippet],
    web: Sequence[WebSnippet],
    max_local: int,
    max_web: int
) -> str:
    """
    Render local passages and web snippets for the model

    Example:
        CONTEXT:
        • [LOCAL 1 | Barcelona | transport] Taxi to Sagrada Família ~€12–15

        WEB:
        • [WEB 1] Port news — Ferry strike Monday (https://example.com)
    """
    local_lines = [
        f"• [LOCAL {i} | {record.port} | {record.category}] {record.snippet_text}"
        for i, record in enumerate(local[:max_local], start=1)
    ]
    web_lines = [
        f"• [WEB {i}] {item.title} — {item.snippet} ({item.url})"
        for i, item in enumerate(web[:max_web], start=1)
    ]

    block = "CONTEXT:\n" + ("\n".join(local_lines) or "(no local)")
    if web_lines:
        block += "\n\nWEB:\n" + "\n".join(web_lines)
    return block


# ============================================
# Message composition
# ============================================

def compose_messages(
    persona: str,
    port_hint: str,
    context_block: str,
    history: Sequence[ConversationMessage],
    user_query: str
) -> list:
    """
    Build the ordered message list for the model

    Order is fixed: persona, port hint, grounding rules, context,
    the prior history untouched, then the user turn. History must not
    already contain the pending user turn.

    Returns:
        List[ConversationMessage]
    """
    if port_hint:
        hint = PORT_HINT_TEMPLATE.format(port=port_hint)
    else:
        hint = NO_PORT_HINT

    messages = [
        ConversationMessage(role="system", content=persona),
        ConversationMessage(role="system", content=hint),
        ConversationMessage(role="system", content=GROUNDING_RULES),
        ConversationMessage(role="system", content=context_block),
    ]
    messages.extend(history)
    messages.append(ConversationMessage(role="user", content=user_query))

    logger.debug(
        f"Composed {len(messages)} messages (history={len(history)}, "
        f"port_hint={port_hint or '-'})"
    )
    return messages
