"""History and document context assembly for completion requests.

The backend keeps no state between calls, so every chat request carries the
prior transcript serialized as plain "<role>: <content>" lines.
"""

from collections.abc import Iterable

import structlog

from lexaid.api.schemas import MessageRecord

logger = structlog.get_logger(__name__)

DOCUMENT_CONTEXT_CHARS = 500


def serialize_history(messages: Iterable[MessageRecord]) -> str:
    """Encode messages as newline-joined "<role>: <content>" lines.

    Order is preserved exactly (oldest first); nothing is dropped or merged.

    Args:
        messages: Transcript entries in chronological order.

    Returns:
        Serialized history, or "" when there are no messages.
    """
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


def document_preamble(document_text: str, limit: int = DOCUMENT_CONTEXT_CHARS) -> str:
    """Fixed system context describing an uploaded document, truncated to `limit` chars."""
    excerpt = document_text[:limit]
    return f"Context: The user has uploaded a document with the following text:\n{excerpt}...\n"


def build_history_context(
    messages: Iterable[MessageRecord],
    document_text: str | None = None,
    document_limit: int = DOCUMENT_CONTEXT_CHARS,
) -> str | None:
    """Assemble the context blob for a chat request.

    Args:
        messages: Prior transcript entries (the pending user turn excluded).
        document_text: Optional uploaded document to describe up front.
        document_limit: Max characters of document text to include.

    Returns:
        Context string, or None when there is neither history nor a document.
    """
    turns = list(messages)
    if document_text and document_text.strip():
        preamble = MessageRecord(role="system", content=document_preamble(document_text, document_limit))
        turns.insert(0, preamble)

    if not turns:
        return None

    context = serialize_history(turns)
    logger.debug("context.built", turns=len(turns), chars=len(context))
    return context
