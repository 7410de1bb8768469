"""Conversation controller.

Owns one transcript and at most one outstanding completion request.
Submissions while a request is pending are rejected, not queued. Results that
come back after the transcript was cleared are dropped.
"""

import enum
from dataclasses import dataclass
from typing import AsyncIterator, Literal

import structlog

from lexaid.api.schemas import MessageRecord
from lexaid.core.context_builder import DOCUMENT_CONTEXT_CHARS, build_history_context
from lexaid.core.llm_adapter import CompletionClient, CompletionError, CompletionResult
from lexaid.core.transcript import Transcript
from lexaid.workflows.prompts import build_chat_system_prompt

logger = structlog.get_logger(__name__)

FALLBACK_RESPONSE = "I'm sorry, I encountered an error processing your request. Please try again."


class ConversationState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


@dataclass(frozen=True)
class ChatEvent:
    """One step of a streamed reply: a text chunk, the final stored text, a drop or a refusal."""
    type: Literal["chunk", "final", "discarded", "rejected"]
    content: str = ""


class ConversationController:
    """Turns user submissions into transcript entries via the completion client.

    Args:
        client: Completion client used for every request.
        document_text: Optional uploaded document injected as context.
        document_limit: Max characters of the document sent as context.
        system_prompt: System instruction; defaults to the legal assistant prompt.
    """

    def __init__(
        self,
        client: CompletionClient,
        document_text: str | None = None,
        document_limit: int = DOCUMENT_CONTEXT_CHARS,
        system_prompt: str | None = None,
    ):
        self.client = client
        self.transcript = Transcript()
        self.document_text = document_text
        self.document_limit = document_limit
        self.system_prompt = system_prompt or build_chat_system_prompt()
        self.last_response = ""
        self.last_ok: bool | None = None
        self._awaiting = False

    @property
    def state(self) -> ConversationState:
        if self._awaiting:
            return ConversationState.AWAITING_RESPONSE
        return ConversationState.IDLE

    @property
    def busy(self) -> bool:
        return self._awaiting

    @property
    def messages(self) -> tuple[MessageRecord, ...]:
        return self.transcript.snapshot()

    def clear(self) -> None:
        """Empty the transcript. An in-flight request keeps running but its result is dropped."""
        self.transcript.clear()
        self.last_response = ""
        logger.info("conversation.cleared", generation=self.transcript.generation,
                    in_flight=self._awaiting)

    def _begin(self, text: str) -> tuple[str, str | None, int] | None:
        """Validate a submission, append the user turn and enter AwaitingResponse."""
        cleaned = (text or "").strip()
        if not cleaned:
            logger.info("conversation.submit_rejected", reason="empty")
            return None
        if self._awaiting:
            logger.info("conversation.submit_rejected", reason="busy")
            return None

        context = build_history_context(
            self.transcript.snapshot(), self.document_text, self.document_limit
        )
        self.transcript.add("user", cleaned)
        self._awaiting = True
        logger.info("conversation.submit", msg_len=len(cleaned), turns=len(self.transcript))
        return cleaned, context, self.transcript.generation

    def _finish(self, result: CompletionResult, generation: int) -> MessageRecord | None:
        """Leave AwaitingResponse and record the outcome unless the transcript was cleared."""
        self._awaiting = False

        if generation != self.transcript.generation:
            logger.info("conversation.late_result_discarded", ok=result.ok)
            return None

        self.last_ok = result.ok
        if result.ok:
            text = result.text
            self.last_response = text
        else:
            logger.error("conversation.backend_failed", kind=result.error.kind,
                         error=result.error.detail)
            text = FALLBACK_RESPONSE

        return self.transcript.add("assistant", text)

    async def submit(self, text: str) -> MessageRecord | None:
        """Send one user message and wait for the reply.

        Args:
            text: Raw user input; surrounding whitespace is trimmed.

        Returns:
            The assistant message appended to the transcript, or None when the
            submission was rejected (empty or busy) or its result was discarded.
        """
        pending = self._begin(text)
        if pending is None:
            return None
        prompt, context, generation = pending

        result = None
        try:
            result = await self.client.acomplete(prompt, context=context, system=self.system_prompt)
        finally:
            if result is None:
                # Cancelled mid-flight; release the single-flight flag.
                self._awaiting = False
        return self._finish(result, generation)

    async def submit_stream(self, text: str) -> AsyncIterator[ChatEvent]:
        """Streamed submit(): yields chunk events, then one final or discarded event.

        A rejected submission (empty or busy) yields a single rejected event.
        If the consumer stops early the turn is closed with the fallback reply.
        """
        pending = self._begin(text)
        if pending is None:
            yield ChatEvent("rejected")
            return
        prompt, context, generation = pending

        stream = self.client.stream(prompt, context=context, system=self.system_prompt)
        outcome = CompletionResult.failure(
            CompletionError("unavailable", "stream closed before completion")
        )
        try:
            async for piece in stream:
                yield ChatEvent("chunk", piece)
            outcome = CompletionResult.success(stream.text)
        except CompletionError as e:
            outcome = CompletionResult.failure(e)
        finally:
            message = self._finish(outcome, generation)

        if message is None:
            yield ChatEvent("discarded")
        else:
            yield ChatEvent("final", message.content)


class SessionRegistry:
    """One in-memory conversation per client session id."""

    def __init__(self, client: CompletionClient, document_limit: int = DOCUMENT_CONTEXT_CHARS):
        self.client = client
        self.document_limit = document_limit
        self._sessions: dict[str, ConversationController] = {}

    def get(self, session_id: str) -> ConversationController | None:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> ConversationController:
        controller = self._sessions.get(session_id)
        if controller is None:
            controller = ConversationController(self.client, document_limit=self.document_limit)
            self._sessions[session_id] = controller
            logger.info("session.created", session_id=session_id)
        return controller

    def __len__(self) -> int:
        return len(self._sessions)
