"""Completion client over a hosted chat model (Groq or Cerebras).

The backend is stateless: callers pass conversation history in with every
request. Each invocation makes exactly one outbound call. Provider SDK retries
are disabled and there is no failover, so a failure here is final for that
request and retrying is the caller's decision.
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator

import structlog
from httpx import TimeoutException
from langchain_cerebras import ChatCerebras
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_groq import ChatGroq

from lexaid.core.config import LLMConfig

logger = structlog.get_logger(__name__)


class CompletionError(Exception):
    """A completion call failed.

    Attributes:
        kind: One of "rejected" (4xx / safety block), "timeout",
            "unavailable" (5xx / network) or "empty" (no text returned).
        detail: Raw provider error text, for logs only.
    """

    def __init__(self, kind: str, detail: str = ""):
        super().__init__(f"{kind}: {detail}" if detail else kind)
        self.kind = kind
        self.detail = detail


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of one completion request: text on success, error otherwise."""
    ok: bool
    text: str = ""
    error: CompletionError | None = None

    @classmethod
    def success(cls, text: str) -> "CompletionResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, error: CompletionError) -> "CompletionResult":
        return cls(ok=False, error=error)


def build_chat_model(config: LLMConfig) -> BaseChatModel:
    """Instantiate the provider chat model described by config.

    Args:
        config: Provider, credential, model and limits.

    Returns:
        A ChatGroq or ChatCerebras instance with SDK retries disabled.
    """
    kwargs = {
        "api_key": config.api_key.get_secret_value(),
        "model": config.model,
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "timeout": config.timeout,
        "max_retries": 0,
    }
    if config.base_url:
        kwargs["base_url"] = config.base_url

    if config.provider == "cerebras":
        return ChatCerebras(**kwargs)
    return ChatGroq(**kwargs)


def compose_prompt(prompt: str, context: str | None = None) -> str:
    """Prepend serialized history to the caller's prompt."""
    if context:
        return f"Previous conversation:\n{context}\n\n{prompt}"
    return prompt


def _message_text(message: BaseMessage) -> str:
    """Flatten message content (plain string or content blocks) to text."""
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _classify(exc: Exception) -> CompletionError:
    """Map a provider/transport exception onto a CompletionError kind."""
    if isinstance(exc, CompletionError):
        return exc
    timeout_types = (TimeoutException, TimeoutError, asyncio.TimeoutError)
    if isinstance(exc, timeout_types) or "Timeout" in type(exc).__name__:
        return CompletionError("timeout", str(exc))

    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if isinstance(status, int) and 400 <= status < 500:
        return CompletionError("rejected", f"({status}) {exc}")

    return CompletionError("unavailable", str(exc))


class CompletionStream:
    """Incremental variant of a completion.

    Async-iterates text chunks as the provider emits them. The sequence is
    finite and can only be consumed once; after exhaustion `text` holds the
    aggregate response. Failures mid-stream raise CompletionError.
    """

    def __init__(self, chunks: AsyncIterator[BaseMessage], timeout: float):
        self._chunks = chunks
        self._timeout = timeout
        self._parts: list[str] = []
        self._started = False
        self.done = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __aiter__(self):
        if self._started:
            raise RuntimeError("CompletionStream can only be iterated once")
        self._started = True
        return self._iterate()

    async def _iterate(self):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        iterator = self._chunks.__aiter__()

        while True:
            remaining = max(deadline - loop.time(), 0)
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                break
            except Exception as e:
                error = _classify(e)
                logger.error("completion.stream_failed", kind=error.kind, error=error.detail)
                raise error from e

            piece = _message_text(chunk)
            if piece:
                self._parts.append(piece)
                yield piece

        self.done = True
        if not self.text.strip():
            raise CompletionError("empty", "stream produced no text")


class CompletionClient:
    """Single-call contract to the text-generation backend."""

    def __init__(self, config: LLMConfig, model: BaseChatModel | None = None):
        self.config = config
        self.model = model if model is not None else build_chat_model(config)

    def is_healthy(self) -> bool:
        """True when a credential is configured for the provider."""
        return self.config.is_configured()

    def _messages(self, prompt: str, system: str | None = None) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))
        return messages

    def _checked_text(self, response: BaseMessage) -> str:
        text = _message_text(response)
        if not text.strip():
            # Safety-blocked generations come back with no content.
            raise CompletionError("empty", "backend returned no text")
        return text

    def generate(self, prompt: str, system: str | None = None) -> str:
        """Send one fully composed prompt and return the response text.

        Args:
            prompt: Final user-turn text, history already attached.
            system: Optional system instruction sent ahead of the prompt.

        Returns:
            The model's response text.

        Raises:
            CompletionError: On rejection, timeout, transport failure or empty output.
        """
        logger.debug("completion.invoke", provider=self.config.provider, model=self.config.model)
        try:
            response = self.model.invoke(self._messages(prompt, system))
        except Exception as e:
            raise _classify(e) from e
        return self._checked_text(response)

    async def agenerate(self, prompt: str, system: str | None = None) -> str:
        """Async generate(), bounded by the configured timeout."""
        logger.debug("completion.ainvoke", provider=self.config.provider, model=self.config.model)
        try:
            response = await asyncio.wait_for(
                self.model.ainvoke(self._messages(prompt, system)),
                timeout=self.config.timeout,
            )
        except Exception as e:
            raise _classify(e) from e
        return self._checked_text(response)

    def complete(
        self, prompt: str, context: str | None = None, system: str | None = None
    ) -> CompletionResult:
        """Run one completion with optional history, never raising on backend failure."""
        try:
            text = self.generate(compose_prompt(prompt, context), system)
        except CompletionError as e:
            logger.error("completion.failed", kind=e.kind, error=e.detail)
            return CompletionResult.failure(e)
        return CompletionResult.success(text)

    async def acomplete(
        self, prompt: str, context: str | None = None, system: str | None = None
    ) -> CompletionResult:
        """Async complete()."""
        try:
            text = await self.agenerate(compose_prompt(prompt, context), system)
        except CompletionError as e:
            logger.error("completion.failed", kind=e.kind, error=e.detail)
            return CompletionResult.failure(e)
        return CompletionResult.success(text)

    def stream(
        self, prompt: str, context: str | None = None, system: str | None = None
    ) -> CompletionStream:
        """Start an incremental completion. Nothing is sent until iteration begins."""
        messages = self._messages(compose_prompt(prompt, context), system)
        return CompletionStream(self.model.astream(messages), timeout=self.config.timeout)
