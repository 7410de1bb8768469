"""Shared fixtures for all tests."""

import asyncio

import pytest
from httpx import ConnectError
from langchain_core.messages import AIMessageChunk

from lexaid.core.llm_adapter import CompletionError, CompletionResult, CompletionStream


class FakeCompletionClient:
    """Scripted stand-in for CompletionClient. Records every call."""

    def __init__(self, responses: list[str] | None = None, fail: bool = False):
        self.responses = list(responses or [])
        self.fail = fail
        self.calls: list[tuple[str, str | None, str | None]] = []
        self.gate: asyncio.Event | None = None

    def is_healthy(self) -> bool:
        return True

    def _next(self) -> str:
        return self.responses.pop(0) if self.responses else "ok"

    async def acomplete(self, prompt, context=None, system=None):
        self.calls.append((prompt, context, system))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            return CompletionResult.failure(CompletionError("unavailable", "backend down"))
        return CompletionResult.success(self._next())

    def stream(self, prompt, context=None, system=None):
        self.calls.append((prompt, context, system))
        fail = self.fail
        text = "" if fail else self._next()

        async def chunks():
            if fail:
                raise ConnectError("connection refused")
            for word in text.split(" "):
                yield AIMessageChunk(content=word + " ")

        return CompletionStream(chunks(), timeout=5)


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def nda_text() -> str:
    return (
        "This NDA lasts 2 years. The Receiving Party shall keep all Confidential "
        "Information secret and shall not disclose it to any third party."
    )


@pytest.fixture
def make_client():
    """Factory for scripted clients: make_client(["reply"], fail=False)."""
    return FakeCompletionClient
