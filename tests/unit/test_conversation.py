"""Unit tests for the conversation controller (fake completion client)."""

import asyncio

import pytest

from lexaid.core.conversation import (
    FALLBACK_RESPONSE,
    ConversationController,
    ConversationState,
    SessionRegistry,
)


def _pairs(controller):
    return [(m.role, m.content) for m in controller.messages]


class TestSubmit:

    def test_success_appends_user_then_assistant(self, make_client):
        client = make_client(["A force majeure clause excuses performance."])
        controller = ConversationController(client)

        reply = asyncio.run(controller.submit("What is a force majeure clause?"))

        assert reply.content == "A force majeure clause excuses performance."
        assert _pairs(controller) == [
            ("user", "What is a force majeure clause?"),
            ("assistant", "A force majeure clause excuses performance."),
        ]
        assert controller.state == ConversationState.IDLE
        assert controller.last_response == reply.content

    def test_input_is_trimmed(self, make_client):
        client = make_client(["ok"])
        controller = ConversationController(client)
        asyncio.run(controller.submit("  hello \n"))
        assert controller.messages[0].content == "hello"
        assert client.calls[0][0] == "hello"

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_input_is_noop(self, text, make_client):
        client = make_client()
        controller = ConversationController(client)
        assert asyncio.run(controller.submit(text)) is None
        assert len(controller.messages) == 0
        assert client.calls == []

    def test_failure_appends_fallback(self, make_client):
        client = make_client(fail=True)
        controller = ConversationController(client)

        asyncio.run(controller.submit("What is a force majeure clause?"))

        assert _pairs(controller) == [
            ("user", "What is a force majeure clause?"),
            ("assistant", "I'm sorry, I encountered an error processing your request. Please try again."),
        ]
        assert controller.last_ok is False
        assert controller.state == ConversationState.IDLE

    def test_fallback_is_identical_across_failures(self, make_client):
        client = make_client(fail=True)
        controller = ConversationController(client)
        asyncio.run(controller.submit("one"))
        asyncio.run(controller.submit("two"))
        replies = [m.content for m in controller.messages if m.role == "assistant"]
        assert replies == [FALLBACK_RESPONSE, FALLBACK_RESPONSE]

    def test_failure_keeps_last_response(self, make_client):
        client = make_client(["first answer"])
        controller = ConversationController(client)
        asyncio.run(controller.submit("q1"))
        client.fail = True
        asyncio.run(controller.submit("q2"))
        assert controller.last_response == "first answer"

    @pytest.mark.parametrize("backend_text", [
        "This is **important**.",
        "Signature: ________\nDate: __/__/____",
        "Section 2 \u2014 \u201cTerm\u201d",
    ])
    def test_stored_reply_equals_backend_text(self, make_client, backend_text):
        client = make_client([backend_text])
        controller = ConversationController(client)
        reply = asyncio.run(controller.submit("q"))
        assert reply.content == backend_text
        assert controller.messages[-1].content == backend_text
        assert controller.last_response == backend_text

    def test_system_prompt_sent(self, make_client):
        client = make_client()
        controller = ConversationController(client)
        asyncio.run(controller.submit("q"))
        assert "legal AI assistant" in client.calls[0][2]


class TestContext:

    def test_first_turn_has_no_context(self, make_client):
        client = make_client()
        controller = ConversationController(client)
        asyncio.run(controller.submit("first"))
        assert client.calls[0][1] is None

    def test_prior_turns_sent_in_order(self, make_client):
        client = make_client(["rA", "rB", "rC"])
        controller = ConversationController(client)

        async def scenario():
            await controller.submit("A")
            await controller.submit("B")
            await controller.submit("C")

        asyncio.run(scenario())
        assert client.calls[2][1] == "user: A\nassistant: rA\nuser: B\nassistant: rB"

    def test_document_context_truncated(self, make_client):
        client = make_client()
        document = "D" * 450 + "E" * 550
        controller = ConversationController(client, document_text=document)

        asyncio.run(controller.submit("Summarize clause 2"))

        context = client.calls[0][1]
        assert context.startswith("system: Context: The user has uploaded a document")
        assert "D" * 450 + "E" * 50 + "..." in context
        assert "E" * 51 not in context
        # The document preamble is request context only, not a transcript entry.
        assert [m.role for m in controller.messages] == ["user", "assistant"]


class TestSingleFlight:

    def test_second_submit_rejected_while_awaiting(self, make_client):
        client = make_client(["answer"])
        controller = ConversationController(client)

        async def scenario():
            client.gate = asyncio.Event()
            first = asyncio.create_task(controller.submit("one"))
            await asyncio.sleep(0)
            assert controller.state == ConversationState.AWAITING_RESPONSE
            assert controller.busy

            rejected = [await controller.submit(t) for t in ("two", "three", "four")]
            assert rejected == [None, None, None]

            client.gate.set()
            return await first

        reply = asyncio.run(scenario())
        assert reply.content == "answer"
        assert len(client.calls) == 1
        assert _pairs(controller) == [("user", "one"), ("assistant", "answer")]

    def test_accepts_again_after_resolution(self, make_client):
        client = make_client(["a1", "a2"])
        controller = ConversationController(client)

        async def scenario():
            await controller.submit("q1")
            await controller.submit("q2")

        asyncio.run(scenario())
        assert len(controller.messages) == 4


class TestClear:

    def test_clear_empties_transcript(self, make_client):
        client = make_client(["a"])
        controller = ConversationController(client)
        asyncio.run(controller.submit("q"))
        controller.clear()
        assert controller.messages == ()
        assert controller.last_response == ""

    def test_late_result_after_clear_is_discarded(self, make_client):
        client = make_client(["late answer"])
        controller = ConversationController(client)

        async def scenario():
            client.gate = asyncio.Event()
            pending = asyncio.create_task(controller.submit("question"))
            await asyncio.sleep(0)
            controller.clear()
            client.gate.set()
            return await pending

        assert asyncio.run(scenario()) is None
        assert controller.messages == ()
        assert controller.state == ConversationState.IDLE

    def test_cancelled_request_releases_flag(self, make_client):
        client = make_client()
        controller = ConversationController(client)

        async def scenario():
            client.gate = asyncio.Event()
            pending = asyncio.create_task(controller.submit("question"))
            await asyncio.sleep(0)
            pending.cancel()
            with pytest.raises(asyncio.CancelledError):
                await pending

        asyncio.run(scenario())
        assert not controller.busy


class TestSubmitStream:

    def _collect(self, controller, text):
        async def scenario():
            return [event async for event in controller.submit_stream(text)]
        return asyncio.run(scenario())

    def test_chunks_then_final(self, make_client):
        client = make_client(["Consideration is required"])
        controller = ConversationController(client)

        events = self._collect(controller, "Is consideration required?")

        chunks = [e.content for e in events if e.type == "chunk"]
        assert "".join(chunks) == "Consideration is required "
        assert events[-1].type == "final"
        assert _pairs(controller) == [
            ("user", "Is consideration required?"),
            ("assistant", "Consideration is required "),
        ]

    def test_failure_yields_fallback(self, make_client):
        client = make_client(fail=True)
        controller = ConversationController(client)

        events = self._collect(controller, "q")

        assert [e.type for e in events] == ["final"]
        assert events[0].content == FALLBACK_RESPONSE
        assert controller.messages[-1].content == FALLBACK_RESPONSE

    def test_empty_submission_yields_rejected(self, make_client):
        client = make_client()
        controller = ConversationController(client)
        events = self._collect(controller, "  ")
        assert [e.type for e in events] == ["rejected"]
        assert client.calls == []

    def test_busy_submission_yields_rejected(self, make_client):
        client = make_client()
        controller = ConversationController(client)

        async def scenario():
            client.gate = asyncio.Event()
            first = asyncio.create_task(controller.submit("first"))
            await asyncio.sleep(0)
            second = [event async for event in controller.submit_stream("second")]
            client.gate.set()
            await first
            return second

        events = asyncio.run(scenario())
        assert [e.type for e in events] == ["rejected"]
        assert [m.content for m in controller.messages if m.role == "user"] == ["first"]


class TestSessionRegistry:

    def test_one_controller_per_session(self, fake_client):
        registry = SessionRegistry(fake_client)
        first = registry.get_or_create("s1")
        assert registry.get_or_create("s1") is first
        assert registry.get_or_create("s2") is not first
        assert len(registry) == 2

    def test_sessions_isolated(self, fake_client):
        registry = SessionRegistry(fake_client)
        asyncio.run(registry.get_or_create("s1").submit("hello"))
        assert len(registry.get_or_create("s2").messages) == 0

    def test_unknown_session(self, fake_client):
        assert SessionRegistry(fake_client).get("missing") is None
