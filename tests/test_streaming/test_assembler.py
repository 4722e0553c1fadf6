"""Tests for the response assembler and client stream protocol."""

import json

import pytest

from conftest import ScriptedModelClient, collect, text_step, tool_step
from tripmate.errors import ModelInvocationError
from tripmate.history import InMemoryHistoryStore
from tripmate.models import Message
from tripmate.orchestration import (
    ExchangeFinished,
    StepOrchestrator,
    StepPolicy,
    StepStarted,
    TextDelta,
    Usage,
)
from tripmate.streaming import DONE, ResponseAssembler, encode_sse
from tripmate.streaming import protocol


class CountingStore(InMemoryHistoryStore):
    """History store that counts writes."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.writes = 0

    async def set(self, conversation_id, messages):
        self.writes += 1
        await super().set(conversation_id, messages)


def _events(model, registry, prior, user_message):
    orchestrator = StepOrchestrator(
        model_client=model,
        registry=registry,
        policy=StepPolicy(available_tools=registry.names()),
        system_prompt="You are TripMate.",
    )
    return orchestrator.run(prior, user_message)


async def _exchange(store, model, registry, user_message, conversation_id="conv-1"):
    prior = await store.get(conversation_id)
    assembler = ResponseAssembler(store, conversation_id)
    return await collect(
        assembler.stream(prior, user_message, _events(model, registry, prior, user_message))
    )


class TestResponseAssembler:
    """Tests for stream() ordering and commit semantics."""

    @pytest.mark.asyncio
    async def test_part_order(self, registry, nairobi_model, user_message):
        parts = await _exchange(CountingStore(), nairobi_model, registry, user_message)

        assert [p["type"] for p in parts] == [
            "start",
            "start-step",
            "tool-call",
            "tool-result",
            "finish-step",
            "start-step",
            "text",
            "finish-step",
            "finish",
        ]
        assert parts[0] == {"type": "start", "conversationId": "conv-1"}
        assert parts[-1]["usage"] == {"promptTokens": 20, "completionTokens": 20, "totalTokens": 40}

    @pytest.mark.asyncio
    async def test_steps_never_interleave(self, registry, nairobi_model, user_message):
        parts = await _exchange(CountingStore(), nairobi_model, registry, user_message)
        steps = [p["step"] for p in parts if "step" in p]
        assert steps == sorted(steps)

    @pytest.mark.asyncio
    async def test_commits_once_on_success(self, registry, nairobi_model, user_message):
        store = CountingStore()
        await _exchange(store, nairobi_model, registry, user_message)

        assert store.writes == 1
        stored = await store.get("conv-1")
        assert [m.role for m in stored] == ["user", "assistant"]
        assert stored[0] == user_message

    @pytest.mark.asyncio
    async def test_appends_to_prior_history(self, registry, user_message):
        store = CountingStore()
        await store.set("conv-1", [Message.user("plan a trip"), Message.user("to Kenya")])

        model = ScriptedModelClient([text_step("Sure.")])
        await _exchange(store, model, registry, user_message)

        stored = await store.get("conv-1")
        assert [m.text for m in stored[:3]] == ["plan a trip", "to Kenya", "weather in Nairobi"]
        assert len(stored) == 4

    @pytest.mark.asyncio
    async def test_failure_after_step_two_commits_nothing(self, registry, user_message):
        store = CountingStore()
        model = ScriptedModelClient(
            [
                tool_step(("call_1", "weather", {"location": "Nairobi"})),
                tool_step(("call_2", "weather", {"location": "Mombasa"})),
                [ModelInvocationError("gateway unavailable")],
            ]
        )
        parts = await _exchange(store, model, registry, user_message)

        assert parts[-1] == {"type": "error", "errorText": protocol.GENERIC_MODEL_ERROR}
        assert store.writes == 0
        assert await store.get("conv-1") == ()

    @pytest.mark.asyncio
    async def test_unexpected_error_gets_generic_message(self, registry, user_message):
        store = CountingStore()
        model = ScriptedModelClient([[RuntimeError("bug")]])
        parts = await _exchange(store, model, registry, user_message)

        assert parts[-1] == {"type": "error", "errorText": protocol.GENERIC_ERROR}
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_cancellation_commits_nothing(self, registry, nairobi_model, user_message):
        store = CountingStore()
        assembler = ResponseAssembler(store, "conv-1")
        stream = assembler.stream((), user_message, _events(nairobi_model, registry, (), user_message))

        async for part in stream:
            if part["type"] == "tool-call":
                break
        await stream.aclose()

        assert store.writes == 0
        assert assembler.committed is False
        assert nairobi_model.closed_streams == 1

    @pytest.mark.asyncio
    async def test_out_of_order_events_rejected(self, user_message):
        async def bad_events():
            yield TextDelta(step=0, text="too early")
            yield ExchangeFinished(messages=(), usage=Usage(), steps=1)

        store = CountingStore()
        parts = await collect(ResponseAssembler(store, "c").stream((), user_message, bad_events()))

        assert parts[-1]["type"] == "error"
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_unfinished_step_rejected(self, user_message):
        async def bad_events():
            yield StepStarted(step=0, tool_choice="auto", active_tools=())
            yield ExchangeFinished(messages=(), usage=Usage(), steps=1)

        store = CountingStore()
        parts = await collect(ResponseAssembler(store, "c").stream((), user_message, bad_events()))

        assert parts[-1]["type"] == "error"
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_missing_exchange_finished_rejected(self, user_message):
        async def no_events():
            return
            yield

        store = CountingStore()
        parts = await collect(ResponseAssembler(store, "c").stream((), user_message, no_events()))

        assert [p["type"] for p in parts] == ["start", "error"]
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_compacts_after_commit(self, registry, user_message):
        store = CountingStore(compact_threshold=2)
        await store.set("old", [Message.user("a")])
        await store.set("older", [Message.user("b")])

        await _exchange(store, ScriptedModelClient([text_step("ok")]), registry, user_message)

        assert "old" not in store
        assert "conv-1" in store

    @pytest.mark.asyncio
    async def test_same_conversation_race_last_writer_wins(self, registry):
        """
        Overlapping exchanges on one id both read the same prior history.
        The second commit overwrites the first (known lost update).
        """
        store = CountingStore()
        first_user = Message.user("weather in Lagos")
        second_user = Message.user("packing for a beach trip")

        prior_a = await store.get("shared")
        prior_b = await store.get("shared")

        await collect(
            ResponseAssembler(store, "shared").stream(
                prior_a, first_user, _events(ScriptedModelClient([text_step("Sunny.")]), registry, prior_a, first_user)
            )
        )
        await collect(
            ResponseAssembler(store, "shared").stream(
                prior_b, second_user, _events(ScriptedModelClient([text_step("Sandals.")]), registry, prior_b, second_user)
            )
        )

        stored = await store.get("shared")
        assert store.writes == 2
        assert [m.text for m in stored] == ["packing for a beach trip", "Sandals."]


class TestProtocol:
    """Tests for SSE framing."""

    def test_encode_sse(self):
        frame = encode_sse(protocol.text_part(0, "Hi"))
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {"type": "text", "step": 0, "text": "Hi"}

    def test_done_marker(self):
        assert DONE == "data: [DONE]\n\n"

    def test_finish_without_usage(self):
        assert protocol.finish_part("c") == {"type": "finish", "conversationId": "c"}
