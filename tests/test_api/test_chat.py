"""Tests for the chat streaming and conversation endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedModelClient, text_step
from tripmate.api.main import create_app
from tripmate.errors import ModelInvocationError
from tripmate.models.config import DEFAULT_REDIRECT_MESSAGES
from tripmate.orchestration import ToolChoice
from tripmate.streaming import protocol


def _body(text="weather in Nairobi", conversation_id=None):
    body = {
        "messages": [
            {"id": "m1", "role": "user", "parts": [{"type": "text", "text": text}]}
        ]
    }
    if conversation_id:
        body["conversationId"] = conversation_id
    return body


def _parts(response) -> list:
    """Decode SSE frames, checking the stream ends with [DONE]."""
    frames = [f for f in response.text.split("\n\n") if f]
    assert frames[-1] == "data: [DONE]"
    parts = []
    for frame in frames[:-1]:
        assert frame.startswith("data: ")
        parts.append(json.loads(frame[len("data: "):]))
    return parts


@pytest.fixture
def make_client(app_config, history_store, registry, guardrail):
    def _make(model=None):
        app = create_app(
            app_config=app_config,
            model_client=model,
            history_store=history_store,
            registry=registry,
            guardrail=guardrail,
        )
        return TestClient(app)

    return _make


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_missing_credentials_returns_503(self, make_client):
        response = make_client(model=None).post("/api/chat", json=_body())
        assert response.status_code == 503
        assert response.json() == {"error": "API configuration error"}

    def test_empty_body_returns_400(self, make_client, nairobi_model):
        response = make_client(nairobi_model).post("/api/chat", json={})
        assert response.status_code == 400

    def test_empty_messages_returns_400(self, make_client, nairobi_model):
        response = make_client(nairobi_model).post("/api/chat", json={"messages": []})
        assert response.status_code == 400

    def test_malformed_json_returns_400(self, make_client, nairobi_model):
        response = make_client(nairobi_model).post(
            "/api/chat",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400

    def test_no_user_message_returns_400(self, make_client, nairobi_model):
        body = {"messages": [{"role": "assistant", "parts": [{"type": "text", "text": "Hi"}]}]}
        response = make_client(nairobi_model).post("/api/chat", json=body)
        assert response.status_code == 400
        assert nairobi_model.calls == []

    def test_unknown_part_type_returns_400(self, make_client, nairobi_model):
        body = {"messages": [{"role": "user", "parts": [{"type": "video", "url": "x"}]}]}
        response = make_client(nairobi_model).post("/api/chat", json=body)
        assert response.status_code == 400

    def test_user_message_without_parts_returns_400(self, make_client, nairobi_model):
        body = {"messages": [{"role": "user", "parts": []}]}
        response = make_client(nairobi_model).post("/api/chat", json=body)
        assert response.status_code == 400

    def test_stream_framing_and_header(self, make_client, nairobi_model):
        response = make_client(nairobi_model).post("/api/chat", json=_body())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        parts = _parts(response)
        conversation_id = response.headers["x-conversation-id"]
        assert parts[0] == {"type": "start", "conversationId": conversation_id}
        assert parts[-1]["type"] == "finish"
        assert parts[-1]["conversationId"] == conversation_id

    def test_weather_exchange_end_to_end(self, make_client, nairobi_model):
        client = make_client(nairobi_model)
        response = client.post("/api/chat", json=_body(conversation_id="trip-1"))

        parts = _parts(response)
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
        tool_result = parts[3]
        assert tool_result["toolName"] == "weather"
        assert tool_result["output"]["city"] == "Nairobi"
        assert nairobi_model.calls[0]["tool_choice"] == ToolChoice.forced("weather")

        history = client.get("/api/conversations/trip-1").json()
        assert history["conversationId"] == "trip-1"
        assert [m["role"] for m in history["messages"]] == ["user", "assistant"]
        assistant_parts = history["messages"][1]["parts"]
        assert [p["type"] for p in assistant_parts] == ["tool-call", "tool-result", "text"]
        assert assistant_parts[0]["toolCallId"] == "call_1"

    def test_follow_up_sees_prior_history(self, make_client):
        model = ScriptedModelClient([text_step("Lisbon is great."), text_step("Pack a jacket.")])
        client = make_client(model)

        client.post("/api/chat", json=_body("plan a trip to Lisbon", "trip-2"))
        client.post("/api/chat", json=_body("what should I pack?", "trip-2"))

        second_call = model.calls[1]["messages"]
        assert [m.text for m in second_call] == [
            "plan a trip to Lisbon",
            "Lisbon is great.",
            "what should I pack?",
        ]
        history = client.get("/api/conversations/trip-2").json()
        assert len(history["messages"]) == 4

    def test_off_topic_turn_redirected(self, make_client, nairobi_model):
        client = make_client(nairobi_model)
        response = client.post("/api/chat", json=_body("Tell me about taxes", "misc"))

        parts = _parts(response)
        text = next(p for p in parts if p["type"] == "text")
        assert text["text"] == DEFAULT_REDIRECT_MESSAGES[0]
        assert parts[-1]["type"] == "finish"
        assert nairobi_model.calls == []
        assert client.get("/api/conversations/misc").json()["messages"] == []

    def test_model_failure_streams_error_and_commits_nothing(self, make_client):
        model = ScriptedModelClient([[ModelInvocationError("gateway down")]])
        client = make_client(model)

        parts = _parts(client.post("/api/chat", json=_body(conversation_id="broken")))

        assert parts[-1] == {"type": "error", "errorText": protocol.GENERIC_MODEL_ERROR}
        assert "gateway down" not in json.dumps(parts)
        assert client.get("/api/conversations/broken").json()["messages"] == []

    def test_new_conversation_id_generated(self, make_client):
        client = make_client(ScriptedModelClient())
        first = client.post("/api/chat", json=_body("trip ideas"))
        second = client.post("/api/chat", json=_body("trip ideas"))
        assert first.headers["x-conversation-id"] != second.headers["x-conversation-id"]


class TestConversationEndpoint:
    """Tests for GET /api/conversations/{id}."""

    def test_unknown_conversation_is_empty(self, make_client):
        response = make_client().get("/api/conversations/nope")
        assert response.status_code == 200
        assert response.json() == {"conversationId": "nope", "messages": []}
