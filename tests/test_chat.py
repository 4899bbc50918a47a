"""Tests for the learning assistant."""

import json

import httpx
import pytest

from app.assistant.chat_engine import DEFAULT_SYSTEM_PROMPT, FALLBACK_REPLY, ChatEngine
from app.core.config import Settings
from app.core.errors import ChatServiceError
from app.schemas.chat import ChatRequest


def completion(content="Photosynthesis turns light into chemical energy."):
    return httpx.Response(200, json={
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 42, "completion_tokens": 9, "total_tokens": 51}
    })


@pytest.fixture
def chat_settings():
    return Settings(CHAT_API_KEY="sk-test", CHAT_API_URL="https://llm.example.com/v1/chat/completions")


class TestChatEngine:

    @pytest.mark.asyncio
    async def test_sends_history_and_default_prompt(self, chat_settings):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            captured["auth"] = request.headers["Authorization"]
            return completion()

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            request = ChatRequest(
                message="What is photosynthesis?",
                history=[
                    {"role": "user", "content": "Hi"},
                    {"role": "assistant", "content": "Hello! What are we studying?"}
                ]
            )
            response = await ChatEngine(http, chat_settings).complete(request)

        assert response.response.startswith("Photosynthesis")
        assert response.usage["total_tokens"] == 51
        assert captured["auth"] == "Bearer sk-test"
        body = captured["body"]
        assert body["model"] == "deepseek-chat"
        assert body["max_tokens"] == 1000
        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]
        assert body["messages"][0]["content"] == DEFAULT_SYSTEM_PROMPT
        assert body["messages"][-1]["content"] == "What is photosynthesis?"

    def test_context_replaces_system_prompt(self, chat_settings):
        engine = ChatEngine(None, chat_settings)
        messages = engine.build_messages(ChatRequest(message="Explain fractions", context="You tutor grade 4 math."))
        assert messages[0] == {"role": "system", "content": "You tutor grade 4 math."}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("upstream", [
        httpx.Response(503),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, text="not json"),
    ])
    async def test_upstream_failures_raise(self, chat_settings, upstream):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: upstream)) as http:
            with pytest.raises(ChatServiceError):
                await ChatEngine(http, chat_settings).complete(ChatRequest(message="Hello"))


class TestChatEndpoint:

    @pytest.mark.asyncio
    async def test_returns_reply(self, client, auth, seed, outbound):
        student_id = await seed.student()
        outbound.responder = lambda request: completion("Sure!")

        response = await client.post("/api/chat", json={"message": "Can you help?"}, headers=auth(student_id))

        assert response.status_code == 200
        assert response.json()["response"] == "Sure!"
        assert response.json()["error"] is False

    @pytest.mark.asyncio
    async def test_upstream_error_returns_fallback(self, client, auth, seed, outbound):
        student_id = await seed.student()
        outbound.responder = lambda request: httpx.Response(500)

        response = await client.post("/api/chat", json={"message": "Can you help?"}, headers=auth(student_id))

        assert response.status_code == 500
        assert response.json()["response"] == FALLBACK_REPLY
        assert response.json()["error"] is True

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, client, auth, seed, outbound):
        student_id = await seed.student()

        response = await client.post("/api/chat", json={"message": ""}, headers=auth(student_id))

        assert response.status_code == 422
        assert outbound.requests == []
