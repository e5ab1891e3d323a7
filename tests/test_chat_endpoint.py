import base64

import pytest
from fastapi.testclient import TestClient

from fakes import FakeProvider, fatal_error, make_pool, png_bytes, quota_error, transient_error
from infinet_ai.main import app
from infinet_ai.services import replies
from infinet_ai.services.llm.base import GenerationResult
from infinet_ai.services.runtime import get_runtime


@pytest.fixture
def client_for(make_runtime):
    def _client(pool=None):
        runtime = make_runtime(pool)
        app.dependency_overrides[get_runtime] = lambda: runtime
        return TestClient(app), runtime

    yield _client
    app.dependency_overrides.clear()


class TestChatEndpoint:
    def test_reply_and_session_id(self, client_for):
        client, runtime = client_for(make_pool(chat=[FakeProvider("gemini", ["Hello! How can I help you today?"])]))

        response = client.post("/api/ai/chat", json={"message": "hi", "sessionId": "abc"})

        assert response.status_code == 200
        data = response.json()
        assert data["response"] == "Hello! How can I help you today?"
        assert data["sessionId"] == "abc"
        assert "timestamp" in data
        assert "error" not in data

    def test_generates_session_id(self, client_for):
        client, _ = client_for()
        data = client.post("/api/ai/chat", json={"message": "hi"}).json()
        assert data["sessionId"]

    @pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}])
    def test_message_required(self, client_for, body):
        client, _ = client_for()
        response = client.post("/api/ai/chat", json=body)
        assert response.status_code == 400
        assert response.json()["detail"] == "Message is required"

    def test_plain_text_for_widget(self, client_for):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini", ["## Plans\n**Fiber** is fast"])]))
        data = client.post("/api/ai/chat", json={"message": "plans?", "sessionId": "s"}).json()
        assert data["response"] == "Plans\nFiber is fast"

    def test_booking_hint(self, client_for):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini", ["Sure, let's book it."])]))
        data = client.post("/api/ai/chat", json={"message": "I want to book a consultation"}).json()
        assert data["bookingData"] == {"intent": "booking", "type": "consultation"}

    @pytest.mark.parametrize(
        "error,status",
        [(quota_error(), 429), (transient_error("gemini"), 503), (fatal_error(), 500)],
    )
    def test_failure_status_codes(self, client_for, error, status):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini", [error])]))

        response = client.post("/api/ai/chat", json={"message": "hello", "sessionId": "s"})

        assert response.status_code == status
        assert response.json()["response"]
        assert response.json()["error"]

    def test_quota_message(self, client_for):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini", [quota_error()])]))
        data = client.post("/api/ai/chat", json={"message": "hello"}).json()
        assert data["response"] == replies.reply(replies.QUOTA)

    def test_client_history_seeds_new_session(self, client_for):
        provider = FakeProvider("gemini", ["It is $20."])
        client, runtime = client_for(make_pool(chat=[provider]))

        client.post(
            "/api/ai/chat",
            json={
                "message": "and the price?",
                "sessionId": "seeded",
                "conversationHistory": [
                    {"role": "user", "content": "tell me about fiber"},
                    {"role": "assistant", "content": "Fiber is fast."},
                ],
            },
        )

        assert [t.content for t in provider.calls[0].history] == ["tell me about fiber", "Fiber is fast."]

    def test_generated_image_is_returned_inline(self, client_for):
        data = png_bytes()
        painter = FakeProvider("openai", [GenerationResult(model="dall-e-3", image=data)])
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini")], text_to_image=[painter]))

        body = client.post("/api/ai/chat", json={"message": "generate image of a sunset", "sessionId": "s"}).json()

        assert body["response"] == "🎨 Generated: a sunset"
        assert body["image"] == "data:image/png;base64," + base64.b64encode(data).decode("ascii")

    def test_daily_image_limit_follows_client_address(self, client_for):
        painter = FakeProvider("openai", [GenerationResult(model="dall-e-3", image=png_bytes())])
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini")], text_to_image=[painter]))

        codes = [
            client.post("/api/ai/chat", json={"message": "generate image of a sunset"}).status_code
            for _ in range(6)
        ]

        assert codes == [200] * 5 + [429]
        assert len(painter.calls) == 5

    def test_forwarded_addresses_are_counted_separately(self, client_for):
        painter = FakeProvider("openai", [GenerationResult(model="dall-e-3", image=png_bytes())])
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini")], text_to_image=[painter]))
        body = {"message": "generate image of a sunset"}

        for _ in range(5):
            client.post("/api/ai/chat", json=body, headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        blocked = client.post("/api/ai/chat", json=body, headers={"X-Forwarded-For": "203.0.113.9"})
        other = client.post("/api/ai/chat", json=body, headers={"X-Forwarded-For": "198.51.100.4"})

        assert blocked.status_code == 429
        assert other.status_code == 200


class TestHistoryEndpoint:
    def test_returns_stored_turns(self, client_for):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini", ["answer"])]))
        client.post("/api/ai/chat", json={"message": "question", "sessionId": "h1"})

        data = client.get("/api/ai/chat/history", params={"sessionId": "h1"}).json()

        assert [(m["sender"], m["content"]) for m in data["messages"]] == [
            ("user", "question"),
            ("assistant", "answer"),
        ]
        assert data["sessionId"] == "h1"

    def test_limit(self, client_for):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini", ["answer"])]))
        for index in range(3):
            client.post("/api/ai/chat", json={"message": f"q{index}", "sessionId": "h2"})

        data = client.get("/api/ai/chat/history", params={"sessionId": "h2", "limit": 2}).json()

        assert [m["content"] for m in data["messages"]] == ["q2", "answer"]
        assert [m["id"] for m in data["messages"]] == ["msg-4", "msg-5"]

    def test_reset_starts_a_new_session(self, client_for):
        client, runtime = client_for(make_pool(chat=[FakeProvider("gemini", ["answer"])]))
        client.post("/api/ai/chat", json={"message": "question", "sessionId": "h3"})

        data = client.get("/api/ai/chat/history", params={"sessionId": "h3", "reset": "true"}).json()

        assert data["sessionId"] not in (None, "h3")
        assert len(data["messages"]) == 1
        assert data["messages"][0]["sender"] == "assistant"
        assert "InfiNet" in data["messages"][0]["content"]
        assert len(client.get("/api/ai/chat/history", params={"sessionId": "h3"}).json()["messages"]) == 2
        assert client.get("/api/ai/chat/history", params={"sessionId": data["sessionId"]}).json()["messages"] == []

    def test_unknown_session(self, client_for):
        client, _ = client_for()
        assert client.get("/api/ai/chat/history", params={"sessionId": "nobody"}).json()["messages"] == []


class TestHealth:
    def test_reports_capabilities(self, client_for):
        client, _ = client_for(make_pool(chat=[FakeProvider("gemini")]))

        data = client.get("/api/health").json()

        assert data["status"] == "ok"
        assert data["capabilities"] == {
            "chat": True,
            "voice": False,
            "text_to_image": False,
            "image_to_image": False,
        }
        assert data["providers"]["chat"] == ["gemini"]

    def test_degraded_without_chat(self, client_for):
        client, _ = client_for(make_pool())
        assert client.get("/api/health").json()["status"] == "degraded"
