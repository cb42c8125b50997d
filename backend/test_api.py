"""HTTP surface: status codes and payload shapes the widget relies on."""
import pytest
from fastapi.testclient import TestClient

from chatcore.api.deps import get_conversation_session, get_db
from chatcore.engine.session import ConversationSession
from chatcore.services.conversation_store import SqlConversationStore
from chatcore.main import app

HOURS_ENTRY = {
    "id": "kb_hours",
    "question": "What are your opening hours?",
    "answer": "We are open 9-5 EST.",
    "keywords": ["hours", "open"],
}


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def send(client, chatbot_id, message, session_id="visitor-1", **extra):
    return client.post(
        "/conversations/message",
        json={"chatbotId": chatbot_id, "sessionId": session_id, "message": message, **extra},
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_message_success_shape(client, seed_chatbot):
    bot = seed_chatbot(knowledgeBase=[HOURS_ENTRY])

    response = send(client, bot.id, "what are your opening hours")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["sessionId"] == "visitor-1"
    assert body["conversationId"]
    assert body["message"]["type"] == "bot"
    assert "9-5 EST" in body["message"]["content"]
    assert body["message"]["metadata"]["kbEntryId"] == "kb_hours"
    assert body["metadata"]["isNewConversation"] is True
    assert body["metadata"]["messageCount"] == 2
    assert body["metadata"]["processingTime"] >= 0


def test_second_message_same_conversation(client, seed_chatbot):
    bot = seed_chatbot()

    first = send(client, bot.id, "hello").json()
    second = send(client, bot.id, "hello?").json()

    assert second["conversationId"] == first["conversationId"]
    assert second["metadata"]["messageCount"] == 4


def test_missing_fields_is_400(client):
    response = client.post("/conversations/message", json={"chatbotId": "x", "message": "hi"})
    assert response.status_code == 400


@pytest.mark.parametrize("body", [
    {"chatbotId": "x", "sessionId": "s", "message": None},
    {"chatbotId": 123, "sessionId": "s", "message": "hi"},
    {"chatbotId": "x", "sessionId": ["s"], "message": "hi"},
])
def test_null_or_non_string_fields_are_400(client, body):
    response = client.post("/conversations/message", json=body)

    assert response.status_code == 400
    assert "Missing required fields" in response.json()["detail"]


def test_unknown_chatbot_is_404(client):
    assert send(client, "missing", "hello").status_code == 404


def test_inactive_chatbot_is_403(client, seed_chatbot):
    bot = seed_chatbot(isActive=False)
    response = send(client, bot.id, "hello")

    assert response.status_code == 403
    assert response.json()["detail"] == "Chatbot is inactive"


def test_rate_limit_is_429_with_retry_after(client, seed_chatbot):
    bot = seed_chatbot(integration={"rateLimiting": {"enabled": True, "requestsPerMinute": 1}})

    assert send(client, bot.id, "hello").status_code == 200
    response = send(client, bot.id, "hello again")

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    assert response.json()["detail"]["error"] == "Rate limit exceeded"


def test_monthly_cap_is_403(client, seed_chatbot, db, owner):
    owner.subscription_tier = "free"
    owner.monthly_messages = 100
    db.commit()
    bot = seed_chatbot()

    response = send(client, bot.id, "hello")

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "Monthly message limit exceeded"


def test_end_conversation(client, seed_chatbot):
    bot = seed_chatbot()
    conversation_id = send(client, bot.id, "hello").json()["conversationId"]

    response = client.post(f"/conversations/{conversation_id}/end")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ended"
    assert body["conversationId"] == conversation_id
    assert body["duration"] >= 0

    # the visitor's next message opens a new conversation
    assert send(client, bot.id, "hello").json()["conversationId"] != conversation_id


def test_end_unknown_conversation_is_404(client):
    assert client.post("/conversations/missing/end").status_code == 404


class BrokenLookupStore(SqlConversationStore):
    def get_conversation(self, conversation_id):
        raise RuntimeError("connection reset")


def test_end_conversation_unexpected_error_is_500(client, db):
    app.dependency_overrides[get_conversation_session] = lambda: ConversationSession(store=BrokenLookupStore(db))

    response = client.post("/conversations/some-id/end")

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to process message"
