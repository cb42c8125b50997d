"""AI stage: reply, failure policy and prompt assembly (no network)."""
import time

import pytest

from chatcore.ai.prompts import HISTORY_WINDOW, build_messages
from chatcore.ai.responder import APOLOGY_MESSAGE, AIResponder
from chatcore.schemas.chatbot import AIConfig
from chatcore.schemas.conversation import Conversation, Message
from chatcore.schemas.processing import Stage
from conftest import FakeCompletionClient


class SlowClient(FakeCompletionClient):
    def complete(self, messages, model=None, temperature=0.7, max_tokens=150):
        time.sleep(0.5)
        return "too late"


@pytest.mark.anyio
async def test_disabled_ai_is_skipped():
    client = FakeCompletionClient(reply="hello")
    result = await AIResponder(client=client).generate("hi", AIConfig(enabled=False))

    assert result is None
    assert client.calls == []


@pytest.mark.anyio
async def test_successful_reply():
    client = FakeCompletionClient(reply="We ship worldwide.")
    config = AIConfig(enabled=True, model="llama-3.1-8b-instant", temperature=0.2, max_tokens=80)

    result = await AIResponder(client=client).generate("Do you ship abroad?", config)

    assert result.content == "We ship worldwide."
    assert result.confidence == 0.7
    assert result.ai_generated is True
    assert result.stage == Stage.AI
    assert client.calls[0]["model"] == "llama-3.1-8b-instant"
    assert client.calls[0]["temperature"] == 0.2
    assert client.calls[0]["max_tokens"] == 80


@pytest.mark.anyio
@pytest.mark.parametrize("client", [
    FakeCompletionClient(error=RuntimeError("upstream 502")),
    FakeCompletionClient(reply=None),
    FakeCompletionClient(reply="unused", available=False),
])
async def test_failure_defers_to_rules(client):
    result = await AIResponder(client=client).generate("hi", AIConfig(enabled=True, fallback_to_rules=True))
    assert result is None


@pytest.mark.anyio
async def test_failure_without_rules_apologises():
    client = FakeCompletionClient(error=RuntimeError("boom"))
    result = await AIResponder(client=client).generate("hi", AIConfig(enabled=True, fallbackToRules=False))

    assert result.content == APOLOGY_MESSAGE
    assert result.confidence == 0.3
    assert result.ai_generated is True


@pytest.mark.anyio
async def test_timeout_is_a_failure():
    responder = AIResponder(client=SlowClient(), timeout=0.05)

    deferred = await responder.generate("hi", AIConfig(enabled=True))
    apology = await responder.generate("hi", AIConfig(enabled=True, fallback_to_rules=False))

    assert deferred is None
    assert apology.content == APOLOGY_MESSAGE


def test_prompt_replays_recent_history_once():
    messages = []
    for i in range(5):
        messages.append(Message(id=f"u{i}", type="user", content=f"question {i}"))
        messages.append(Message(id=f"b{i}", type="bot", content=f"answer {i}"))
    messages.append(Message(id="current", type="user", content="latest question"))
    conversation = Conversation(id="c", chatbot_id="b", session_id="s", messages=messages)

    prompt = build_messages("latest question", conversation, "You sell shoes.")

    assert prompt[0]["role"] == "system"
    assert prompt[0]["content"].startswith("You sell shoes.")
    history = prompt[1:-1]
    assert len(history) == HISTORY_WINDOW
    assert history[-1] == {"role": "assistant", "content": "answer 4"}
    assert prompt[-1] == {"role": "user", "content": "latest question"}
    assert sum(1 for m in prompt if m["content"] == "latest question") == 1


def test_prompt_without_conversation_uses_default_system_prompt():
    prompt = build_messages("hi")
    assert len(prompt) == 2
    assert "customer support assistant" in prompt[0]["content"]
