"""Stage priority: flow → knowledge base → AI → fallback."""
import pytest

from chatcore.ai.responder import AIResponder
from chatcore.engine.flow_interpreter import FlowInterpreter
from chatcore.engine.pipeline import MessageProcessingPipeline
from chatcore.schemas.processing import Stage
from conftest import FakeCompletionClient, make_chatbot

GREETING_FLOW = {
    "id": "greet",
    "name": "Greeting",
    "trigger": {"type": "keyword", "value": "hours"},
    "nodes": [{"id": "n1", "type": "message", "content": {"text": "Hi from the flow"}}],
}

HOURS_ENTRY = {
    "id": "kb_hours",
    "question": "What are your opening hours?",
    "answer": "We are open 9-5 EST.",
    "keywords": ["hours", "open"],
}


def pipeline_with(reply=None, error=None):
    client = FakeCompletionClient(reply=reply, error=error)
    return MessageProcessingPipeline(ai_responder=AIResponder(client=client)), client


@pytest.mark.anyio
async def test_flow_beats_knowledge_base_and_ai():
    pipeline, client = pipeline_with(reply="AI answer")
    chatbot = make_chatbot(flows=[GREETING_FLOW], knowledgeBase=[HOURS_ENTRY], ai={"enabled": True})

    result = await pipeline.process("what are your opening hours", chatbot)

    assert result.stage == Stage.FLOW
    assert result.content == "Hi from the flow"
    assert client.calls == []


@pytest.mark.anyio
async def test_knowledge_base_beats_ai():
    pipeline, client = pipeline_with(reply="AI answer")
    chatbot = make_chatbot(knowledgeBase=[HOURS_ENTRY], ai={"enabled": True})

    result = await pipeline.process("what are your opening hours", chatbot)

    assert result.stage == Stage.KNOWLEDGE_BASE
    assert "9-5 EST" in result.content
    assert client.calls == []


@pytest.mark.anyio
async def test_ai_answers_when_nothing_else_matches():
    pipeline, _ = pipeline_with(reply="AI answer")
    chatbot = make_chatbot(knowledgeBase=[HOURS_ENTRY], ai={"enabled": True})

    result = await pipeline.process("can I pay with crypto", chatbot)

    assert result.stage == Stage.AI
    assert result.content == "AI answer"
    assert result.confidence == 0.7


@pytest.mark.anyio
async def test_fallback_when_nothing_matches():
    pipeline, client = pipeline_with(reply="AI answer")
    chatbot = make_chatbot(config={"fallbackMessage": "No idea, sorry."})

    result = await pipeline.process("can I pay with crypto", chatbot)

    assert result.stage == Stage.FALLBACK
    assert result.content == "No idea, sorry."
    assert result.confidence == 0.1
    assert result.ai_generated is False
    assert client.calls == []  # AI disabled


@pytest.mark.anyio
async def test_ai_failure_with_rules_falls_back():
    pipeline, _ = pipeline_with(error=RuntimeError("provider down"))
    chatbot = make_chatbot(ai={"enabled": True, "fallbackToRules": True})

    result = await pipeline.process("can I pay with crypto", chatbot)

    assert result.stage == Stage.FALLBACK
    assert result.content == "Sorry, I didn't get that."


@pytest.mark.anyio
async def test_failing_stage_is_treated_as_no_match():
    class BrokenInterpreter(FlowInterpreter):
        def process(self, message, flows, context):
            raise KeyError("corrupt flow")

    pipeline = MessageProcessingPipeline(flow_interpreter=BrokenInterpreter())
    chatbot = make_chatbot(flows=[GREETING_FLOW], knowledgeBase=[HOURS_ENTRY])

    result = await pipeline.process("what are your opening hours", chatbot)

    assert result.stage == Stage.KNOWLEDGE_BASE


@pytest.mark.anyio
async def test_processing_time_is_recorded():
    pipeline, _ = pipeline_with()
    result = await pipeline.process("hello", make_chatbot())
    assert result.processing_time >= 0
    assert result.message_metadata()["processingTime"] == result.processing_time
