"""The demo chatbot's flows fire on the messages they were written for."""
import pytest

from chatcore.engine.conditions import EvaluationContext
from chatcore.engine.flow_interpreter import FlowInterpreter
from chatcore.schemas.chatbot import Flow
from seed_demo_chatbot import FLOWS, KNOWLEDGE_BASE


def matching_flow_id(message):
    flows = [Flow.model_validate(f) for f in FLOWS]
    flow = FlowInterpreter().find_matching_flow(message, flows, EvaluationContext(message=message))
    return flow.id if flow else None


@pytest.mark.parametrize("message", ["hello", "Hey there", "good morning!"])
def test_greeting_flow_triggers(message):
    assert matching_flow_id(message) == "flow_greeting"


def test_email_flow_triggers():
    assert matching_flow_id("me@example.com") == "flow_email"


@pytest.mark.parametrize("entry", KNOWLEDGE_BASE, ids=lambda e: e["id"])
def test_faq_questions_reach_knowledge_base(entry):
    assert matching_flow_id(entry["question"]) is None
