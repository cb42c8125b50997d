"""Knowledge-base ranking."""
import pytest

from chatcore.engine.knowledge_base import KnowledgeBaseRanker
from chatcore.schemas.chatbot import KnowledgeBaseEntry
from chatcore.schemas.processing import Stage


def entry(entry_id, question, answer, keywords=(), **extra):
    return KnowledgeBaseEntry(id=entry_id, question=question, answer=answer, keywords=list(keywords), **extra)


HOURS = entry("hours", "What are your opening hours?", "We are open 9-5 EST.", ["hours", "open", "time"])
SHIPPING = entry("shipping", "How long does shipping take?", "2 business days.", ["shipping", "delivery"])


@pytest.fixture
def ranker():
    return KnowledgeBaseRanker()


def test_opening_hours_question(ranker):
    result = ranker.process("what are your opening hours", [SHIPPING, HOURS])

    assert "9-5 EST" in result.content
    assert result.kb_entry_id == "hours"
    assert result.stage == Stage.KNOWLEDGE_BASE
    assert result.ai_generated is False
    # full question overlap, 2 of 3 keywords
    assert result.confidence == pytest.approx(0.6 + 0.4 * 2 / 3)


def test_score_formula(ranker):
    scored = entry("e", "reset my password", "Use the reset link.", ["password", "login"], confidence=0.5)
    # overlap 2/3 ("reset", "password"), keyword ratio 1/2
    assert ranker.score("how do I reset the password", scored) == pytest.approx((0.6 * 2 / 3 + 0.4 * 0.5) * 0.5)


def test_score_at_or_below_floor_never_wins(ranker):
    below = entry("below", "refund policy", "30 days.", ["refund"], confidence=0.29)
    above = entry("above", "refund policy", "30 days.", ["refund"], confidence=0.31)

    assert ranker.rank("refund policy", [below]) is None
    assert ranker.rank("refund policy", [below, above]).entry.id == "above"


def test_ties_keep_first_entry(ranker):
    first = entry("first", "track my order", "Use the tracking page.")
    second = entry("second", "track my order", "Ask support.")
    assert ranker.rank("track my order", [first, second]).entry.id == "first"


def test_inactive_entries_are_skipped(ranker):
    hidden = entry("hidden", "What are your opening hours?", "Secret.", ["hours"], isActive=False)
    assert ranker.process("what are your opening hours", [hidden]) is None


def test_empty_knowledge_base(ranker):
    assert ranker.process("anything", []) is None


def test_unrelated_message(ranker):
    assert ranker.process("do you sell bicycles", [HOURS, SHIPPING]) is None
