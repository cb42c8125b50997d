"""Pytest configuration and fixtures."""
import sys
import uuid
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

# backend/ on the path so `chatcore` imports without installing
sys.path.insert(0, str(Path(__file__).parent))

from chatcore.db.init_db import init_db  # noqa: E402
from chatcore.db.session import create_db_engine  # noqa: E402
from chatcore.models.chatbot import Chatbot  # noqa: E402
from chatcore.models.user import User  # noqa: E402
from chatcore.schemas.chatbot import ChatbotConfig  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure async backend."""
    return "asyncio"


@pytest.fixture
def db():
    """In-memory SQLite shared by every connection of the test."""
    engine = create_db_engine("sqlite://")
    init_db(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class FakeCompletionClient:
    """Stands in for GroqClient: canned reply, or an exception to raise."""

    def __init__(self, reply=None, error=None, available=True):
        self.reply = reply
        self.error = error
        self.available = available
        self.calls = []

    def is_available(self):
        return self.available

    def complete(self, messages, model=None, temperature=0.7, max_tokens=150):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens})
        if self.error:
            raise self.error
        return self.reply


def chatbot_document(**overrides):
    """A stored chatbot document (camelCase, as authored in the dashboard)."""
    document = {
        "id": uuid.uuid4().hex,
        "userId": "owner-1",
        "name": "Support Bot",
        "isActive": True,
        "config": {"fallbackMessage": "Sorry, I didn't get that."},
        "flows": [],
        "knowledgeBase": [],
        "ai": {"enabled": False},
        "integration": {},
    }
    document.update(overrides)
    return document


def make_chatbot(**overrides) -> ChatbotConfig:
    return ChatbotConfig.model_validate(chatbot_document(**overrides))


@pytest.fixture
def owner(db):
    user = User(email=f"{uuid.uuid4().hex[:8]}@example.com", name="Owner", subscription_tier="pro")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def seed_chatbot(db, owner):
    """Insert a chatbot row for `owner`; keyword args override the stored document."""

    def _seed(**overrides) -> Chatbot:
        document = chatbot_document(**{"userId": owner.id, **overrides})
        row = Chatbot(
            id=document["id"],
            user_id=document["userId"],
            name=document["name"],
            is_active=document["isActive"],
            config=document["config"],
            flows=document["flows"],
            knowledge_base=document["knowledgeBase"],
            ai=document["ai"],
            integration=document["integration"],
        )
        db.add(row)
        db.commit()
        return row

    return _seed
