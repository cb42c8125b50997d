"""
Chatbot Model: configuration read by the engine plus aggregate counters.

Flows, knowledge base, AI and integration settings are stored as the JSON
documents authored in the dashboard; the engine validates them into
chatcore.schemas.chatbot.ChatbotConfig on every message.

total_conversations / total_messages are only ever changed with
UPDATE ... SET col = col + n, never read-modify-write.
"""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from chatcore.db.base import Base


class Chatbot(Base):
    __tablename__ = "chatbots"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    config = Column(JSON, nullable=False, default=dict)  # greeting, fallbackMessage, ...
    flows = Column(JSON, nullable=False, default=list)
    knowledge_base = Column(JSON, nullable=False, default=list)
    ai = Column(JSON, nullable=False, default=dict)
    integration = Column(JSON, nullable=False, default=dict)  # webhookUrl, webhookSecret, rateLimiting

    total_conversations = Column(Integer, nullable=False, default=0)
    total_messages = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", backref="chatbots")
