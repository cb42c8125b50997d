"""
Conversation Model: one visitor session talking to one chatbot.

The message log, visitor info, analytics and lead are JSON documents owned
by the engine; only the lookup keys and timestamps are real columns.

Lifecycle:
    1. Created (in memory) on the first message of a session
    2. Saved after every processed message
    3. Ended explicitly (status=ended, ended_at, duration)
"""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.types import JSON

from chatcore.db.base import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    chatbot_id = Column(String(64), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(128), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="active", index=True)  # active | ended | transferred | abandoned
    messages = Column(JSON, nullable=False, default=list)
    visitor_info = Column(JSON, nullable=True, default=dict)
    analytics = Column(JSON, nullable=True, default=dict)
    lead = Column(JSON, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    duration = Column(Integer, nullable=True)  # seconds

    __table_args__ = (
        Index("ix_conversations_chatbot_session", "chatbot_id", "session_id"),
    )

    def __repr__(self):
        return f"<Conversation id={self.id} chatbot={self.chatbot_id} session={self.session_id} status={self.status}>"
