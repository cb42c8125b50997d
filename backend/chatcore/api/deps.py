"""FastAPI dependencies: DB session, conversation store and the engine session."""
from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from chatcore.db.session import SessionLocal
from chatcore.engine.pipeline import MessageProcessingPipeline
from chatcore.engine.session import ConversationSession
from chatcore.services.conversation_store import SqlConversationStore


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_pipeline() -> MessageProcessingPipeline:
    """One pipeline per process; the Groq client inside it is created on first AI use."""
    return MessageProcessingPipeline()


def get_conversation_session(
    db: Session = Depends(get_db),
    pipeline: MessageProcessingPipeline = Depends(get_pipeline),
) -> ConversationSession:
    return ConversationSession(store=SqlConversationStore(db), pipeline=pipeline)
