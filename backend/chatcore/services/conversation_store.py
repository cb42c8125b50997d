"""
Conversation Store: persistence behind the engine.

The engine only talks to the ConversationStore protocol; SqlConversationStore
implements it with SQLAlchemy. Counters are incremented with a single
UPDATE ... SET col = col + n so concurrent sessions never lose increments.
"""
import functools
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatcore.core.config import settings
from chatcore.core.exceptions import PersistenceError
from chatcore.models.chatbot import Chatbot
from chatcore.models.conversation import Conversation as ConversationRow
from chatcore.models.user import User
from chatcore.schemas.chatbot import ChatbotConfig
from chatcore.schemas.conversation import OPEN_STATUSES, Conversation, VisitorInfo, utcnow

logger = logging.getLogger(__name__)

CHATBOT_COUNTERS = {"total_conversations", "total_messages"}
OWNER_COUNTERS = {"monthly_messages", "messages"}


def serialized(method):
    """Run a store method while holding the store's lock; a Session is not thread-safe."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


@dataclass
class UsageLimit:
    monthly_limit: int  # -1 = unlimited
    used: int

    @property
    def exceeded(self) -> bool:
        return self.monthly_limit != -1 and self.used >= self.monthly_limit


class ConversationStore(Protocol):
    def get_chatbot(self, chatbot_id: str) -> Optional[ChatbotConfig]: ...

    def find_active_conversation(self, chatbot_id: str, session_id: str) -> Optional[Conversation]: ...

    def count_conversations(self, chatbot_id: str, session_id: str) -> int: ...

    def create_conversation(
        self, chatbot_id: str, session_id: str, visitor_info: Optional[Dict[str, Any]] = None
    ) -> Conversation: ...

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]: ...

    def save_conversation(self, conversation: Conversation) -> None: ...

    def increment_chatbot_analytics(self, chatbot_id: str, deltas: Dict[str, int]) -> None: ...

    def increment_owner_usage(self, owner_id: str, deltas: Dict[str, int]) -> None: ...

    def get_chatbot_owner_usage_limit(self, owner_id: str) -> Optional[UsageLimit]: ...


class SqlConversationStore:
    """ConversationStore on a SQLAlchemy session (one per request)."""

    def __init__(self, db: Session):
        self.db = db
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ chatbots

    @serialized
    def get_chatbot(self, chatbot_id: str) -> Optional[ChatbotConfig]:
        row = self.db.get(Chatbot, chatbot_id)
        if row is None:
            return None

        return ChatbotConfig.model_validate({
            "id": row.id,
            "userId": row.user_id,
            "name": row.name,
            "isActive": row.is_active,
            "config": row.config or {},
            "flows": row.flows or [],
            "knowledgeBase": row.knowledge_base or [],
            "ai": row.ai or {},
            "integration": row.integration or {},
        })

    # ------------------------------------------------------------ conversations

    @serialized
    def find_active_conversation(self, chatbot_id: str, session_id: str) -> Optional[Conversation]:
        row = (
            self.db.query(ConversationRow)
            .filter(
                ConversationRow.chatbot_id == chatbot_id,
                ConversationRow.session_id == session_id,
                ConversationRow.status.in_(OPEN_STATUSES),
            )
            .order_by(ConversationRow.started_at.desc())
            .first()
        )
        return self._to_schema(row) if row else None

    @serialized
    def count_conversations(self, chatbot_id: str, session_id: str) -> int:
        return (
            self.db.query(func.count(ConversationRow.id))
            .filter(ConversationRow.chatbot_id == chatbot_id, ConversationRow.session_id == session_id)
            .scalar()
            or 0
        )

    def create_conversation(
        self, chatbot_id: str, session_id: str, visitor_info: Optional[Dict[str, Any]] = None
    ) -> Conversation:
        """New conversation, not yet persisted: it is written by the first save_conversation."""
        now = utcnow()
        return Conversation(
            id=uuid.uuid4().hex,
            chatbot_id=chatbot_id,
            session_id=session_id,
            visitor_info=VisitorInfo.model_validate(visitor_info or {}),
            started_at=now,
            last_activity_at=now,
        )

    @serialized
    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        row = self.db.get(ConversationRow, conversation_id)
        return self._to_schema(row) if row else None

    @serialized
    def save_conversation(self, conversation: Conversation) -> None:
        data = conversation.model_dump(mode="json", by_alias=True)
        try:
            row = self.db.get(ConversationRow, conversation.id)
            if row is None:
                row = ConversationRow(id=conversation.id)
                self.db.add(row)

            row.chatbot_id = conversation.chatbot_id
            row.session_id = conversation.session_id
            row.status = conversation.status.value
            row.messages = data["messages"]
            row.visitor_info = data["visitorInfo"]
            row.analytics = data["analytics"]
            row.lead = data["lead"]
            row.started_at = conversation.started_at
            row.last_activity_at = conversation.last_activity_at
            row.ended_at = conversation.ended_at
            row.duration = conversation.duration

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save conversation {conversation.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save conversation {conversation.id}") from e

    # ----------------------------------------------------------------- counters

    @serialized
    def increment_chatbot_analytics(self, chatbot_id: str, deltas: Dict[str, int]) -> None:
        values = {
            name: getattr(Chatbot, name) + amount
            for name, amount in deltas.items()
            if name in CHATBOT_COUNTERS and amount
        }
        if not values:
            return
        self._atomic_update(update(Chatbot).where(Chatbot.id == chatbot_id).values(**values))

    @serialized
    def increment_owner_usage(self, owner_id: str, deltas: Dict[str, int]) -> None:
        values = {
            name: getattr(User, name) + amount
            for name, amount in deltas.items()
            if name in OWNER_COUNTERS and amount
        }
        if not values:
            return
        self._atomic_update(update(User).where(User.id == owner_id).values(**values))

    @serialized
    def get_chatbot_owner_usage_limit(self, owner_id: str) -> Optional[UsageLimit]:
        owner = self.db.get(User, owner_id)
        if owner is None:
            return None

        limits = settings.SUBSCRIPTION_LIMITS
        monthly_limit = limits.get(owner.subscription_tier, limits["free"])
        return UsageLimit(monthly_limit=monthly_limit, used=owner.monthly_messages or 0)

    def _atomic_update(self, statement) -> None:
        try:
            self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Counter update failed: {e}") from e

    @staticmethod
    def _to_schema(row: ConversationRow) -> Conversation:
        return Conversation.model_validate({
            "id": row.id,
            "chatbotId": row.chatbot_id,
            "sessionId": row.session_id,
            "status": row.status,
            "messages": row.messages or [],
            "visitorInfo": row.visitor_info or {},
            "analytics": row.analytics or {},
            "lead": row.lead,
            "startedAt": row.started_at,
            "lastActivityAt": row.last_activity_at,
            "endedAt": row.ended_at,
            "duration": row.duration,
        })
