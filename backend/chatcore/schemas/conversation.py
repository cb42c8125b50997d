from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from chatcore.schemas.chatbot import CamelModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    TRANSFERRED = "transferred"
    ABANDONED = "abandoned"


# A session keeps talking to its conversation while it is in one of these
OPEN_STATUSES = (ConversationStatus.ACTIVE.value, ConversationStatus.TRANSFERRED.value)


class Message(CamelModel):
    id: str
    type: Literal["user", "bot", "system"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)


class VisitorInfo(CamelModel):
    model_config = ConfigDict(extra="allow")

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    device: Optional[Dict[str, Any]] = None
    is_returning: bool = False
    previous_sessions: int = 0


class ConversationAnalytics(CamelModel):
    message_count: int = 0
    user_message_count: int = 0
    bot_message_count: int = 0
    avg_response_time: float = 0.0
    handoff_requested: bool = False
    goal_completed: bool = False


class Lead(CamelModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None


class Conversation(CamelModel):
    id: str
    chatbot_id: str
    session_id: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    messages: List[Message] = Field(default_factory=list)
    visitor_info: VisitorInfo = Field(default_factory=VisitorInfo)
    analytics: ConversationAnalytics = Field(default_factory=ConversationAnalytics)
    lead: Optional[Lead] = None
    started_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    duration: Optional[int] = None  # seconds

    @field_validator("started_at", "last_activity_at", "ended_at")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @property
    def is_open(self) -> bool:
        return self.status.value in OPEN_STATUSES
