from datetime import datetime
from typing import Any, Dict, Optional

from chatcore.schemas.chatbot import CamelModel
from chatcore.schemas.conversation import Message


class MessageRequest(CamelModel):
    """Inbound widget message. Required fields are checked by the engine, not here,
    so a missing, null or non-string field is reported as a 400 rather than a schema error."""
    chatbot_id: Optional[Any] = None
    session_id: Optional[Any] = None
    message: Optional[Any] = None
    visitor_info: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None


class ResponseMetadata(CamelModel):
    processing_time: float
    is_new_conversation: bool
    message_count: int


class MessageResponse(CamelModel):
    success: bool = True
    message: Message
    conversation_id: str
    session_id: str
    metadata: ResponseMetadata


class EndConversationResponse(CamelModel):
    success: bool = True
    conversation_id: str
    status: str
    ended_at: Optional[datetime] = None
    duration: Optional[int] = None
