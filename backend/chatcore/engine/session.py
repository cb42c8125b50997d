"""
Conversation Session: applies one inbound message to a conversation.

Order of operations for handle_message:

    validate → chatbot lookup → active? → owner monthly cap → rate limit
      └─ (per-session lock)
           find-or-create conversation → pipeline → apply_result → save
    → counters (atomic increments) → webhooks (fire-and-forget) → response

Every rejection happens before the conversation is touched. Once the
conversation is saved the caller gets its response; counter and webhook
problems are only logged. Store calls block on the database, so each runs
in a worker thread.
"""
import asyncio
import logging
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from chatcore.core.audit import AuditLog
from chatcore.core.exceptions import (
    ChatEngineError,
    InactiveResourceError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from chatcore.core.rate_limiter import ChatbotRateLimiter, chatbot_rate_limiter
from chatcore.engine.locks import SessionLockRegistry, session_locks
from chatcore.engine.pipeline import MessageProcessingPipeline
from chatcore.schemas.chatbot import ChatbotConfig
from chatcore.schemas.conversation import (
    Conversation,
    ConversationAnalytics,
    ConversationStatus,
    Lead,
    Message,
    utcnow,
)
from chatcore.schemas.message import MessageRequest, MessageResponse, ResponseMetadata
from chatcore.schemas.processing import ProcessingResult
from chatcore.services import webhooks
from chatcore.services.conversation_store import ConversationStore
from chatcore.services.webhooks import WebhookDispatcher, webhook_dispatcher

logger = logging.getLogger(__name__)

MONTHLY_CAP_ERROR = "Monthly message limit exceeded"
MONTHLY_CAP_MESSAGE = "This chatbot has reached its monthly message limit. Please contact the website owner."

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_message_id() -> str:
    """msg_<epoch ms>_<9 random chars>"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"msg_{int(time.time() * 1000)}_{suffix}"


def derive_analytics(conversation: Conversation) -> ConversationAnalytics:
    """Recompute the counters from the message log; the log is the source of truth."""
    messages = conversation.messages
    bot_times = [
        float(m.metadata["processingTime"])
        for m in messages
        if m.type == "bot" and isinstance(m.metadata.get("processingTime"), (int, float))
    ]
    return ConversationAnalytics(
        message_count=len(messages),
        user_message_count=sum(1 for m in messages if m.type == "user"),
        bot_message_count=sum(1 for m in messages if m.type == "bot"),
        avg_response_time=round(sum(bot_times) / len(bot_times), 3) if bot_times else 0.0,
        handoff_requested=conversation.analytics.handoff_requested,
        goal_completed=conversation.analytics.goal_completed,
    )


def merge_lead(current: Optional[Lead], captured: Dict[str, str]) -> Optional[Lead]:
    """New fields overwrite same-named old ones; everything else is kept."""
    if not captured:
        return current
    existing = current.model_dump(exclude_none=True) if current else {}
    return Lead.model_validate({**existing, **captured})


def apply_result(
    conversation: Conversation,
    user_message: Message,
    result: ProcessingResult,
    now: Optional[datetime] = None,
) -> Tuple[Conversation, Message]:
    """
    State transition for one turn. Returns the updated copy of the
    conversation and the bot message that was appended; the input is not
    modified.
    """
    now = now or utcnow()
    bot_message = Message(
        id=new_message_id(),
        type="bot",
        content=result.content,
        timestamp=now,
        metadata=result.message_metadata(),
    )

    updated = conversation.model_copy(deep=True)
    updated.messages.extend([user_message, bot_message])
    if result.lead_data is not None:
        updated.lead = merge_lead(updated.lead, result.lead_data.fields())
    updated.analytics = derive_analytics(updated)
    updated.last_activity_at = now
    return updated, bot_message


def required_text(value: Any) -> str:
    """Stripped string value of a required request field; "" when absent or not a string."""
    return value.strip() if isinstance(value, str) else ""


class ConversationSession:

    def __init__(
        self,
        store: ConversationStore,
        pipeline: Optional[MessageProcessingPipeline] = None,
        rate_limiter: Optional[ChatbotRateLimiter] = None,
        dispatcher: Optional[WebhookDispatcher] = None,
        locks: Optional[SessionLockRegistry] = None,
    ):
        self.store = store
        self.pipeline = pipeline or MessageProcessingPipeline()
        self.rate_limiter = rate_limiter or chatbot_rate_limiter
        self.dispatcher = dispatcher or webhook_dispatcher
        self.locks = locks or session_locks

    async def handle_message(self, request: MessageRequest) -> MessageResponse:
        chatbot_id, session_id, text = (
            required_text(request.chatbot_id),
            required_text(request.session_id),
            required_text(request.message),
        )
        if not chatbot_id or not session_id or not text:
            raise ValidationError("Missing required fields: chatbotId, sessionId, message")

        chatbot = await self._admit(chatbot_id, session_id)

        async with self.locks.hold(chatbot_id, session_id):
            conversation = await asyncio.to_thread(self.store.find_active_conversation, chatbot_id, session_id)
            is_new = conversation is None
            if is_new:
                conversation = await self._start_conversation(chatbot_id, session_id, request.visitor_info)

            now = utcnow()
            user_message = Message(
                id=new_message_id(),
                type="user",
                content=text,
                timestamp=now,
                metadata=dict(request.metadata or {}),
            )

            # The pipeline sees the log including the message being answered
            snapshot = conversation.model_copy(update={"messages": [*conversation.messages, user_message]})
            result = await self.pipeline.process(text, chatbot, snapshot, request.metadata)

            conversation, bot_message = apply_result(conversation, user_message, result)
            await asyncio.to_thread(self.store.save_conversation, conversation)

        logger.info(
            f"💬 Chatbot {chatbot_id} session {session_id}: "
            f"{'new' if is_new else 'existing'} conversation {conversation.id}, "
            f"{conversation.analytics.message_count} messages"
        )

        await self._record_usage(chatbot, is_new)
        self._notify(chatbot, conversation, user_message, bot_message, result, is_new)

        return MessageResponse(
            message=bot_message,
            conversation_id=conversation.id,
            session_id=session_id,
            metadata=ResponseMetadata(
                processing_time=result.processing_time,
                is_new_conversation=is_new,
                message_count=len(conversation.messages),
            ),
        )

    async def end_conversation(self, conversation_id: str) -> Conversation:
        conversation = await asyncio.to_thread(self.store.get_conversation, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)

        async with self.locks.hold(conversation.chatbot_id, conversation.session_id):
            # Re-read under the lock; a message may have been appended meanwhile
            conversation = await asyncio.to_thread(self.store.get_conversation, conversation_id) or conversation
            if not conversation.is_open:
                return conversation

            now = utcnow()
            conversation.status = ConversationStatus.ENDED
            conversation.ended_at = now
            conversation.last_activity_at = now
            conversation.duration = int((now - conversation.started_at).total_seconds())
            await asyncio.to_thread(self.store.save_conversation, conversation)

        AuditLog.log_conversation_ended(conversation.chatbot_id, conversation.id, conversation.duration)

        chatbot = await asyncio.to_thread(self.store.get_chatbot, conversation.chatbot_id)
        if chatbot is not None:
            self._dispatch(chatbot, self._payload(
                webhooks.CONVERSATION_ENDED,
                conversation,
                duration=conversation.duration,
                messageCount=conversation.analytics.message_count,
                lead=conversation.lead.model_dump(mode="json", by_alias=True, exclude_none=True)
                if conversation.lead else None,
            ))
        return conversation

    # ------------------------------------------------------------------ helpers

    async def _admit(self, chatbot_id: str, session_id: str) -> ChatbotConfig:
        """Every check that may refuse the message. Only the rate-limit check records
        anything, so it runs last."""
        chatbot = await asyncio.to_thread(self.store.get_chatbot, chatbot_id)
        if chatbot is None:
            raise NotFoundError("Chatbot", chatbot_id)

        if not chatbot.is_active:
            AuditLog.log_request_rejected(chatbot_id, session_id, "inactive")
            raise InactiveResourceError("Chatbot is inactive")

        usage = await asyncio.to_thread(self.store.get_chatbot_owner_usage_limit, chatbot.user_id)
        if usage is None:
            raise NotFoundError("Chatbot owner", chatbot.user_id)
        if usage.exceeded:
            AuditLog.log_request_rejected(chatbot_id, session_id, "monthly_limit")
            raise QuotaExceededError(MONTHLY_CAP_ERROR, detail=MONTHLY_CAP_MESSAGE)

        allowed, retry_after = self.rate_limiter.check(chatbot_id, session_id, chatbot.integration.rate_limiting)
        if not allowed:
            AuditLog.log_request_rejected(chatbot_id, session_id, "rate_limited")
            raise QuotaExceededError("Rate limit exceeded", retry_after=retry_after)

        return chatbot

    async def _start_conversation(
        self, chatbot_id: str, session_id: str, visitor_info: Optional[Dict[str, Any]]
    ) -> Conversation:
        previous = await asyncio.to_thread(self.store.count_conversations, chatbot_id, session_id)
        info = {
            **(visitor_info or {}),
            "isReturning": previous > 0,
            "previousSessions": previous,
        }
        return self.store.create_conversation(chatbot_id, session_id, info)

    async def _record_usage(self, chatbot: ChatbotConfig, is_new: bool):
        try:
            await asyncio.to_thread(
                self.store.increment_chatbot_analytics,
                chatbot.id,
                {"total_conversations": 1 if is_new else 0, "total_messages": 1},
            )
            await asyncio.to_thread(
                self.store.increment_owner_usage, chatbot.user_id, {"monthly_messages": 1, "messages": 1}
            )
        except ChatEngineError as e:
            logger.error(f"❌ Usage counters not updated for chatbot {chatbot.id}: {e}")

    def _notify(
        self,
        chatbot: ChatbotConfig,
        conversation: Conversation,
        user_message: Message,
        bot_message: Message,
        result: ProcessingResult,
        is_new: bool,
    ):
        if is_new:
            AuditLog.log_conversation_started(chatbot.id, conversation.id, conversation.session_id)
            self._dispatch(chatbot, self._payload(
                webhooks.CONVERSATION_STARTED,
                conversation,
                visitorInfo=conversation.visitor_info.model_dump(mode="json", by_alias=True, exclude_none=True),
            ))

        self._dispatch(chatbot, self._payload(
            webhooks.MESSAGE_RECEIVED,
            conversation,
            message=user_message.model_dump(mode="json", by_alias=True),
            response=bot_message.model_dump(mode="json", by_alias=True),
        ))

        if result.lead_data is not None and not result.lead_data.is_empty():
            captured = result.lead_data.fields()
            AuditLog.log_lead_captured(chatbot.id, conversation.id, captured.keys())
            self._dispatch(chatbot, self._payload(
                webhooks.LEAD_CAPTURED,
                conversation,
                lead=conversation.lead.model_dump(mode="json", by_alias=True, exclude_none=True),
                captured=sorted(captured),
            ))

    def _dispatch(self, chatbot: ChatbotConfig, payload: Dict[str, Any]):
        integration = chatbot.integration
        if integration.webhook_url:
            self.dispatcher.dispatch(integration.webhook_url, payload, integration.webhook_secret)

    @staticmethod
    def _payload(event: str, conversation: Conversation, **data) -> Dict[str, Any]:
        return {
            "event": event,
            "chatbotId": conversation.chatbot_id,
            "conversationId": conversation.id,
            "sessionId": conversation.session_id,
            "timestamp": utcnow().isoformat(),
            **data,
        }
