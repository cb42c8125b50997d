"""Widget endpoints: send a message, end a conversation.

Engine errors are mapped to HTTP by BusinessError.from_engine_error; anything
else becomes a generic 500 so internals never leak to the embedding page.
"""
from fastapi import APIRouter, Depends

from chatcore.api.deps import get_conversation_session
from chatcore.core.exceptions import BusinessError, ChatEngineError
from chatcore.engine.session import ConversationSession
from chatcore.schemas.message import EndConversationResponse, MessageRequest, MessageResponse

router = APIRouter()


@router.post("/message", response_model=MessageResponse, response_model_by_alias=True)
async def process_message(
    payload: MessageRequest,
    session: ConversationSession = Depends(get_conversation_session),
):
    """Process one visitor message and return the bot's reply."""
    try:
        return await session.handle_message(payload)
    except ChatEngineError as e:
        raise BusinessError.from_engine_error(e)
    except Exception as e:
        raise BusinessError.server_error(e)


@router.post("/{conversation_id}/end", response_model=EndConversationResponse, response_model_by_alias=True)
async def end_conversation(
    conversation_id: str,
    session: ConversationSession = Depends(get_conversation_session),
):
    try:
        conversation = await session.end_conversation(conversation_id)
    except ChatEngineError as e:
        raise BusinessError.from_engine_error(e)
    except Exception as e:
        raise BusinessError.server_error(e)

    return EndConversationResponse(
        conversation_id=conversation.id,
        status=conversation.status.value,
        ended_at=conversation.ended_at,
        duration=conversation.duration,
    )
