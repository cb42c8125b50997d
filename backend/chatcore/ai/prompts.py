"""
Prompt assembly for the AI stage.

The chatbot owner writes the system prompt; we only add a short guard that
keeps replies brief and on the owner's topic, then replay recent history so
the model sees the conversation in order.
"""
from typing import Dict, List, Optional

from chatcore.schemas.conversation import Conversation

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful customer support assistant embedded on a website. "
    "Answer briefly and politely. If you do not know the answer, say so and "
    "offer to connect the visitor with the team."
)

REPLY_GUARD = (
    "Keep replies under three sentences. Do not invent prices, policies or "
    "contact details that were not given to you."
)

# Messages of history replayed to the model (user + bot turns)
HISTORY_WINDOW = 6


def build_messages(
    message: str,
    conversation: Optional[Conversation] = None,
    system_prompt: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Build chat-completion messages for one visitor message.

    The current message is appended to the log before the pipeline runs, so
    it is dropped from the replayed history to avoid sending it twice.
    """
    messages = [
        {"role": "system", "content": f"{(system_prompt or DEFAULT_SYSTEM_PROMPT).strip()}\n\n{REPLY_GUARD}"}
    ]

    history = list(conversation.messages) if conversation else []
    if history and history[-1].type == "user" and history[-1].content == message:
        history = history[:-1]

    for past in history[-HISTORY_WINDOW:]:
        if past.type == "user":
            messages.append({"role": "user", "content": past.content})
        elif past.type == "bot":
            messages.append({"role": "assistant", "content": past.content})

    messages.append({"role": "user", "content": message})
    return messages
