from chatcore.models.user import User
from chatcore.models.chatbot import Chatbot
from chatcore.models.conversation import Conversation

__all__ = ["User", "Chatbot", "Conversation"]
