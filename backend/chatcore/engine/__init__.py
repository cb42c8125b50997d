"""Conversation processing engine.

flow interpreter → knowledge base → AI → fallback, wrapped by
ConversationSession, which owns per-session state and side effects.
"""

from .pipeline import MessageProcessingPipeline
from .session import ConversationSession, apply_result

__all__ = ["ConversationSession", "MessageProcessingPipeline", "apply_result"]
