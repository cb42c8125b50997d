"""
AI Responder: the third pipeline stage.

Delegates to an external LLM and applies the chatbot's failure policy:

- AI disabled                → None (stage skipped)
- upstream failure / timeout → None when fallback_to_rules is on, so the
                               pipeline continues to its default fallback;
                               otherwise a fixed apology at confidence 0.3
- success                    → reply at confidence 0.7, below flow and
                               knowledge-base certainty
"""
import asyncio
import logging
from typing import Optional, Protocol

from chatcore.ai.groq_client import get_groq_client
from chatcore.ai.prompts import build_messages
from chatcore.core.config import settings
from chatcore.schemas.chatbot import AIConfig
from chatcore.schemas.conversation import Conversation
from chatcore.schemas.processing import ProcessingResult, Stage

logger = logging.getLogger(__name__)

AI_CONFIDENCE = 0.7
APOLOGY_CONFIDENCE = 0.3
APOLOGY_MESSAGE = "I'm having trouble processing your request right now. Please try again."


class CompletionClient(Protocol):
    def is_available(self) -> bool: ...

    def complete(self, messages, model=None, temperature=0.7, max_tokens=150) -> Optional[str]: ...


class AIResponder:

    def __init__(self, client: Optional[CompletionClient] = None, timeout: Optional[float] = None):
        self._client = client
        self.timeout = timeout if timeout is not None else settings.AI_TIMEOUT_SECONDS

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            self._client = get_groq_client()
        return self._client

    async def generate(
        self,
        message: str,
        ai_config: AIConfig,
        conversation: Optional[Conversation] = None,
    ) -> Optional[ProcessingResult]:
        if not ai_config.enabled:
            return None

        reply = None
        if not self.client.is_available():
            logger.debug("AI provider not available")
        else:
            messages = build_messages(message, conversation, ai_config.system_prompt)
            try:
                # Blocking SDK call runs in a worker thread; the wait is bounded
                reply = await asyncio.wait_for(
                    asyncio.to_thread(
                        self.client.complete,
                        messages,
                        model=ai_config.model,
                        temperature=ai_config.temperature,
                        max_tokens=ai_config.max_tokens,
                    ),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"⏱️ AI stage timed out after {self.timeout}s")
            except Exception as e:
                logger.error(f"❌ AI stage error: {e}")

        if reply:
            return ProcessingResult(
                content=reply,
                confidence=AI_CONFIDENCE,
                ai_generated=True,
                stage=Stage.AI,
            )

        if ai_config.fallback_to_rules:
            logger.info("AI unavailable - deferring to rule-based fallback")
            return None

        return ProcessingResult(
            content=APOLOGY_MESSAGE,
            confidence=APOLOGY_CONFIDENCE,
            ai_generated=True,
            stage=Stage.AI,
        )
