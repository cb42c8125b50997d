"""
Groq API Client: thin wrapper for chatbot reply generation.

================================================================================
LLM ROLE: LAST-RESORT RESPONDER
================================================================================

The AI stage only runs after flows and the knowledge base found nothing.
This client:
- Sends the chatbot's system prompt + recent history + the visitor message
- Uses the chatbot's own model / temperature / max tokens
- Returns the reply text, or None when the API gives no usable reply (the
  responder then applies the chatbot's fallback policy)

It never touches the database and never decides anything about the
conversation state.
================================================================================
"""

import logging
import time
from typing import Dict, List, Optional

from groq import Groq, APIError, APITimeoutError, RateLimitError

from chatcore.core.config import settings

# Never log API keys
logger = logging.getLogger(__name__)


class GroqClient:
    """
    Minimal wrapper for the Groq chat completions API.

    - Timeout: AI_TIMEOUT_SECONDS (the responder also bounds the whole call)
    - Retries: 1 (handles transient Groq API issues)
    - Returns None on API errors
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize Groq client with API key from environment."""
        api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.default_model = settings.AI_DEFAULT_MODEL

        if not api_key:
            logger.warning(
                "⚠️ GROQ_API_KEY not found in environment. "
                "AI responses will be DISABLED. "
                "Add your key to backend/.env file."
            )
            self.client = None
        else:
            try:
                self.client = Groq(api_key=api_key, timeout=timeout or settings.AI_TIMEOUT_SECONDS)
                logger.info("✅ Groq client initialized successfully")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Groq client: {e}")
                self.client = None

    def is_available(self) -> bool:
        """Check if Groq client is ready to use."""
        return self.client is not None

    def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 150,
        max_retries: int = 1,
    ) -> Optional[str]:
        """
        Generate a chatbot reply.

        Timeouts and rate limits are retried with exponential backoff; any
        other API error is permanent. Unexpected exceptions propagate to the
        responder, which treats them as an AI failure.

        Returns:
            Reply text, or None when no usable reply was produced
        """
        if not self.is_available():
            logger.debug("Groq client not available - skipping LLM call")
            return None

        for attempt in range(max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=model or self.default_model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    stream=False,
                )
                return self._reply_text(response, attempt)

            except (APITimeoutError, RateLimitError) as e:
                if attempt >= max_retries:
                    logger.warning(f"⚠️ Groq {type(e).__name__} - giving up after {attempt + 1} attempts")
                    return None
                # Rate limits back off twice as long as timeouts
                delay = (0.5 if isinstance(e, APITimeoutError) else 1.0) * (2 ** attempt)
                logger.warning(f"⏱️ Groq {type(e).__name__}, retry {attempt + 1}/{max_retries} in {delay}s")
                time.sleep(delay)

            except APIError as e:
                logger.error(f"❌ Groq API error (not retried): {e}")
                return None

        return None

    @staticmethod
    def _reply_text(response, attempt: int) -> Optional[str]:
        if not response.choices:
            logger.warning("LLM returned no choices")
            return None
        content = (response.choices[0].message.content or "").strip()
        logger.debug(f"LLM reply: {len(content)} chars (attempt {attempt + 1})")
        return content or None


_groq_client: Optional[GroqClient] = None


def get_groq_client() -> GroqClient:
    """Shared client, created on first use so a missing key only matters once AI is enabled."""
    global _groq_client
    if _groq_client is None:
        _groq_client = GroqClient()
    return _groq_client
