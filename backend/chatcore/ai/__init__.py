"""AI module: optional LLM replies via Groq.

Only consulted after flows and the knowledge base found nothing. If the LLM
fails, the chatbot's fallback policy decides between deferring to the
default fallback message and an apology.
"""

from .responder import AIResponder
from .groq_client import GroqClient, get_groq_client

__all__ = ["AIResponder", "GroqClient", "get_groq_client"]
