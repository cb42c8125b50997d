"""Application configuration for the conversation engine.

Environment variables override all defaults.
GROQ_API_KEY is optional: without it the AI stage reports itself unavailable
and the pipeline falls through to the default fallback.
"""

import os
from pathlib import Path
from typing import Dict, List


# Load .env for local development (safe no-op if not installed)
try:
    from dotenv import load_dotenv  # type: ignore

    _BACKEND_DIR = Path(__file__).resolve().parents[2]
    load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)
except Exception:
    pass


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./chatcore.db")

    # Groq API Key (Must be set via .env, never in code)
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    AI_DEFAULT_MODEL: str = os.getenv("AI_DEFAULT_MODEL", "llama-3.3-70b-versatile")
    # Upper bound for one AI-stage call; a timeout counts as an AI failure
    AI_TIMEOUT_SECONDS: float = float(os.getenv("AI_TIMEOUT_SECONDS", "5"))

    # Webhook delivery (fire-and-forget)
    WEBHOOK_TIMEOUT_SECONDS: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "5"))
    WEBHOOK_USER_AGENT: str = "Chatbot-Builder-Webhook/1.0"

    # Monthly message caps per subscription tier (-1 = unlimited)
    SUBSCRIPTION_LIMITS: Dict[str, int] = {
        "free": int(os.getenv("FREE_MONTHLY_MESSAGES", "100")),
        "pro": int(os.getenv("PRO_MONTHLY_MESSAGES", "10000")),
        "enterprise": -1,
    }

    # CORS: the widget is embedded on customer sites
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if origin.strip()
    ]

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")


settings = Settings()
