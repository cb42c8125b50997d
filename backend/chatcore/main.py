"""
Chatbot Conversation Engine: HTTP entry point for the embeddable widget.

ARCHITECTURE:
- Widget: posts each visitor message to /conversations/message
- Engine: flows → knowledge base → AI → fallback, one response per message
- SQL DB: chatbots, owners and conversations (source of truth)
- Webhooks: fire-and-forget notifications to the chatbot owner's endpoint

Messages for one visitor session are processed strictly in order; different
sessions run concurrently.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatcore.api.routes import conversations
from chatcore.core.config import settings
from chatcore.db.init_db import init_db
from chatcore.services.webhooks import webhook_dispatcher

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:  create database tables
    Shutdown: wait for in-flight webhook deliveries
    """
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")

    yield

    pending = webhook_dispatcher.pending()
    if pending:
        logger.info(f"Waiting for {pending} webhook deliveries...")
    await webhook_dispatcher.drain()


app = FastAPI(
    title="Chatbot Conversation Engine",
    description="Processes widget messages through flows, knowledge base, AI and fallback.",
    version="0.1.0",
    lifespan=lifespan,
)

# The widget is embedded on customer sites: explicit origins, methods and headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
    ],
    max_age=600,  # Cache preflight for 10 minutes
    expose_headers=["Content-Type", "Retry-After"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(conversations.router, prefix="/conversations", tags=["conversations"])


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
