"""
Webhook Dispatcher: fire-and-forget event delivery.

Events: conversation.started, message.received, lead.captured,
conversation.ended. Delivery never blocks or fails the request that
triggered it: each POST runs in its own task and failures are only logged.

Request format:
    POST <webhook_url>
    Content-Type: application/json
    User-Agent: Chatbot-Builder-Webhook/1.0
    X-ChatBot-Event: <event>
    X-ChatBot-Signature: <hex HMAC-SHA256 of the body>   (only with a secret)
"""
import asyncio
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional, Set

import httpx

from chatcore.core.audit import AuditLog
from chatcore.core.config import settings

logger = logging.getLogger(__name__)

CONVERSATION_STARTED = "conversation.started"
MESSAGE_RECEIVED = "message.received"
LEAD_CAPTURED = "lead.captured"
CONVERSATION_ENDED = "conversation.ended"


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookDispatcher:

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT_SECONDS
        self.transport = transport
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, url: Optional[str], payload: Dict[str, Any], secret: Optional[str] = None) -> Optional[asyncio.Task]:
        """Schedule delivery on the running loop and return immediately."""
        if not url:
            return None

        task = asyncio.get_running_loop().create_task(self._deliver(url, payload, secret))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, url: str, payload: Dict[str, Any], secret: Optional[str]) -> bool:
        event = payload.get("event", "unknown")
        body = json.dumps(payload, default=str).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.WEBHOOK_USER_AGENT,
            "X-ChatBot-Event": event,
        }
        if secret:
            headers["X-ChatBot-Signature"] = sign_payload(body, secret)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, content=body, headers=headers)
                response.raise_for_status()
            logger.debug(f"Webhook {event} delivered to {url} ({response.status_code})")
            return True
        except httpx.TimeoutException:
            logger.warning(f"⏱️ Webhook {event} to {url} timed out after {self.timeout}s")
            AuditLog.log_webhook_failure(url, event, "timeout")
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Webhook {event} to {url} failed: {e}")
            AuditLog.log_webhook_failure(url, event, str(e))
        return False

    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait for in-flight deliveries (tests and shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Global dispatcher instance
webhook_dispatcher = WebhookDispatcher()
