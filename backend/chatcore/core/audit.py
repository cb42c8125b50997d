"""
Audit logging for conversation lifecycle and lead events.

One JSON object per event on the "audit" logger, so events can be shipped to
centralized logging separately from application logs.

Lead contact details are masked; only the captured field names are logged.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Iterable, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for conversation events."""

    @staticmethod
    def log_conversation_started(chatbot_id: str, conversation_id: str, session_id: str):
        log_entry = {
            "timestamp": _now(),
            "event_type": "conversation.started",
            "chatbot_id": chatbot_id,
            "conversation_id": conversation_id,
            "session_id": session_id,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_conversation_ended(chatbot_id: str, conversation_id: str, duration: Optional[int]):
        log_entry = {
            "timestamp": _now(),
            "event_type": "conversation.ended",
            "chatbot_id": chatbot_id,
            "conversation_id": conversation_id,
            "duration": duration,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_lead_captured(chatbot_id: str, conversation_id: str, fields: Iterable[str]):
        """
        Log lead capture.

        Usage:
            AuditLog.log_lead_captured("bot_1", "conv_9", ["email"])
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "lead.captured",
            "chatbot_id": chatbot_id,
            "conversation_id": conversation_id,
            "fields": sorted(fields),
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_request_rejected(chatbot_id: str, session_id: str, reason: str):
        """
        Log a message that was refused before processing (inactive bot, quota, rate limit).
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "message.rejected",
            "chatbot_id": chatbot_id,
            "session_id": session_id,
            "reason": reason,
        }
        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_webhook_failure(url: str, event: str, error: str):
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "webhook.failed",
            "url": url,
            "event": event,
            "error": error,
        }
        audit_logger.warning(json.dumps(log_entry))
