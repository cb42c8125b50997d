"""
Engine error taxonomy and safe HTTP translation.

Engine code raises the domain errors below; only the API layer turns them
into HTTP responses (via BusinessError), so the engine stays usable outside
FastAPI.

Use generic error messages externally, detailed logging internally.
"""
from typing import Optional

from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class ChatEngineError(Exception):
    """Base class for every error the engine surfaces to its caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatEngineError):
    """Required input missing or malformed (chatbotId, sessionId, message)."""


class NotFoundError(ChatEngineError):
    """Chatbot, owner or conversation does not exist."""

    def __init__(self, resource: str, resource_id: str = ""):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id


class InactiveResourceError(ChatEngineError):
    """Chatbot is disabled."""


class QuotaExceededError(ChatEngineError):
    """
    Rate limit or monthly message cap exceeded.

    retry_after is set (seconds) for rate limits; None means the cap is
    terminal for the current billing month.
    """

    def __init__(self, message: str, retry_after: Optional[int] = None, detail: str = ""):
        super().__init__(message)
        self.retry_after = retry_after
        self.detail = detail


class PersistenceError(ChatEngineError):
    """Saving the conversation failed after a response was computed."""


class StageFailure(Exception):
    """
    A single pipeline stage failed or timed out.

    Internal only: the pipeline catches it and moves to the next stage.
    """

    def __init__(self, stage: str, reason: str = ""):
        super().__init__(f"{stage} stage failed: {reason}" if reason else f"{stage} stage failed")
        self.stage = stage


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def forbidden(detail: str, reason: str = "") -> HTTPException:
        logger.warning(f"Forbidden: {detail} {reason}".strip())
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.

        OK to include specific details here since the caller caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error,
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process message",
        )

    @staticmethod
    def rate_limit_exceeded(detail: str = "Rate limit exceeded", retry_after: int = 60) -> HTTPException:
        logger.warning(f"Rate limit exceeded: {detail}")
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"error": detail, "retryAfter": retry_after},
            headers={"Retry-After": str(retry_after)},
        )

    @staticmethod
    def from_engine_error(error: ChatEngineError) -> HTTPException:
        """Map an engine error onto the HTTP response the widget expects."""
        if isinstance(error, ValidationError):
            return BusinessError.bad_request(error.message)
        if isinstance(error, NotFoundError):
            return BusinessError.not_found(error.resource, reason=error.resource_id)
        if isinstance(error, InactiveResourceError):
            return BusinessError.forbidden(error.message)
        if isinstance(error, QuotaExceededError):
            if error.retry_after is not None:
                return BusinessError.rate_limit_exceeded(error.message, error.retry_after)
            logger.warning(f"Monthly cap reached: {error.message}")
            return HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": error.message, "message": error.detail},
            )
        return BusinessError.server_error(error)
