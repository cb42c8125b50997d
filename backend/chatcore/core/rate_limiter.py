"""
Per-chatbot rate limiting for inbound widget messages.

Uses in-memory storage for simplicity. For production with multiple workers,
consider Redis or similar distributed cache.
"""
import time
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Tuple

from chatcore.schemas.chatbot import RateLimitSettings

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 3600


class RateLimiter:
    """In-memory rate limiter with sliding window."""

    def __init__(self, clock: Callable[[], float] = time.time):
        # Dict[client_id, List[timestamp]] - kept for the longest window (1 hour)
        self.clients: Dict[str, List[float]] = defaultdict(list)
        self.clock = clock
        self.last_cleanup = clock()

    def is_allowed(self, client_id: str, limits: List[Tuple[int, int]]) -> Tuple[bool, int]:
        """
        Check if client is allowed to make a request under every (requests, window) limit.

        Returns:
            (allowed: bool, retry_after_seconds: int)
        """
        now = self.clock()

        # Cleanup old entries every 5 minutes
        if now - self.last_cleanup > 300:
            self._cleanup(now)
            self.last_cleanup = now

        longest = max((window for _, window in limits), default=HOUR)
        timestamps = [ts for ts in self.clients[client_id] if ts > now - longest]
        self.clients[client_id] = timestamps

        for requests, window in limits:
            if requests <= 0:
                continue
            in_window = [ts for ts in timestamps if ts > now - window]
            if len(in_window) >= requests:
                # Oldest request in the window must expire before the next one fits
                retry_after = int(in_window[0] + window - now) + 1
                return False, max(retry_after, 1)

        timestamps.append(now)
        return True, 0

    def _cleanup(self, now: float):
        """Remove expired entries to prevent memory bloat."""
        cutoff = now - HOUR
        for client_id in list(self.clients.keys()):
            timestamps = [ts for ts in self.clients[client_id] if ts > cutoff]
            if timestamps:
                self.clients[client_id] = timestamps
            else:
                del self.clients[client_id]

        logger.info(f"Rate limiter cleanup: {len(self.clients)} active sessions")


class ChatbotRateLimiter:
    """Applies a chatbot's own rate-limiting settings, keyed by chatbot and session."""

    def __init__(self, limiter: RateLimiter = None):
        self.limiter = limiter or RateLimiter()

    def check(self, chatbot_id: str, session_id: str, config: RateLimitSettings) -> Tuple[bool, int]:
        if not config.enabled:
            return True, 0

        allowed, retry_after = self.limiter.is_allowed(
            f"{chatbot_id}:{session_id}",
            [(config.requests_per_minute, MINUTE), (config.requests_per_hour, HOUR)],
        )
        if not allowed:
            logger.warning(
                f"Rate limit exceeded for chatbot={chatbot_id} session={session_id}, retry in {retry_after}s"
            )
        return allowed, retry_after


# Global rate limiter instance
chatbot_rate_limiter = ChatbotRateLimiter()
