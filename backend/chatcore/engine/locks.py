"""Per-session mutual exclusion.

Messages for the same (chatbot, session) are processed one at a time so the
message log keeps arrival order and a session never gets two conversations.
Different sessions never wait on each other.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple


class SessionLockRegistry:
    """Keyed asyncio locks, created on demand and dropped once nobody holds or waits on them."""

    def __init__(self):
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._users: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, chatbot_id: str, session_id: str) -> AsyncIterator[None]:
        key = (chatbot_id, session_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def active_keys(self) -> int:
        return len(self._locks)


# Shared by every request handled by this process
session_locks = SessionLockRegistry()
