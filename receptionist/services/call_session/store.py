"""Process-local registries for call sessions and conversation memory.

Every operation completes without awaiting, so each one is atomic with
respect to the event loop and calls never contend with each other. State is
lost on restart.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from receptionist.core.exceptions import SessionNotFound
from receptionist.services.call_session.models import CallSession, ConversationMemory

logger = logging.getLogger(__name__)


class CallSessionStore:
    """Active sessions keyed by call id."""

    def __init__(self):
        self._sessions: Dict[str, CallSession] = {}

    def add(self, session: CallSession) -> Optional[CallSession]:
        """Register a session. Returns the session it replaced, if any."""
        previous = self._sessions.get(session.call_id)
        self._sessions[session.call_id] = session
        return previous

    def get(self, call_id: str) -> Optional[CallSession]:
        return self._sessions.get(call_id)

    def require(self, call_id: str) -> CallSession:
        """Get a session or raise SessionNotFound."""
        session = self._sessions.get(call_id)
        if session is None:
            raise SessionNotFound(call_id)
        return session

    def is_current(self, session: CallSession) -> bool:
        """True while this exact session is the one registered for its call."""
        return self._sessions.get(session.call_id) is session

    def remove(
        self, call_id: str, expected: Optional[CallSession] = None
    ) -> Optional[CallSession]:
        """Remove a session.

        With `expected`, only removes if that exact session is registered, so
        a stale connection cannot remove a newer session for the same call.
        Returns the removed session or None.
        """
        current = self._sessions.get(call_id)
        if current is None:
            return None
        if expected is not None and current is not expected:
            return None
        del self._sessions[call_id]
        return current

    def all(self) -> List[CallSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._sessions


class ConversationMemoryStore:
    """Conversation memory keyed by call id, evicted after a grace period."""

    def __init__(self, grace_period: float = 300.0):
        self.grace_period = grace_period
        self._memories: Dict[str, ConversationMemory] = {}
        self._evictions: Dict[str, asyncio.Task] = {}

    def get_or_create(self, call_id: str, business_id: str) -> ConversationMemory:
        """Return the memory for a call, creating it if needed.

        A pending eviction is cancelled, so a caller reconnecting under the
        same call id within the grace period keeps their history.
        """
        eviction = self._evictions.pop(call_id, None)
        if eviction is not None:
            eviction.cancel()
            logger.info(f"[MEMORY] Eviction cancelled, call reconnected - CallSid: {call_id}")

        memory = self._memories.get(call_id)
        if memory is None:
            memory = ConversationMemory(call_id=call_id, business_id=business_id)
            self._memories[call_id] = memory
        return memory

    def get(self, call_id: str) -> Optional[ConversationMemory]:
        return self._memories.get(call_id)

    def schedule_eviction(self, call_id: str, delay: Optional[float] = None) -> None:
        """Drop the memory for a call after `delay` seconds (default: grace period)."""
        if call_id not in self._memories:
            return
        if delay is None:
            delay = self.grace_period

        existing = self._evictions.pop(call_id, None)
        if existing is not None:
            existing.cancel()

        task = asyncio.get_running_loop().create_task(self._evict_later(call_id, delay))
        self._evictions[call_id] = task

    async def _evict_later(self, call_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._evictions.pop(call_id, None)
        if self._memories.pop(call_id, None) is not None:
            logger.info(f"[MEMORY] Conversation memory evicted - CallSid: {call_id}")

    def pending_evictions(self) -> int:
        return len(self._evictions)

    def clear(self) -> None:
        """Cancel pending evictions and drop all memory."""
        for task in self._evictions.values():
            task.cancel()
        self._evictions.clear()
        self._memories.clear()

    def __len__(self) -> int:
        return len(self._memories)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._memories
