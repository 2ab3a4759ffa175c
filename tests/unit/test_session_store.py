"""Unit tests for session and conversation memory stores."""
import asyncio

import pytest

from receptionist.core.exceptions import SessionNotFound
from receptionist.services.call_session.models import CallSession
from receptionist.services.call_session.store import CallSessionStore, ConversationMemoryStore


class TestCallSessionStore:
    """Test the active session registry."""

    @pytest.mark.asyncio
    async def test_add_get_remove(self, fake_websocket):
        store = CallSessionStore()
        session = CallSession("CA1", "MZ1", fake_websocket)

        assert store.add(session) is None
        assert store.get("CA1") is session
        assert "CA1" in store
        assert len(store) == 1

        assert store.remove("CA1") is session
        assert store.get("CA1") is None
        assert store.remove("CA1") is None

    @pytest.mark.asyncio
    async def test_require_raises_for_unknown_call(self):
        store = CallSessionStore()
        with pytest.raises(SessionNotFound) as exc_info:
            store.require("CA404")
        assert exc_info.value.call_id == "CA404"

    @pytest.mark.asyncio
    async def test_stale_session_cannot_remove_newer(self, fake_websocket):
        store = CallSessionStore()
        old = CallSession("CA1", "MZ1", fake_websocket)
        new = CallSession("CA1", "MZ2", fake_websocket)
        store.add(old)

        assert store.add(new) is old
        assert store.is_current(new)
        assert not store.is_current(old)

        assert store.remove("CA1", expected=old) is None
        assert store.get("CA1") is new
        assert store.remove("CA1", expected=new) is new

    @pytest.mark.asyncio
    async def test_all_and_iteration(self, fake_websocket):
        store = CallSessionStore()
        store.add(CallSession("CA1", "MZ1", fake_websocket))
        store.add(CallSession("CA2", "MZ2", fake_websocket))

        assert sorted(store) == ["CA1", "CA2"]
        assert {s.stream_id for s in store.all()} == {"MZ1", "MZ2"}


class TestConversationMemoryStore:
    """Test conversation memory retention."""

    @pytest.mark.asyncio
    async def test_get_or_create_reuses_memory(self):
        store = ConversationMemoryStore()
        memory = store.get_or_create("CA1", "pizzakarachi")
        memory.add_user_turn("hi")

        again = store.get_or_create("CA1", "pizzakarachi")
        assert again is memory
        assert len(again.messages) == 1

    @pytest.mark.asyncio
    async def test_eviction_after_grace_period(self):
        store = ConversationMemoryStore(grace_period=0.01)
        store.get_or_create("CA1", "pizzakarachi")

        store.schedule_eviction("CA1")
        assert "CA1" in store
        assert store.pending_evictions() == 1

        await asyncio.sleep(0.05)
        assert "CA1" not in store
        assert store.pending_evictions() == 0

    @pytest.mark.asyncio
    async def test_reconnect_cancels_eviction(self):
        store = ConversationMemoryStore(grace_period=0.01)
        memory = store.get_or_create("CA1", "pizzakarachi")
        store.schedule_eviction("CA1")

        assert store.get_or_create("CA1", "pizzakarachi") is memory
        await asyncio.sleep(0.05)

        assert store.get("CA1") is memory
        assert store.pending_evictions() == 0

    @pytest.mark.asyncio
    async def test_schedule_eviction_unknown_call_is_noop(self):
        store = ConversationMemoryStore()
        store.schedule_eviction("CA404")
        assert store.pending_evictions() == 0

    @pytest.mark.asyncio
    async def test_clear(self):
        store = ConversationMemoryStore(grace_period=10)
        store.get_or_create("CA1", "pizzakarachi")
        store.schedule_eviction("CA1")

        store.clear()
        assert len(store) == 0
        assert store.pending_evictions() == 0


class TestConversationMemory:
    """Test per-call conversation history."""

    def test_recent_and_reply_context(self):
        store = ConversationMemoryStore()
        memory = store.get_or_create("CA1", "pizzakarachi")
        for i in range(6):
            memory.add_user_turn(f"question {i}")
            memory.add_assistant_turn(f"answer {i}", label="generic")

        context = memory.reply_context(limit=4)
        assert [m.content for m in context.history] == [
            "question 4", "answer 4", "question 5", "answer 5",
        ]
        assert context.business_id == "pizzakarachi"
        assert memory.recent(0) == []

        context.state["last_label"] = "hours"
        assert memory.context["last_label"] == "hours"

    def test_turns_recorded_in_order(self):
        store = ConversationMemoryStore()
        memory = store.get_or_create("CA1", "pizzakarachi")
        memory.add_user_turn("Are you open?")
        memory.add_assistant_turn("Yes!", label="hours")

        assert [(m.role, m.content) for m in memory.messages] == [
            ("user", "Are you open?"),
            ("assistant", "Yes!"),
        ]
        assert memory.messages[1].label == "hours"
