import asyncio
from datetime import timedelta

import pytest

from switchboard.models.conversation import utcnow
from switchboard.models.events import EventType
from switchboard.services.result import NOT_FOUND
from switchboard.services.session_lifecycle import SessionLifecycle


def age(store, conversation, hours):
    conversation.last_activity_at = utcnow() - timedelta(hours=hours)
    store.put(conversation.id, conversation)


class TestStart:
    @pytest.mark.parametrize("department", [None, "general", "sales", "technical", "marketing"])
    def test_always_starts_at_hub(self, sessions, store, department):
        conversation = sessions.start("cust-1", department=department)

        assert conversation.department == "general"
        assert store.get(conversation.id).department == "general"

    def test_remembers_requested_specialist(self, sessions):
        conversation = sessions.start("cust-1", department="billing", name="Ana")

        assert conversation.requested_department == "billing"
        assert conversation.customer_name == "Ana"

    def test_ignores_unknown_requested_department(self, sessions):
        conversation = sessions.start("cust-1", department="marketing")
        assert conversation.requested_department is None

    def test_publishes_creation(self, sessions, published):
        conversation = sessions.start("cust-1", department="sales")

        assert len(published) == 1
        assert published[0].type == EventType.CONVERSATION_CREATED
        assert published[0].conversation_id == conversation.id
        assert published[0].payload["requested_department"] == "sales"

    def test_ids_are_unique(self, sessions):
        first = sessions.start("cust-1")
        second = sessions.start("cust-2")
        assert first.id != second.id


class TestResume:
    def test_reconnect_returns_live_conversation(self, sessions):
        conversation = sessions.start("cust-1")

        resumed = sessions.resume("cust-1")

        assert resumed.id == conversation.id

    def test_unknown_customer(self, sessions):
        assert sessions.resume("nobody") is None

    def test_start_or_resume(self, sessions):
        first, resumed_first = sessions.start_or_resume("cust-1", department="sales")
        second, resumed_second = sessions.start_or_resume("cust-1")

        assert resumed_first is False
        assert resumed_second is True
        assert second.id == first.id

    def test_finds_conversation_started_by_another_process(self, store, personas, locks, event_bus, sessions):
        older = sessions.start("cust-1")
        newer = sessions.start("cust-1")
        age(store, older, 2)

        other_process = SessionLifecycle(store, personas, locks, event_bus)

        assert other_process.resume("cust-1").id == newer.id


class TestClose:
    @pytest.mark.asyncio
    async def test_close_removes_conversation(self, sessions, store, published):
        conversation = sessions.start("cust-1")

        result = await sessions.close(conversation.id, reason="customer_left")

        assert result.ok is True
        assert result.value.id == conversation.id
        assert store.get(conversation.id) is None
        assert sessions.resume("cust-1") is None
        assert published[-1].type == EventType.CHAT_CLOSED
        assert published[-1].payload["reason"] == "customer_left"

    @pytest.mark.asyncio
    async def test_close_unknown(self, sessions):
        result = await sessions.close("missing")

        assert result.failed_with(NOT_FOUND)


class TestSweep:
    @pytest.mark.asyncio
    async def test_removes_only_idle_conversations(self, sessions, store, published, locks):
        idle = sessions.start("cust-1")
        active = sessions.start("cust-2")
        age(store, idle, 30)

        removed = await sessions.sweep()

        assert removed == [idle.id]
        assert store.get(idle.id) is None
        assert store.get(active.id) is not None
        assert published[-1].type == EventType.CHAT_CLOSED
        assert published[-1].payload["reason"] == "idle"
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_waits_for_in_flight_message(self, sessions, store, router, provider, locks):
        conversation = sessions.start("cust-1")
        age(store, conversation, 48)
        provider.delay = 0.05

        handling = asyncio.create_task(router.handle_message(conversation.id, "hello"))
        while not locks.is_busy(conversation.id):
            await asyncio.sleep(0)
        removed = await sessions.sweep()
        result = await handling

        assert removed == []
        assert result.response_text == "Happy to help!"
        assert store.get(conversation.id) is not None
        assert len(store.get(conversation.id).history) == 2

    @pytest.mark.asyncio
    async def test_custom_max_age(self, sessions, store):
        conversation = sessions.start("cust-1")
        age(store, conversation, 1)

        assert await sessions.sweep(max_age_hours=2) == []
        assert await sessions.sweep(max_age_hours=0.5) == [conversation.id]

    @pytest.mark.asyncio
    async def test_swept_customer_starts_fresh(self, sessions, store):
        conversation = sessions.start("cust-1")
        age(store, conversation, 48)
        await sessions.sweep()

        fresh, resumed = sessions.start_or_resume("cust-1")

        assert resumed is False
        assert fresh.id != conversation.id
