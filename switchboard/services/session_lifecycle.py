"""Session creation, reconnect and idle cleanup.

Every conversation enters through the hub persona; a department requested
at start-up is only remembered for the opening greeting. Reconnects are
matched by customer identity so a new socket continues the same
conversation instead of opening a duplicate.
"""

import threading
import uuid
from datetime import timedelta
from typing import Optional

from switchboard.logging_config import get_logger
from switchboard.models.conversation import Conversation, utcnow
from switchboard.models.events import EventType, OutboundEvent
from switchboard.services.conversation_locks import ConversationLocks
from switchboard.services.events import EventBus
from switchboard.services.flow_state_store import FlowStateStore
from switchboard.services.persona_registry import PersonaRegistry
from switchboard.services.result import NOT_FOUND, Result

logger = get_logger("session_lifecycle")

DEFAULT_IDLE_HOURS = 24.0


class SessionLifecycle:
    def __init__(
        self,
        store: FlowStateStore,
        personas: PersonaRegistry,
        locks: ConversationLocks,
        events: EventBus,
        *,
        idle_hours: float = DEFAULT_IDLE_HOURS,
    ):
        self.store = store
        self.personas = personas
        self.locks = locks
        self.events = events
        self.idle_hours = idle_hours
        self._by_customer: dict[str, str] = {}
        self._index_lock = threading.Lock()

    def start(self, customer_id: str, department: Optional[str] = None, name: Optional[str] = None) -> Conversation:
        """Create a conversation at the hub, whatever department was asked for."""
        hub = self.personas.main_router().department
        requested = department if department and department != hub and self.personas.get(department) else None

        conversation = Conversation(
            id=str(uuid.uuid4()),
            customer_id=customer_id,
            customer_name=name,
            department=hub,
            requested_department=requested,
        )
        self.store.put(conversation.id, conversation)
        with self._index_lock:
            self._by_customer[customer_id] = conversation.id

        logger.info(
            "Conversation started",
            extra={"context": {"conversation_id": conversation.id, "customer_id": customer_id, "requested": requested}},
        )
        self.events.publish(
            [
                OutboundEvent(
                    type=EventType.CONVERSATION_CREATED,
                    conversation_id=conversation.id,
                    payload={"customer_id": customer_id, "department": hub, "requested_department": requested},
                )
            ]
        )
        return conversation

    def resume(self, customer_id: str) -> Optional[Conversation]:
        """The customer's live conversation, or None when it was closed or swept."""
        with self._index_lock:
            conversation_id = self._by_customer.get(customer_id)

        if conversation_id is not None:
            conversation = self.store.get(conversation_id)
            if conversation is not None:
                return conversation
            with self._index_lock:
                self._by_customer.pop(customer_id, None)

        # Index is per process; a shared store may hold conversations started elsewhere.
        latest = None
        for conversation in self.store:
            if conversation.customer_id != customer_id:
                continue
            if latest is None or conversation.last_activity_at > latest.last_activity_at:
                latest = conversation

        if latest is not None:
            with self._index_lock:
                self._by_customer[customer_id] = latest.id
            logger.info(f"Resumed conversation {latest.id} from store scan")
        return latest

    def start_or_resume(
        self, customer_id: str, department: Optional[str] = None, name: Optional[str] = None
    ) -> tuple[Conversation, bool]:
        conversation = self.resume(customer_id)
        if conversation is not None:
            return conversation, True
        return self.start(customer_id, department, name), False

    async def close(self, conversation_id: str, reason: str = "closed") -> Result[Conversation]:
        async with self.locks.hold(conversation_id):
            conversation = self.store.get(conversation_id)
            if conversation is None:
                return Result.failure(f"Unknown conversation {conversation_id!r}", NOT_FOUND)
            self._forget(conversation)
            self.store.delete(conversation_id)

        logger.info(f"Conversation closed: {reason}", extra={"context": {"conversation_id": conversation_id}})
        self.events.publish(
            [OutboundEvent(type=EventType.CHAT_CLOSED, conversation_id=conversation_id, payload={"reason": reason})]
        )
        return Result.success(conversation)

    async def sweep(self, max_age_hours: Optional[float] = None) -> list[str]:
        """Delete conversations idle for longer than ``max_age_hours``. Returns the removed ids."""
        max_age = timedelta(hours=max_age_hours if max_age_hours is not None else self.idle_hours)
        removed = []

        for conversation_id in self.store.keys():
            if self.locks.is_busy(conversation_id):
                logger.debug(
                    "Waiting for in-flight message before sweeping",
                    extra={"context": {"conversation_id": conversation_id}},
                )
            async with self.locks.hold(conversation_id):
                conversation = self.store.get(conversation_id)
                if conversation is None or utcnow() - conversation.last_activity_at <= max_age:
                    continue
                self._forget(conversation)
                self.store.delete(conversation_id)
            removed.append(conversation_id)
            self.events.publish(
                [OutboundEvent(type=EventType.CHAT_CLOSED, conversation_id=conversation_id, payload={"reason": "idle"})]
            )

        if removed:
            logger.info(f"Swept {len(removed)} idle conversations")
        return removed

    def _forget(self, conversation: Conversation) -> None:
        with self._index_lock:
            if self._by_customer.get(conversation.customer_id) == conversation.id:
                del self._by_customer[conversation.customer_id]
