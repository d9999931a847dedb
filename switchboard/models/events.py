from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from switchboard.models.conversation import utcnow


class EventType(str, Enum):
    CONVERSATION_CREATED = "conversation_created"
    DEPARTMENT_TRANSFERRED = "department_transferred"
    HUMAN_AGENT_NEEDED = "human_agent_needed"
    FLOW_CHOICE_OFFERED = "flow_choice_offered"
    RATING_REQUESTED = "rating_requested"
    CUSTOMER_WAITING = "customer_waiting"
    CHAT_CLOSED = "chat_closed"


class OutboundEvent(BaseModel):
    type: EventType
    conversation_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
