from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Department(str, Enum):
    GENERAL = "general"
    SALES = "sales"
    TECHNICAL = "technical"
    SUPPORT = "support"
    BILLING = "billing"


class HistoryRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


HUB_DEPARTMENT = Department.GENERAL.value
CONVERSATION_STEP = "conversation"  # free-form AI mode, flow builder not driving
DEFAULT_HISTORY_LIMIT = 20


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryEntry(BaseModel):
    role: HistoryRole
    text: str


class Conversation(BaseModel):
    id: str
    customer_id: str
    customer_name: Optional[str] = None
    department: str = HUB_DEPARTMENT
    step: str = CONVERSATION_STEP
    awaiting_selection: bool = False
    transferred_from: Optional[str] = None
    transfer_reason: Optional[str] = None
    requested_department: Optional[str] = None  # greeting enrichment only
    needs_human_agent: bool = False
    flow_selection: Optional[str] = None
    rating: Optional[int] = None
    history: list[HistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_transfer_at: Optional[datetime] = None
    last_activity_at: datetime = Field(default_factory=utcnow)

    def append_history(self, role: HistoryRole, text: str, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        """Append an entry, dropping the oldest ones beyond ``limit``."""
        self.history.append(HistoryEntry(role=role, text=text))
        overflow = len(self.history) - limit
        if overflow > 0:
            del self.history[:overflow]

    def record_turn(self, user_text: str, assistant_text: str, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self.append_history(HistoryRole.USER, user_text, limit)
        self.append_history(HistoryRole.ASSISTANT, assistant_text, limit)

    def transfer_to(self, department: str, reason: str) -> None:
        """Switch the active department. Always clears the pending department menu."""
        self.transferred_from = self.department
        self.transfer_reason = reason
        self.department = department
        self.awaiting_selection = False
        self.step = CONVERSATION_STEP
        self.last_transfer_at = utcnow()

    def touch(self) -> None:
        self.last_activity_at = utcnow()
