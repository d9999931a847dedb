from typing import Optional

from pydantic import BaseModel

from switchboard.models.conversation import Conversation
from switchboard.models.router_result import RouterResult


class SessionRequest(BaseModel):
    customer_id: str
    department: Optional[str] = None
    customer_name: Optional[str] = None


class SessionResponse(BaseModel):
    conversation_id: str
    resumed: bool
    conversation: Conversation
    opening: Optional[RouterResult] = None


class CloseResponse(BaseModel):
    success: bool
    conversation_id: str
