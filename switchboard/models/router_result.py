from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from switchboard.models.events import OutboundEvent
from switchboard.models.flow import FlowOption
from switchboard.models.routing import DepartmentOption


class RouterAction(str, Enum):
    HUMAN_HANDOFF = "human_handoff"
    TRANSFER = "transfer"
    TRANSFER_BACK = "transfer_back"
    SPECIALIST_SWITCH = "specialist_switch"
    HUB_REPLY = "hub_reply"
    HUB_SUGGESTIONS = "hub_suggestions"
    SELECTION_TRANSFER = "selection_transfer"
    SELECTION_PROMPT = "selection_prompt"
    SPECIALIST_REPLY = "specialist_reply"
    FLOW = "flow"
    FALLBACK = "fallback"
    IGNORED = "ignored"


TRANSFER_ACTIONS = {
    RouterAction.TRANSFER,
    RouterAction.TRANSFER_BACK,
    RouterAction.SPECIALIST_SWITCH,
    RouterAction.SELECTION_TRANSFER,
}


class ChoicePrompt(BaseModel):
    step_id: str
    content: str
    options: list[FlowOption] = Field(default_factory=list)


class RatingPrompt(BaseModel):
    step_id: str
    content: str
    scale: int
    question: str


class RouterResult(BaseModel):
    conversation_id: str
    action: RouterAction
    response_text: str = ""
    messages: list[str] = Field(default_factory=list)
    department: str
    needs_human_agent: bool = False
    department_options: Optional[list[DepartmentOption]] = None
    transferred: bool = False
    specialist_active: bool = False
    choices: Optional[ChoicePrompt] = None
    rating: Optional[RatingPrompt] = None
    events: list[OutboundEvent] = Field(default_factory=list)
