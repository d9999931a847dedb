from switchboard.models.conversation import (
    CONVERSATION_STEP,
    HUB_DEPARTMENT,
    Conversation,
    Department,
    HistoryEntry,
    HistoryRole,
)
from switchboard.models.events import EventType, OutboundEvent
from switchboard.models.flow import FlowOption, FlowScript, FlowStep, StepType
from switchboard.models.persona import Persona
from switchboard.models.router_result import ChoicePrompt, RatingPrompt, RouterAction, RouterResult
from switchboard.models.routing import DepartmentInfo, DepartmentOption, RoutingResult, RoutingRule

__all__ = [
    "CONVERSATION_STEP",
    "HUB_DEPARTMENT",
    "Conversation",
    "Department",
    "HistoryEntry",
    "HistoryRole",
    "EventType",
    "OutboundEvent",
    "FlowOption",
    "FlowScript",
    "FlowStep",
    "StepType",
    "Persona",
    "ChoicePrompt",
    "RatingPrompt",
    "RouterAction",
    "RouterResult",
    "DepartmentInfo",
    "DepartmentOption",
    "RoutingResult",
    "RoutingRule",
]
