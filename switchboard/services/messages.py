"""Customer-facing texts produced by the routing core."""

from typing import Iterable

from switchboard.models.routing import DepartmentOption

AI_UNAVAILABLE = (
    "I'm sorry, but the AI service is not available right now. Let me connect you with a human agent."
)
TECHNICAL_DIFFICULTIES = (
    "I'm experiencing some technical difficulties. Let me connect you with a human agent "
    "who can better assist you."
)

HUMAN_HANDOFF = (
    "I understand you'd like to speak with a human agent. I'm connecting you with our {department} team. "
    "Please wait a moment while I find an available agent for you."
)

TRANSFER = (
    "I can see you need help with {department}-related matters. Let me connect you with our {role} "
    "who specializes in this area.\n\n{greeting}"
)
TRANSFER_BACK = (
    "I'm transferring you back to our main assistant who can help you with anything else you need.\n\n"
    "{greeting} Is there anything else I can help you with today?"
)
SPECIALIST_SWITCH = (
    "I can see this is more of a {department} question. Let me transfer you to our {role} "
    "who can better assist you.\n\n{greeting}"
)
SELECTION_TRANSFER = "Perfect! I'm connecting you with our {name}.\n\n{greeting}"
SELECTION_REPROMPT = (
    "I'm not sure which department you'd like. Could you please choose from:\n{menu}\n\n"
    "Or you can say 'human agent' to speak with someone directly."
)

REQUESTED_DEPARTMENT = " I see you're looking for {role} help. I'll help you get connected with the right specialist."

FLOW_AGENT_QUEUE = "Please wait while we connect you to an agent..."
FLOW_AI_HANDOFF = "Connecting you to our AI assistant..."
FLOW_RATING = "How was your experience?"
FLOW_USE_OPTIONS = "I understand. Please use the options below to continue."
FLOW_RATING_THANKS = "Thank you for your feedback!"

EMPTY_MESSAGE = "I didn't catch that. What can I help you with today?"


def department_menu(options: Iterable[DepartmentOption]) -> str:
    return "\n".join(f"• {option.name} - {option.description}" for option in options)
