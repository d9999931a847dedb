"""Fixed-phrase detection for customer requests that pre-empt department routing."""

import re
from enum import Enum

HUMAN_REQUEST_PHRASES = (
    "human agent",
    "real person",
    "speak to someone",
    "talk to agent",
    "human help",
    "live agent",
    "customer service",
    "representative",
)

RETURN_TO_HUB_PHRASES = (
    "general help",
    "main menu",
    "go back",
    "start over",
    "different question",
    "something else",
    "other help",
    "general chat",
    "main assistant",
)


class Intent(str, Enum):
    HUMAN_REQUEST = "human_request"  # customer asks for a person
    RETURN_TO_HUB = "return_to_hub"  # customer wants the main assistant again
    OTHER = "other"


def normalize_for_matching(text: str) -> str:
    """Casefold, collapse whitespace and trim surrounding punctuation."""
    if not text:
        return ""

    normalized = text.strip().casefold()
    normalized = re.sub(r"\s+", " ", normalized)
    normalized = re.sub(r"^[^\w]+|[^\w]+$", "", normalized)
    return normalized


def _contains_any(text: str, phrases) -> bool:
    normalized = normalize_for_matching(text)
    if not normalized:
        return False
    return any(phrase in normalized for phrase in phrases)


def is_human_request_message(message: str) -> bool:
    return _contains_any(message, HUMAN_REQUEST_PHRASES)


def is_return_to_hub_message(message: str) -> bool:
    return _contains_any(message, RETURN_TO_HUB_PHRASES)


def classify_intent(message: str) -> Intent:
    """Human requests win over return-to-hub requests."""
    if is_human_request_message(message):
        return Intent.HUMAN_REQUEST
    if is_return_to_hub_message(message):
        return Intent.RETURN_TO_HUB
    return Intent.OTHER
