from switchboard.schemas.message import ChoiceRequest, MessageRequest, RatingRequest
from switchboard.schemas.session import CloseResponse, SessionRequest, SessionResponse

__all__ = [
    "MessageRequest",
    "ChoiceRequest",
    "RatingRequest",
    "SessionRequest",
    "SessionResponse",
    "CloseResponse",
]
