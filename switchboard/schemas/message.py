from typing import Optional

from pydantic import BaseModel, Field


class MessageRequest(BaseModel):
    conversation_id: str
    content: str
    customer_name: Optional[str] = None


class ChoiceRequest(BaseModel):
    conversation_id: str
    step_id: str
    value: str


class RatingRequest(BaseModel):
    conversation_id: str
    step_id: str
    score: int = Field(ge=0)
