from fastapi import APIRouter, Depends, HTTPException

from switchboard.core import Core, get_core
from switchboard.logging_config import get_logger
from switchboard.models.router_result import RouterResult
from switchboard.schemas.message import ChoiceRequest, MessageRequest, RatingRequest
from switchboard.schemas.session import CloseResponse, SessionRequest, SessionResponse
from switchboard.services.result import NOT_FOUND

logger = get_logger("chat_router")

router = APIRouter()


@router.post("/sessions", response_model=SessionResponse)
async def open_session(request: SessionRequest, core: Core = Depends(get_core)):
    """Start a conversation for a customer, or reconnect to the live one."""
    conversation, resumed = core.sessions.start_or_resume(
        request.customer_id,
        department=request.department,
        name=request.customer_name,
    )

    opening = None
    if not resumed:
        opening = await core.router.open_conversation(conversation.id)
        conversation = core.store.get(conversation.id) or conversation

    return SessionResponse(
        conversation_id=conversation.id,
        resumed=resumed,
        conversation=conversation,
        opening=opening,
    )


@router.post("/message", response_model=RouterResult)
async def handle_message(request: MessageRequest, core: Core = Depends(get_core)):
    return await core.router.handle_message(request.conversation_id, request.content, request.customer_name)


@router.post("/flow/choice", response_model=RouterResult)
async def select_choice(request: ChoiceRequest, core: Core = Depends(get_core)):
    return await core.router.select_choice(request.conversation_id, request.step_id, request.value)


@router.post("/flow/rating", response_model=RouterResult)
async def submit_rating(request: RatingRequest, core: Core = Depends(get_core)):
    return await core.router.submit_rating(request.conversation_id, request.step_id, request.score)


@router.delete("/sessions/{conversation_id}", response_model=CloseResponse)
async def close_session(conversation_id: str, core: Core = Depends(get_core)):
    result = await core.sessions.close(conversation_id)
    if result.failed_with(NOT_FOUND):
        raise HTTPException(status_code=404, detail=result.error)
    return CloseResponse(success=True, conversation_id=conversation_id)
