"""
Chat API Endpoint.

Conversational doctor matching. The session id is returned on creation and
must be sent back for every message.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_request_context, get_service
from app.core.assistant import ConversationSession
from app.core.service import ConsultationService, RequestContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


class ChatRequest(BaseModel):
    """Chat message request."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Patient's message",
        examples=["I've had chest pain for two days, who should I see?"],
    )


class ChatResponse(BaseModel):
    """Chat response."""

    message: str = Field(..., description="Assistant's reply")
    session_id: str = Field(..., description="Session ID for continuing conversation")
    turn_count: int = Field(..., description="Turns in the session after this reply")


class TurnOut(BaseModel):
    role: str
    text: str


class SessionOut(BaseModel):
    """Conversation session with full history."""

    session_id: str
    patient_id: Optional[str] = None
    turns: list[TurnOut]
    awaiting_reply: bool

    @classmethod
    def from_session(cls, session: ConversationSession) -> "SessionOut":
        return cls(
            session_id=session.session_id,
            patient_id=session.patient_id,
            turns=[TurnOut(**t) for t in session.history()],
            awaiting_reply=session.awaiting_reply,
        )


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


@router.post(
    "/sessions",
    response_model=SessionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Start a chat session",
)
async def start_session(
    context: RequestContext = Depends(get_request_context),
    service: ConsultationService = Depends(get_service),
) -> SessionOut:
    session = await service.start_chat(context.patient_id)
    return SessionOut.from_session(session)


@router.post(
    "/sessions/{session_id}/messages",
    response_model=ChatResponse,
    summary="Send a chat message",
    description="Send a message to the matching assistant and get its recommendation.",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Previous message still in progress"},
        502: {"model": ErrorResponse, "description": "Recommendation service unavailable"},
    },
)
async def send_message(
    session_id: str,
    request: ChatRequest,
    context: RequestContext = Depends(get_request_context),
    service: ConsultationService = Depends(get_service),
) -> ChatResponse:
    """
    Process a chat message.

    On a 502 the patient's message is kept in the history; sending the
    next message continues the same conversation.
    """
    reply = await service.send_chat_message(session_id, request.message, context.location)
    session = await service.get_chat(session_id)

    return ChatResponse(
        message=reply,
        session_id=session_id,
        turn_count=len(session.turns),
    )


@router.get(
    "/sessions/{session_id}",
    response_model=SessionOut,
    summary="Get session history",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_session(
    session_id: str,
    service: ConsultationService = Depends(get_service),
) -> SessionOut:
    session = await service.get_chat(session_id)
    return SessionOut.from_session(session)


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End a session",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def end_session(
    session_id: str,
    service: ConsultationService = Depends(get_service),
) -> None:
    await service.get_chat(session_id)
    await service.end_chat(session_id)
