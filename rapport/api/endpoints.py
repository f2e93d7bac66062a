"""API endpoints for the CRM assistant."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException

from rapport import __version__
from rapport.errors import TurnInProgressError
from rapport.models.conversation import CancelResponse, ConversationRequest, ConversationResponse, HealthResponse
from rapport.models.llm import TurnState
from rapport.services.conversation import ConversationService, get_conversation_service
from rapport.services.session_manager import InMemorySessionManager, session_manager
from rapport.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

TECHNICAL_DIFFICULTIES = "I apologize, but I'm experiencing technical difficulties. Please try again."


def get_session_manager() -> InMemorySessionManager:
    return session_manager


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> ConversationResponse:
    """Run one conversation turn and return the assistant's reply.

    A new session is created when no session ID is given. Tool calls made
    during the turn and their results are returned alongside the reply.
    """
    if request.session_id:
        logger.info(f"Validating existing session: {request.session_id}")
        session = sessions.get_session(request.session_id)
        if not session:
            logger.warning(f"Invalid session ID provided: {request.session_id}")
            raise HTTPException(status_code=400, detail=f"Invalid session ID: {request.session_id}")
    else:
        session = sessions.create_session(owner_id=request.owner_id, provider=request.provider)
        logger.info(f"Created session {session.session_id} using {session.provider}")

    session_id = session.session_id

    try:
        logger.info(f"Processing message for session {session_id}: {request.message[:50]}...")
        result = await service.process_message(request.message, session)
    except TurnInProgressError as e:
        logger.warning(f"Rejected message for busy session {session_id}")
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        logger.warning(f"Message validation error for session {session_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Conversation processing error for session {session_id}: {e}", exc_info=True)
        return ConversationResponse(
            response=TECHNICAL_DIFFICULTIES, session_id=session_id, status=TurnState.FAILED, error=str(e)
        )

    logger.info(f"Generated response for session {session_id}: {result.response_text[:50]}...")
    return ConversationResponse(
        response=result.response_text,
        session_id=session_id,
        status=result.state,
        error=result.error,
        tool_calls=result.tool_calls,
        tool_results=result.tool_results,
    )


@router.post("/conversation/{session_id}/cancel", response_model=CancelResponse, tags=["Conversation"])
async def cancel_conversation(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service),
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> CancelResponse:
    """Cancel the turn running in a session, if any."""
    session = sessions.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Unknown session ID: {session_id}")
    return CancelResponse(session_id=session_id, cancelled=service.cancel(session))


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(sessions: InMemorySessionManager = Depends(get_session_manager)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        details={"sessions": sessions.get_session_count()},
    )
