"""Learning assistant endpoints."""

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from app.assistant.chat_engine import FALLBACK_REPLY, ChatEngine
from app.core.dependencies import get_current_user, get_http_client
from app.core.errors import ChatServiceError
from app.schemas.chat import ChatRequest, ChatResponse

logger = structlog.get_logger()
router = APIRouter()


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    current_user: dict = Depends(get_current_user),
    http_client: httpx.AsyncClient = Depends(get_http_client)
):
    """Ask the learning assistant a question."""
    try:
        return await ChatEngine(http_client).complete(request)
    except ChatServiceError as e:
        logger.error("Chat API error", user_id=current_user["sub"], error=str(e))
        return JSONResponse(
            content=ChatResponse(response=FALLBACK_REPLY, error=True).model_dump(),
            status_code=500
        )
