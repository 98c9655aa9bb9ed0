"""Query API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from docqa.api.dependencies import get_runtime
from docqa.core.logging import get_logger
from docqa.models.dto import ChatRequest, ChatResponse
from docqa.retrieval.runtime import KnowledgeRuntime
from docqa.utils.text import truncate
from docqa.utils.time import utc_now

logger = get_logger(__name__)

router = APIRouter()


@router.post("/chat", response_model=ChatResponse, summary="Answer a question from stored knowledge")
def chat(
    request: ChatRequest,
    runtime: KnowledgeRuntime = Depends(get_runtime),
) -> ChatResponse:
    message = request.message
    if not isinstance(message, str) or not message.strip():
        raise HTTPException(
            status_code=400,
            detail="Invalid request. 'message' field is required and must be a string.",
        )
    if not runtime.is_ready:
        raise HTTPException(
            status_code=503,
            detail="Runtime is not ready yet. Please try again in a moment.",
        )
    logger.info("Processing chat message: %s", truncate(message, 50))
    response = runtime.generate_response(message, request.recent_messages)
    return ChatResponse(response=response, timestamp=utc_now())


__all__ = ["router"]
