"""Chat API endpoint.

Thin HTTP layer — no business logic, no prompts, no parsing.
Just: receive request → call core → return response.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from kbchat.api.deps import get_knowledge_base
from kbchat.core.chat_service import process_chat
from kbchat.core.knowledge_base import KnowledgeBase, KnowledgeBaseError
from kbchat.core.openai_client import ConfigurationError, OracleError
from kbchat.models.schemas import ChatRequest, ChatResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()

_APOLOGY = "Sorry, I couldn't process your request right now. Please try again."


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    request: ChatRequest,
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
) -> ChatResponse:
    """Answer a question from the knowledge base, with page citations."""
    try:
        return await process_chat(request, knowledge_base)
    except KnowledgeBaseError as exc:
        raise HTTPException(status_code=400, detail={"error": str(exc), "code": exc.code})
    except ConfigurationError as exc:
        logger.error("Chat rejected: %s", exc)
        raise HTTPException(status_code=500, detail={"error": str(exc), "code": "configuration"})
    except OracleError:
        logger.exception("Chat failed")
        raise HTTPException(status_code=502, detail={"error": _APOLOGY, "code": "oracle"})
