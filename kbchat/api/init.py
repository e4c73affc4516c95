"""Knowledge base initialization endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from kbchat.api.deps import get_knowledge_base
from kbchat.core.knowledge_base import KnowledgeBase, KnowledgeBaseError
from kbchat.core.openai_client import ConfigurationError, OracleError
from kbchat.models.schemas import ErrorResponse, InitResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/init",
    response_model=InitResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def init(
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
) -> InitResponse:
    """Upload the knowledge base if needed and wait (bounded) until it is ready."""
    try:
        return await knowledge_base.initialize()
    except KnowledgeBaseError as exc:
        raise HTTPException(status_code=400, detail={"error": str(exc), "code": exc.code})
    except ConfigurationError as exc:
        logger.error("Init rejected: %s", exc)
        raise HTTPException(status_code=500, detail={"error": str(exc), "code": "configuration"})
    except OracleError:
        logger.exception("Init failed")
        raise HTTPException(
            status_code=502,
            detail={
                "error": "Unable to prepare the knowledge base right now. Please try again.",
                "code": "oracle",
            },
        )
