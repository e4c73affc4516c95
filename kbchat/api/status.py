from fastapi import APIRouter, Depends

from kbchat.api.deps import get_knowledge_base
from kbchat.core.knowledge_base import KnowledgeBase
from kbchat.models.schemas import StatusResponse

router = APIRouter()


@router.get("/status", response_model=StatusResponse, response_model_exclude_none=True)
async def status(
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
) -> StatusResponse:
    return await knowledge_base.current_status()
