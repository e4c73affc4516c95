from fastapi import APIRouter, Depends

from kbchat.api.deps import get_knowledge_base
from kbchat.core.knowledge_base import KnowledgeBase
from kbchat.models.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health_check(
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
) -> HealthResponse:
    return HealthResponse(
        status="OK",
        vector_store_id=knowledge_base.store.get(),
        openai_configured=bool(knowledge_base.settings.openai_api_key),
    )
