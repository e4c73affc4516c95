"""Knowledge base document endpoints for the PDF viewer."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from kbchat.api.deps import get_knowledge_base
from kbchat.core.knowledge_base import KnowledgeBase
from kbchat.models.schemas import KnowledgeDocument

router = APIRouter()


@router.get("/documents", response_model=list[KnowledgeDocument])
def get_documents(
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
) -> list[KnowledgeDocument]:
    """List the knowledge-base PDFs with their page counts."""
    return knowledge_base.list_documents()


@router.get("/documents/{file_name}")
def get_document(
    file_name: str,
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
) -> FileResponse:
    """Stream one knowledge-base PDF by basename."""
    path = knowledge_base.find_file(file_name)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Document '{file_name}' not found.")
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=file_name,
        content_disposition_type="inline",
    )
