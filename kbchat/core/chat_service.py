"""Chat pipeline orchestrator.

Pure logic — no FastAPI imports.  Coordinates:
  readiness gate → answer composer → oracle → citation extractor

Never queries the oracle without a ready vector store id.
"""

import logging
import time

from kbchat.core.citations import resolve_citations
from kbchat.core.knowledge_base import KnowledgeBase
from kbchat.core.prompt import build_answer_request
from kbchat.models.schemas import ChatRequest, ChatResponse, Citation

logger = logging.getLogger(__name__)


def default_citation(settings) -> Citation | None:
    """The configured always-navigate-somewhere citation, if opted in."""
    if not settings.default_citation_enabled or not settings.default_citation_file:
        return None
    return Citation(
        file_name=settings.default_citation_file,
        page=max(settings.default_citation_page, 1),
    )


async def process_chat(request: ChatRequest, knowledge_base: KnowledgeBase) -> ChatResponse:
    """Answer one question from the knowledge base.

    Steps:
    1. Resolve a ready vector store id (raises if none / not ready).
    2. Build the oracle request for the question.
    3. Call the oracle.
    4. Split the output into reply text and citations, with fallbacks.
    """
    start_time = time.time()
    settings = knowledge_base.settings

    # Step 1 — Readiness gate.
    vector_store_id = await knowledge_base.require_ready()

    # Step 2 — Compose.
    payload = build_answer_request(
        request.message, vector_store_id, settings.openai_chat_model,
    )

    # Step 3 — Generate.
    answer = await knowledge_base.client.create_response(payload)

    # Step 4 — Extract citations.
    extraction = resolve_citations(
        answer.text,
        annotations=answer.annotations,
        known_documents=settings.citation_fallback_documents,
        chars_per_page=settings.citation_chars_per_page,
        default_citation=default_citation(settings),
    )

    elapsed = int((time.time() - start_time) * 1000)
    logger.info(
        "Chat answered: sources=%d, time=%dms", len(extraction.citations), elapsed,
    )

    return ChatResponse(reply=extraction.display_text, sources=extraction.citations)
