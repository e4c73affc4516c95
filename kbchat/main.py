import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kbchat.api import chat, documents, health, init, status
from kbchat.config import settings
from kbchat.core.knowledge_base import KnowledgeBase

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Knowledge Base Chat",
    description="Customer-support chat over company PDFs with page citations",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(init.router)
app.include_router(status.router)
app.include_router(chat.router)
app.include_router(documents.router)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": ..., "code"?: ...}``."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request: a non-empty 'message' is required.", "code": "invalid_request"},
    )


@app.on_event("startup")
def startup() -> None:
    """Build the registrar and restore the persisted vector store id."""
    knowledge_base = KnowledgeBase.from_settings(settings)
    knowledge_base.store.load()
    app.state.knowledge_base = knowledge_base
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; chat and init will fail.")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
