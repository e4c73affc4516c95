from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Internal data models
# ---------------------------------------------------------------------------

class Citation(BaseModel):
    """A (fileName, page) pair pointing at a page of a knowledge-base PDF.

    THIS WIRE SHAPE IS LOCKED. The prompt, the trailing SOURCES_JSON line
    and the widget's PDF navigation all depend on it.
    """

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")   # Basename of a known document
    page: int = Field(ge=1)                    # 1-indexed, as shown in a viewer


class FileCounts(BaseModel):
    """Per-collection ingestion counters, as reported by the oracle."""

    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    total: int = 0


class KnowledgeBaseCollection(BaseModel):
    """An oracle-side vector store holding the uploaded documents."""

    id: str
    name: str | None = None
    status: str     # "in_progress", "completed" or "failed"
    file_counts: FileCounts = FileCounts()

    @property
    def ready(self) -> bool:
        return self.status != "in_progress" and self.file_counts.completed > 0


class OracleAnswer(BaseModel):
    """Raw output text of one oracle call plus its provenance annotations."""

    text: str
    annotations: list[dict] = []


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    PENDING = "pending"


class ChatMessage(BaseModel):
    """One entry of the widget conversation.

    Frozen: citations are attached by replacing the entry with a copy.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    role: MessageRole
    timestamp: datetime
    citations: tuple[Citation, ...] = ()


class KnowledgeDocument(BaseModel):
    """A PDF in the local knowledge base."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    file_name: str
    page_count: int
    size_bytes: int


# ---------------------------------------------------------------------------
# API request / response models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(BaseModel):
    """Request body for POST /chat."""

    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    """Returned from POST /chat."""

    reply: str
    sources: list[Citation]


class UploadedFile(BaseModel):
    id: str
    name: str


class InitResponse(_CamelModel):
    """Returned from GET /init."""

    message: str
    ready: bool
    vector_store_id: str
    status: str
    file_counts: FileCounts
    file_count: int | None = None
    files: list[UploadedFile] | None = None
    stored_successfully: bool | None = None


class StatusResponse(_CamelModel):
    """Returned from GET /status. Always sent with HTTP 200."""

    ready: bool
    status: str     # oracle status, "not_initialized" or "error"
    file_counts: FileCounts | None = None
    vector_store_id: str | None = None
    error: str | None = None


class HealthResponse(_CamelModel):
    """Returned from GET /health."""

    status: str
    vector_store_id: str | None
    openai_configured: bool


class ErrorResponse(BaseModel):
    """Body of every non-2xx reply."""

    error: str
    code: str | None = None
