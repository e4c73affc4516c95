"""Shared test fixtures for the knowledge base chat test suite."""

import os

import pytest

from kbchat.config import Settings, settings
from kbchat.core.collection_store import CollectionStore
from kbchat.core.knowledge_base import KnowledgeBase
from kbchat.core.openai_client import OracleError
from kbchat.models.schemas import FileCounts, KnowledgeBaseCollection, OracleAnswer

# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

requires_api_key = pytest.mark.skipif(
    not settings.openai_api_key,
    reason="OPENAI_API_KEY not configured — skipping live API test",
)

integration = pytest.mark.integration


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def make_collection(
    collection_id: str = "vs_123",
    status: str = "completed",
    completed: int = 2,
    name: str | None = "Company Knowledge Base (Multi-File)",
) -> KnowledgeBaseCollection:
    return KnowledgeBaseCollection(
        id=collection_id,
        name=name,
        status=status,
        file_counts=FileCounts(completed=completed, total=max(completed, 2)),
    )


class FakeOpenAIClient:
    """Stands in for ``OpenAIClient``; records calls, never touches the network.

    ``statuses[id]`` is a queue of successive retrieve results; the last one
    repeats once the queue is down to a single entry.
    """

    def __init__(self) -> None:
        self.uploaded: list[str] = []
        self.created: list[tuple[str, list[str]]] = []
        self.statuses: dict[str, list[KnowledgeBaseCollection]] = {}
        self.listed: list[KnowledgeBaseCollection] = []
        self.list_error: Exception | None = None
        self.retrieve_error: Exception | None = None
        self.answer = OracleAnswer(text="Hello.\nSOURCES_JSON={\"sources\":[]}")
        self.requests: list[dict] = []
        self.new_collection_id = "vs_new"

    async def upload_file(self, path: str) -> str:
        self.uploaded.append(path)
        return f"file-{len(self.uploaded)}"

    async def create_vector_store(self, name: str, file_ids: list[str]) -> KnowledgeBaseCollection:
        self.created.append((name, file_ids))
        collection = make_collection(self.new_collection_id, "in_progress", 0, name)
        self.statuses.setdefault(self.new_collection_id, [collection])
        return collection

    async def retrieve_vector_store(self, vector_store_id: str) -> KnowledgeBaseCollection:
        if self.retrieve_error is not None:
            raise self.retrieve_error
        queue = self.statuses.get(vector_store_id)
        if not queue:
            raise OracleError(f"No such vector store: {vector_store_id}")
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    async def list_vector_stores(self, limit: int = 50) -> list[KnowledgeBaseCollection]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.listed)

    async def create_response(self, payload: dict) -> OracleAnswer:
        self.requests.append(payload)
        return self.answer


# ---------------------------------------------------------------------------
# Settings / registrar fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the developer's .env, with instant polling."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        vector_store_id="",
        vector_store_id_file=str(tmp_path / ".vector-store-id"),
        public_dir=str(tmp_path / "public"),
        knowledge_base_dir=str(tmp_path / "public" / "knowledge-base"),
        init_poll_max_attempts=5,
        init_poll_interval_seconds=0.0,
        client_poll_max_attempts=5,
        client_poll_interval_seconds=0.0,
    )


@pytest.fixture
def fake_client() -> FakeOpenAIClient:
    return FakeOpenAIClient()


@pytest.fixture
def knowledge_base(test_settings: Settings, fake_client: FakeOpenAIClient) -> KnowledgeBase:
    store = CollectionStore(test_settings.vector_store_id, test_settings.vector_store_id_file)
    return KnowledgeBase(test_settings, fake_client, store)


@pytest.fixture
def kb_dir(test_settings: Settings) -> str:
    """A knowledge-base directory holding two small PDFs and a stray text file."""
    os.makedirs(test_settings.knowledge_base_dir)
    for name, pages in (
        ("manual.pdf", ["Fan installation steps.", "Warranty terms.", "Contact us."]),
        ("policies.pdf", ["Return policy within 30 days."]),
    ):
        with open(os.path.join(test_settings.knowledge_base_dir, name), "wb") as f:
            f.write(_build_minimal_pdf(pages))
    with open(os.path.join(test_settings.knowledge_base_dir, "notes.txt"), "w") as f:
        f.write("not a pdf")
    return test_settings.knowledge_base_dir


# ---------------------------------------------------------------------------
# Test PDF fixture
# ---------------------------------------------------------------------------


def _build_minimal_pdf(text_pages: list[str]) -> bytes:
    """Build a minimal valid PDF from scratch (no external library needed).

    Creates a bare-bones PDF with one or more pages containing the given text.
    """
    objects: list[bytes] = []
    offsets: list[int] = []

    def add_obj(content: bytes) -> int:
        objects.append(content)
        return len(objects)

    add_obj(b"<< /Type /Catalog /Pages 2 0 R >>")
    pages_num = add_obj(b"PLACEHOLDER")
    font_num = add_obj(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")

    page_obj_nums: list[int] = []
    for page_text in text_pages:
        encoded = page_text.encode("latin-1", errors="replace")
        stream_content = b"BT /F1 12 Tf 72 720 Td (" + encoded + b") Tj ET"
        stream_obj = add_obj(
            b"<< /Length " + str(len(stream_content)).encode() + b" >>\nstream\n"
            + stream_content + b"\nendstream"
        )
        page_obj_nums.append(add_obj(
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            b"/Contents " + str(stream_obj).encode() + b" 0 R "
            b"/Resources << /Font << /F1 " + str(font_num).encode() + b" 0 R >> >> >>"
        ))

    kids = b" ".join(str(n).encode() + b" 0 R" for n in page_obj_nums)
    objects[pages_num - 1] = (
        b"<< /Type /Pages /Kids [" + kids + b"] /Count "
        + str(len(page_obj_nums)).encode() + b" >>"
    )

    buf = bytearray(b"%PDF-1.4\n")
    for i, obj_content in enumerate(objects):
        offsets.append(len(buf))
        buf += f"{i + 1} 0 obj\n".encode() + obj_content + b"\nendobj\n"

    xref_offset = len(buf)
    buf += f"xref\n0 {len(objects) + 1}\n".encode()
    buf += b"0000000000 65535 f \n"
    for off in offsets:
        buf += f"{off:010d} 00000 n \n".encode()
    buf += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n".encode()
    buf += f"startxref\n{xref_offset}\n%%EOF\n".encode()

    return bytes(buf)


@pytest.fixture
def test_pdf_path(tmp_path) -> str:
    """Create a tiny valid PDF with 2 pages of text."""
    path = tmp_path / "test_sample.pdf"
    path.write_bytes(_build_minimal_pdf([
        "This is page one about ceiling fan installation.",
        "This is page two about warranty and support.",
    ]))
    return str(path)


@pytest.fixture
def empty_pdf_path(tmp_path) -> str:
    """Create a 0-byte file pretending to be a PDF."""
    path = tmp_path / "empty.pdf"
    path.write_bytes(b"")
    return str(path)


@pytest.fixture
def corrupt_pdf_path(tmp_path) -> str:
    """Create a file with random bytes (not a valid PDF)."""
    path = tmp_path / "corrupt.pdf"
    path.write_bytes(b"this is definitely not a PDF file content!!!")
    return str(path)
