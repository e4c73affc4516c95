"""Knowledge base registrar.

Pure logic — no FastAPI imports.  Coordinates:
  local PDFs  →  OpenAI files  →  vector store  →  persisted id

The rest of the app only ever sees one vector store id, and only once it is
ready.
"""

import logging
import os

from kbchat.config import Settings
from kbchat.core.collection_store import CollectionStore
from kbchat.core.openai_client import OpenAIClient, OracleError
from kbchat.core.pdf_pages import PDFProcessingError, count_pages
from kbchat.core.polling import PollingPolicy, poll_until
from kbchat.models.schemas import (
    InitResponse,
    KnowledgeBaseCollection,
    KnowledgeDocument,
    StatusResponse,
    UploadedFile,
)

logger = logging.getLogger(__name__)


class KnowledgeBaseError(Exception):
    """Base class for knowledge base conditions a caller must handle."""

    code = "knowledge_base"


class NotInitializedError(KnowledgeBaseError):
    """No vector store id is known and discovery found none."""

    code = "not_initialized"


class NotReadyError(KnowledgeBaseError):
    """A vector store exists but is still ingesting, or holds no files."""

    code = "not_ready"


class NoDocumentsError(KnowledgeBaseError):
    """There are no PDFs to upload."""

    code = "no_documents"


class KnowledgeBase:
    def __init__(
        self,
        settings: Settings,
        client: OpenAIClient,
        store: CollectionStore,
    ) -> None:
        self.settings = settings
        self.client = client
        self.store = store

    @classmethod
    def from_settings(cls, settings: Settings) -> "KnowledgeBase":
        return cls(
            settings,
            OpenAIClient(settings),
            CollectionStore(settings.vector_store_id, settings.vector_store_id_file),
        )

    @property
    def init_policy(self) -> PollingPolicy:
        return PollingPolicy(
            max_attempts=self.settings.init_poll_max_attempts,
            interval_seconds=self.settings.init_poll_interval_seconds,
            backoff_factor=self.settings.poll_backoff_factor,
            max_interval_seconds=self.settings.poll_max_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Local documents
    # ------------------------------------------------------------------

    def list_files(self) -> list[str]:
        """Paths of the PDFs to upload.

        All ``*.pdf`` files in ``knowledge_base_dir``; if that directory does
        not exist, whichever ``fallback_documents`` exist under ``public_dir``.
        """
        kb_dir = self.settings.knowledge_base_dir
        if os.path.isdir(kb_dir):
            logger.info("Using knowledge-base directory: %s", kb_dir)
            return [
                os.path.join(kb_dir, name)
                for name in sorted(os.listdir(kb_dir))
                if name.lower().endswith(".pdf")
            ]

        logger.info("Knowledge-base directory not found, checking %s", self.settings.public_dir)
        candidates = [
            os.path.join(self.settings.public_dir, name)
            for name in self.settings.fallback_documents
        ]
        return [path for path in candidates if os.path.isfile(path)]

    def list_documents(self) -> list[KnowledgeDocument]:
        """Describe the local PDFs for the viewer.  Unreadable files are skipped."""
        documents: list[KnowledgeDocument] = []
        for path in self.list_files():
            try:
                page_count = count_pages(path)
            except PDFProcessingError as exc:
                logger.warning("Skipping unreadable PDF %s: %s", path, exc)
                continue
            documents.append(KnowledgeDocument(
                file_name=os.path.basename(path),
                page_count=page_count,
                size_bytes=os.path.getsize(path),
            ))
        return documents

    def find_file(self, file_name: str) -> str | None:
        """Resolve a basename to a knowledge-base path, or None."""
        if os.path.basename(file_name) != file_name:
            return None
        for path in self.list_files():
            if os.path.basename(path) == file_name:
                return path
        return None

    # ------------------------------------------------------------------
    # Registrar operations
    # ------------------------------------------------------------------

    async def upload_and_register(
        self, document_paths: list[str]
    ) -> tuple[KnowledgeBaseCollection, list[UploadedFile]]:
        """Upload every document and create one named vector store over them.

        Persists the new id before returning.
        """
        if not document_paths:
            raise NoDocumentsError(
                "No knowledge base PDF files found. Please ensure PDF files are "
                "in the knowledge-base directory."
            )

        uploaded: list[UploadedFile] = []
        for path in document_paths:
            name = os.path.basename(path)
            file_id = await self.client.upload_file(path)
            logger.info("File created with ID: %s (%s)", file_id, name)
            uploaded.append(UploadedFile(id=file_id, name=name))

        collection = await self.client.create_vector_store(
            self.settings.vector_store_name, [f.id for f in uploaded],
        )
        logger.info(
            "Vector store created: %s (%d files).", collection.id, len(uploaded),
        )
        self.store.set(collection.id)
        return collection, uploaded

    async def get_status(self, collection_id: str) -> KnowledgeBaseCollection:
        return await self.client.retrieve_vector_store(collection_id)

    async def discover_by_name(self, name: str | None = None) -> str | None:
        """Find an existing ready-to-use vector store by name.

        Only stores with at least one completed file qualify.  Listing
        failures are logged and treated as "nothing found".
        """
        name = name or self.settings.vector_store_name
        try:
            collections = await self.client.list_vector_stores(
                limit=self.settings.discovery_list_limit,
            )
        except OracleError as exc:
            logger.warning("Unable to list vector stores for discovery: %s", exc)
            return None

        for collection in collections:
            if collection.name == name and collection.file_counts.completed > 0:
                logger.info("Discovered existing vector store: %s", collection.id)
                return collection.id
        return None

    async def resolve_collection_id(self) -> str | None:
        """Persisted id, or the result of discovery (which is then persisted)."""
        collection_id = self.store.get()
        if collection_id:
            return collection_id

        collection_id = await self.discover_by_name()
        if collection_id:
            self.store.set(collection_id)
        return collection_id

    async def wait_until_ready(self, collection_id: str) -> KnowledgeBaseCollection:
        """Poll until ready or out of attempts; returns the last status seen."""
        result = await poll_until(
            lambda: self.get_status(collection_id),
            lambda collection: collection.ready,
            self.init_policy,
            label=f"Vector store {collection_id} readiness",
        )
        return result.last

    # ------------------------------------------------------------------
    # Endpoint-level flows
    # ------------------------------------------------------------------

    async def require_ready(self) -> str:
        """Return a ready vector store id, or raise.

        Raises ``NotInitializedError`` or ``NotReadyError``; oracle failures
        propagate as ``OracleError``.
        """
        collection_id = await self.resolve_collection_id()
        if not collection_id:
            raise NotInitializedError(
                "Knowledge base not initialized. Please initialize before chatting."
            )

        collection = await self.get_status(collection_id)
        logger.debug(
            "Vector store %s status=%s completed=%d",
            collection_id, collection.status, collection.file_counts.completed,
        )
        if collection.status == "in_progress":
            raise NotReadyError(
                "Knowledge base is still being processed. "
                "Please wait a moment and try again."
            )
        if collection.file_counts.completed == 0:
            raise NotReadyError(
                "Knowledge base is not ready yet. Please try again in a moment."
            )
        return collection_id

    async def initialize(self) -> InitResponse:
        """Reuse a ready vector store, or upload the documents and wait.

        A stored store that is still ingesting is waited on, never replaced.
        Documents are uploaded again only when there is no stored id, it
        cannot be retrieved, or its ingestion finished with no completed files.
        """
        existing_id = await self.resolve_collection_id()
        if existing_id:
            try:
                existing = await self.get_status(existing_id)
            except OracleError as exc:
                logger.warning(
                    "Stored vector store %s not retrievable, will re-initialize: %s",
                    existing_id, exc,
                )
            else:
                if existing.ready:
                    return InitResponse(
                        message="System already initialized",
                        ready=True,
                        vector_store_id=existing_id,
                        status=existing.status,
                        file_counts=existing.file_counts,
                    )
                if existing.status == "in_progress":
                    logger.info("Vector store %s still ingesting; waiting on it.", existing_id)
                    latest = await self.wait_until_ready(existing_id) or existing
                    return InitResponse(
                        message="Knowledge base is still being processed",
                        ready=latest.ready,
                        vector_store_id=existing_id,
                        status=latest.status,
                        file_counts=latest.file_counts,
                    )
                logger.warning(
                    "Vector store %s finished with no completed files, will re-initialize.",
                    existing_id,
                )

        paths = self.list_files()
        logger.info("Found %d knowledge base files.", len(paths))
        collection, uploaded = await self.upload_and_register(paths)

        latest = await self.wait_until_ready(collection.id) or collection
        return InitResponse(
            message="System initialized and knowledge base uploaded",
            ready=latest.ready,
            vector_store_id=collection.id,
            status=latest.status,
            file_counts=latest.file_counts,
            file_count=len(paths),
            files=uploaded,
            stored_successfully=self.store.get() == collection.id,
        )

    async def current_status(self) -> StatusResponse:
        """Readiness snapshot for polling.  Never raises."""
        try:
            collection_id = await self.resolve_collection_id()
            if not collection_id:
                return StatusResponse(ready=False, status="not_initialized")

            collection = await self.get_status(collection_id)
        except OracleError as exc:
            logger.warning("Status check failed: %s", exc)
            return StatusResponse(
                ready=False,
                status="error",
                error="Unable to verify knowledge base status.",
            )

        return StatusResponse(
            ready=collection.ready,
            status=collection.status,
            file_counts=collection.file_counts,
            vector_store_id=collection_id,
        )
