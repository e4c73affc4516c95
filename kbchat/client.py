"""Async HTTP client the chat widget uses to talk to the service.

Transport failures surface as ``httpx.HTTPError``; non-2xx replies as
``ApiError`` carrying the service's plain-language message.
"""

import logging

import httpx

from kbchat.models.schemas import (
    ChatResponse,
    InitResponse,
    KnowledgeDocument,
    StatusResponse,
)

logger = logging.getLogger(__name__)

_NOT_READY_PHRASES = ("still being processed", "not ready")


class ApiError(Exception):
    """The service answered with an error body."""

    def __init__(self, message: str, status_code: int, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @property
    def not_ready(self) -> bool:
        """True for warm-up conditions the widget should wait out silently."""
        if self.code == "not_ready":
            return True
        lowered = self.message.lower()
        return any(phrase in lowered for phrase in _NOT_READY_PHRASES)


class WidgetApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_status(self) -> StatusResponse:
        body = await self._request("GET", "/status")
        return StatusResponse.model_validate(body)

    async def initialize(self) -> InitResponse:
        body = await self._request("GET", "/init")
        return InitResponse.model_validate(body)

    async def send_message(self, message: str) -> ChatResponse:
        body = await self._request("POST", "/chat", json={"message": message})
        return ChatResponse.model_validate(body)

    async def list_documents(self) -> list[KnowledgeDocument]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/documents")
        if response.status_code != 200:
            raise ApiError("Documents are unavailable.", response.status_code)
        return [KnowledgeDocument.model_validate(item) for item in response.json()]

    async def fetch_document(self, file_name: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/documents/{file_name}")
        if response.status_code != 200:
            raise ApiError(f"Document '{file_name}' is unavailable.", response.status_code)
        return response.content

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, f"{self.base_url}{path}", **kwargs)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400 or not isinstance(body, dict):
            error = body.get("error") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            message = error or f"Request failed (HTTP {response.status_code})"
            logger.debug("%s %s -> %d: %s", method, path, response.status_code, message)
            raise ApiError(message, response.status_code, code)

        return body
