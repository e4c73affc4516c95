"""OpenAI REST client: files, vector stores and the Responses API.

Async httpx — no vendor SDK.  Pure logic — no FastAPI imports.
The transport is injectable so tests can run without the network.
"""

import asyncio
import logging
import os

import httpx

from kbchat.config import Settings
from kbchat.models.schemas import KnowledgeBaseCollection, OracleAnswer

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_INITIAL_BACKOFF_SECONDS = 1.0


class OracleError(Exception):
    """Raised when an OpenAI API call fails or returns something unexpected."""


class ConfigurationError(OracleError):
    """Raised when the client is not configured well enough to make any call."""


class OpenAIClient:
    """Thin wrapper over the handful of OpenAI endpoints the widget needs.

    Retries on rate limits (429) and network errors.
    Fails fast on auth errors (401) and on a missing API key.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_seconds: float = _INITIAL_BACKOFF_SECONDS,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._backoff_seconds = backoff_seconds

    # ------------------------------------------------------------------
    # Files and vector stores
    # ------------------------------------------------------------------

    async def upload_file(self, path: str) -> str:
        """Upload one document and return its file id."""
        with open(path, "rb") as f:
            contents = f.read()
        files = {"file": (os.path.basename(path), contents, "application/pdf")}
        body = await self._request(
            "POST", "/files", data={"purpose": "assistants"}, files=files,
        )
        return _require(body, "id")

    async def create_vector_store(
        self, name: str, file_ids: list[str]
    ) -> KnowledgeBaseCollection:
        body = await self._request(
            "POST", "/vector_stores", json={"name": name, "file_ids": file_ids},
        )
        return _parse_collection(body)

    async def retrieve_vector_store(self, vector_store_id: str) -> KnowledgeBaseCollection:
        body = await self._request("GET", f"/vector_stores/{vector_store_id}")
        return _parse_collection(body)

    async def list_vector_stores(self, limit: int = 50) -> list[KnowledgeBaseCollection]:
        body = await self._request("GET", "/vector_stores", params={"limit": limit})
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise OracleError("Unexpected vector store list format: missing 'data'")
        return [_parse_collection(item) for item in data]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def create_response(self, payload: dict) -> OracleAnswer:
        """Send a prepared Responses API request and return its output text."""
        body = await self._request("POST", "/responses", json=payload)
        return parse_response_output(body)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _validate_api_key(self) -> None:
        if not self.settings.openai_api_key:
            raise ConfigurationError(
                "OpenAI API key is not configured. "
                "Set OPENAI_API_KEY in your .env file."
            )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        self._validate_api_key()

        url = f"{self.settings.openai_base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.settings.openai_api_key}",
            "OpenAI-Beta": "assistants=v2",
        }

        last_error: Exception | None = None
        backoff = self._backoff_seconds

        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.settings.request_timeout_seconds,
                    transport=self._transport,
                ) as client:
                    response = await client.request(method, url, headers=headers, **kwargs)

                if response.status_code == 401:
                    raise ConfigurationError(
                        "OpenAI API authentication failed (HTTP 401). "
                        "Check your OPENAI_API_KEY."
                    )

                if response.status_code == 429:
                    if attempt < _MAX_RETRIES:
                        logger.warning(
                            "Rate limited (429). Retrying in %.1fs (attempt %d/%d).",
                            backoff, attempt, _MAX_RETRIES,
                        )
                        await asyncio.sleep(backoff)
                        backoff *= 2
                        continue
                    raise OracleError("OpenAI API rate limit exceeded after retries.")

                if response.status_code >= 400:
                    raise OracleError(
                        f"OpenAI API error (HTTP {response.status_code}) "
                        f"on {method} {path}: {response.text[:500]}"
                    )

                return response.json()

            except OracleError:
                raise

            except ValueError as exc:
                raise OracleError(f"OpenAI API returned invalid JSON: {exc}") from exc

            except httpx.HTTPError as exc:
                last_error = exc
                if attempt < _MAX_RETRIES:
                    logger.warning(
                        "Network error: %s. Retrying in %.1fs (attempt %d/%d).",
                        exc, backoff, attempt, _MAX_RETRIES,
                    )
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue

        raise OracleError(
            f"OpenAI API request failed after {_MAX_RETRIES} attempts: {last_error}"
        )


# ------------------------------------------------------------------
# Response parsing
# ------------------------------------------------------------------


def parse_response_output(body: dict) -> OracleAnswer:
    """Pull the assistant text and its annotations out of a Responses API body.

    The first ``message`` item's first ``output_text`` part wins.
    """
    try:
        for item in body["output"]:
            if item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if part.get("type") == "output_text":
                    annotations = part.get("annotations") or []
                    return OracleAnswer(
                        text=part["text"],
                        annotations=[a for a in annotations if isinstance(a, dict)],
                    )
    except (KeyError, TypeError, AttributeError) as exc:
        raise OracleError(f"Unexpected Responses API format: {exc}") from exc

    raise OracleError("Responses API returned no output text.")


def _parse_collection(body: dict) -> KnowledgeBaseCollection:
    try:
        return KnowledgeBaseCollection(
            id=body["id"],
            name=body.get("name"),
            status=body["status"],
            file_counts=body.get("file_counts") or {},
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise OracleError(f"Unexpected vector store format: {exc}") from exc


def _require(body: dict, key: str) -> str:
    try:
        return body[key]
    except (KeyError, TypeError) as exc:
        raise OracleError(f"OpenAI API response is missing '{key}'") from exc
