"""Widget-side readiness state machine.

    UNINITIALIZED → DISCOVERING → READY
                              ↘ INGESTING → READY
                                          ↘ STILL_PREPARING (budget spent, not an error)
    DISCOVERING / INGESTING → ERROR (transport failure; retried on next action)

Sending is only allowed in READY.  A "not ready" reply to a send drops the
widget back to INGESTING and resumes polling instead of showing an error.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable

import httpx

from kbchat.client import ApiError, WidgetApiClient
from kbchat.core.conversation import Conversation
from kbchat.core.polling import PollingPolicy, poll_until
from kbchat.models.schemas import ChatMessage, MessageRole, StatusResponse

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hello! I'm your company assistant. I'm here to help you with any questions "
    "about our company, policies, services, or any other information you might "
    "need. What would you like to know?"
)
APOLOGY_MESSAGE = "Sorry, I encountered an error answering that. Please try again."
PENDING_MESSAGE = "Thinking..."


class ReadinessState(str, Enum):
    UNINITIALIZED = "uninitialized"
    DISCOVERING = "discovering"
    INGESTING = "ingesting"
    READY = "ready"
    STILL_PREPARING = "still_preparing"
    ERROR = "error"


STATUS_TEXT: dict[ReadinessState, str] = {
    ReadinessState.UNINITIALIZED: "Initializing...",
    ReadinessState.DISCOVERING: "Checking knowledge base status...",
    ReadinessState.INGESTING: "Processing knowledge base...",
    ReadinessState.READY: "Ready! How can I help you today?",
    ReadinessState.STILL_PREPARING: (
        "Still preparing knowledge base. Please check again in a moment."
    ),
    ReadinessState.ERROR: (
        "Sorry, I couldn't reach the knowledge base. Please try again."
    ),
}

# Per-poll wording while INGESTING, keyed by the service's status field.
_POLL_TEXT = {
    "not_initialized": "Preparing knowledge base...",
    "in_progress": "Processing knowledge base...",
    "error": "Error verifying knowledge base. Retrying...",
}

_TRANSPORT_ERRORS = (httpx.HTTPError, ApiError)


class ReadinessMachine:
    def __init__(
        self,
        backend: WidgetApiClient,
        policy: PollingPolicy,
        conversation: Conversation | None = None,
        on_change: Callable[["ReadinessMachine"], None] | None = None,
    ) -> None:
        self.backend = backend
        self.policy = policy
        self.conversation = conversation if conversation is not None else Conversation()
        self.on_change = on_change
        self.state = ReadinessState.UNINITIALIZED
        self.status_text = STATUS_TEXT[self.state]
        self.error: str | None = None
        self.history: list[ReadinessState] = [self.state]
        self._poll_task: asyncio.Future | None = None

    @property
    def can_send(self) -> bool:
        return self.state is ReadinessState.READY

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, state: ReadinessState, text: str | None = None) -> None:
        if state is not self.state:
            logger.info("Readiness %s -> %s", self.state.value, state.value)
            self.history.append(state)
        self.state = state
        self._set_text(text or STATUS_TEXT[state])

    def _set_text(self, text: str) -> None:
        self.status_text = text
        if self.on_change is not None:
            self.on_change(self)

    def _become_ready(self) -> None:
        self.error = None
        self._transition(ReadinessState.READY)
        if not self.conversation.messages:
            self.conversation.add(WELCOME_MESSAGE, MessageRole.ASSISTANT)

    def _fail(self, exc: Exception) -> None:
        logger.warning("Knowledge base unreachable: %s", exc)
        self.error = str(exc)
        self._transition(ReadinessState.ERROR)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> ReadinessState:
        """Run once on mount: discover, ingest if needed, then poll."""
        if self.state is not ReadinessState.UNINITIALIZED:
            return self.state

        self._transition(ReadinessState.DISCOVERING)
        try:
            status = await self.backend.fetch_status()
        except _TRANSPORT_ERRORS as exc:
            self._fail(exc)
            return self.state

        if status.ready:
            self._become_ready()
            return self.state

        return await self._ingest()

    async def _ingest(self) -> ReadinessState:
        self._transition(ReadinessState.INGESTING)
        try:
            init = await self.backend.initialize()
        except ApiError as exc:
            if not exc.not_ready:
                self._fail(exc)
                return self.state
        except httpx.TimeoutException as exc:
            # Ingestion can outlast the request; the server keeps working on it.
            logger.info("Initialization request timed out, polling instead: %s", exc)
        except httpx.HTTPError as exc:
            self._fail(exc)
            return self.state
        else:
            if init.ready:
                self._become_ready()
                return self.state

        return await self.poll()

    async def retry(self) -> ReadinessState:
        """Start over after ERROR (or any state); the user's next action calls this."""
        self.cancel()
        self.error = None
        self.state = ReadinessState.UNINITIALIZED
        return await self.start()

    def cancel(self) -> None:
        """Stop any in-flight polling, e.g. when the widget goes away."""
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll(self) -> ReadinessState:
        """Poll ``/status`` within the policy budget.

        Overlapping callers share the in-flight poll instead of stacking a
        second loop.
        """
        if self._poll_task is not None and not self._poll_task.done():
            await asyncio.shield(self._poll_task)
            return self.state

        self._poll_task = asyncio.ensure_future(self._poll())
        await self._poll_task
        return self.state

    async def _poll(self) -> None:
        if self.state is not ReadinessState.INGESTING:
            self._transition(ReadinessState.INGESTING)

        last_failure: Exception | None = None

        async def check() -> StatusResponse | None:
            nonlocal last_failure
            try:
                status = await self.backend.fetch_status()
            except _TRANSPORT_ERRORS as exc:
                logger.debug("Status check failed: %s", exc)
                last_failure = exc
                self._set_text("Checking status...")
                return None
            last_failure = None
            if not status.ready:
                self._set_text(_POLL_TEXT.get(status.status, STATUS_TEXT[ReadinessState.INGESTING]))
            return status

        result = await poll_until(
            check,
            lambda status: status is not None and status.ready,
            self.policy,
            label="Knowledge base readiness",
        )

        if result.done:
            self._become_ready()
        elif last_failure is not None:
            self._fail(last_failure)
        else:
            self._transition(ReadinessState.STILL_PREPARING)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send(self, text: str) -> ChatMessage | None:
        """Send a user message and return the assistant reply.

        Returns None when nothing could be answered yet; in that case the
        machine has resumed discovery or polling instead.
        """
        text = text.strip()
        if not text:
            return None

        if not self.can_send:
            if self.state is ReadinessState.UNINITIALIZED:
                await self.start()
            elif self.state is ReadinessState.ERROR:
                await self.retry()
            else:
                await self.poll()
            return None

        self.conversation.add(text, MessageRole.USER)
        pending = self.conversation.add(PENDING_MESSAGE, MessageRole.PENDING)

        try:
            response = await self.backend.send_message(text)
        except ApiError as exc:
            self.conversation.remove(pending.id)
            if exc.not_ready:
                # Warm-up: wait it out without showing the error text.
                self._transition(ReadinessState.INGESTING)
                await self.poll()
                return None
            if exc.code == "not_initialized":
                await self._ingest()
                return None
            logger.warning("Chat request failed: %s", exc)
            return self.conversation.add(APOLOGY_MESSAGE, MessageRole.ASSISTANT)
        except httpx.HTTPError as exc:
            logger.warning("Chat request failed: %s", exc)
            self.conversation.remove(pending.id)
            return self.conversation.add(APOLOGY_MESSAGE, MessageRole.ASSISTANT)

        self.conversation.remove(pending.id)
        reply = self.conversation.add(response.reply, MessageRole.ASSISTANT)
        if response.sources:
            reply = self.conversation.attach_citations(reply.id, response.sources)
        return reply
