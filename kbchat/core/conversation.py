"""In-memory conversation shown by the widget.  Not persisted."""

import time
from datetime import datetime, timezone

from kbchat.models.schemas import ChatMessage, Citation, MessageRole


class Conversation:
    def __init__(self) -> None:
        self.messages: list[ChatMessage] = []
        self._last_id = 0

    def _next_id(self) -> int:
        # Nanosecond clock, forced strictly increasing; fits in int64.
        self._last_id = max(time.time_ns(), self._last_id + 1)
        return self._last_id

    def add(
        self,
        text: str,
        role: MessageRole,
        citations: list[Citation] | None = None,
    ) -> ChatMessage:
        message = ChatMessage(
            id=self._next_id(),
            text=text,
            role=role,
            timestamp=datetime.now(timezone.utc),
            citations=tuple(citations or ()),
        )
        self.messages.append(message)
        return message

    def remove(self, message_id: int) -> None:
        self.messages = [m for m in self.messages if m.id != message_id]

    def attach_citations(self, message_id: int, citations: list[Citation]) -> ChatMessage | None:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                updated = message.model_copy(update={"citations": tuple(citations)})
                self.messages[i] = updated
                return updated
        return None
