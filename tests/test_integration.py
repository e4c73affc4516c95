"""Integration tests — require OPENAI_API_KEY set in the environment.

These tests hit the real OpenAI API so they're skipped by default.
Run with: OPENAI_API_KEY=your_key pytest -m integration
"""

import asyncio

from kbchat.config import settings
from kbchat.core.chat_service import process_chat
from kbchat.core.knowledge_base import KnowledgeBase
from kbchat.models.schemas import ChatRequest
from tests.conftest import integration, requires_api_key


@integration
@requires_api_key
class TestKnowledgeBaseIntegration:
    def test_initialize_and_chat(self, test_settings, kb_dir):
        test_settings.openai_api_key = settings.openai_api_key
        test_settings.init_poll_max_attempts = 60
        test_settings.init_poll_interval_seconds = 2.0
        knowledge_base = KnowledgeBase.from_settings(test_settings)

        init = asyncio.run(knowledge_base.initialize())
        assert init.vector_store_id
        assert init.ready, "Vector store did not finish processing in time."

        response = asyncio.run(process_chat(
            ChatRequest(message="How long is the return policy?"), knowledge_base,
        ))
        assert isinstance(response.reply, str)
        assert response.reply
        assert "SOURCES_JSON" not in response.reply
        for source in response.sources:
            assert source.page >= 1

    def test_status_of_configured_store(self):
        status = asyncio.run(KnowledgeBase.from_settings(settings).current_status())
        assert status.status in ("not_initialized", "in_progress", "completed", "failed", "error")
