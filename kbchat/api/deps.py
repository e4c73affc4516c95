from fastapi import Request

from kbchat.config import settings
from kbchat.core.knowledge_base import KnowledgeBase


def get_knowledge_base(request: Request) -> KnowledgeBase:
    """The app-wide registrar, created on startup (or lazily on first use)."""
    knowledge_base = getattr(request.app.state, "knowledge_base", None)
    if knowledge_base is None:
        knowledge_base = KnowledgeBase.from_settings(settings)
        knowledge_base.store.load()
        request.app.state.knowledge_base = knowledge_base
    return knowledge_base
