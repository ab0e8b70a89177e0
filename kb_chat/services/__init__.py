"""Service layer for Knowledge Base Chat."""

from kb_chat.services.assistant import KnowledgeAssistant
from kb_chat.services.session import ChatSession

__all__ = [
    "ChatSession",
    "KnowledgeAssistant",
]
