"""LLM-facing services for Knowledge Base Chat."""

from kb_chat.agents.completion import (
    ChatMessage,
    CompletionRequest,
    CompletionService,
    OpenAIChatCompletion,
)

__all__ = ["ChatMessage", "CompletionRequest", "CompletionService", "OpenAIChatCompletion"]
