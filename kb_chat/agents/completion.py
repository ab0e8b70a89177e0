"""
Chat completion service.

Wraps LangChain's ChatOpenAI behind a small CompletionService protocol so
the orchestrator and the interview question generator can be exercised
with a fake service. Provider errors are classified into CompletionError.
"""

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from kb_chat.errors import CompletionError, classify_completion_error

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def _get_prompt_hash(prompt: str) -> str:
    """Generate a hash of the prompt for correlation without logging full content."""
    return hashlib.sha256(prompt.encode()).hexdigest()[:16]


@dataclass
class ChatMessage:
    """One conversation message."""

    role: str
    content: str


@dataclass
class CompletionRequest:
    """Request sent to the completion service."""

    model: str
    messages: list[ChatMessage] = field(default_factory=list)
    temperature: float = 0.7
    max_tokens: int = 1000

    @property
    def prompt_text(self) -> str:
        return "\n".join(m.content for m in self.messages)


class CompletionService(Protocol):
    """Returns the assistant text for a completion request."""

    def complete(self, request: CompletionRequest) -> str:
        ...


def to_langchain_messages(messages: list[ChatMessage]) -> list[BaseMessage]:
    """Convert role/content messages to LangChain message objects."""
    converted = []
    for message in messages:
        message_type = _MESSAGE_TYPES.get(message.role)
        if message_type is None:
            raise ValueError(f"Unsupported message role: {message.role}")
        converted.append(message_type(content=message.content))
    return converted


class OpenAIChatCompletion:
    """Completion service backed by OpenAI chat models through LangChain."""

    def __init__(self, api_key: str, timeout: Optional[float] = None):
        """Initialize the service.

        Args:
            api_key: OpenAI API key
            timeout: Client timeout in seconds
        """
        self._api_key = api_key
        self._timeout = timeout
        self._clients: dict[tuple[str, float, int], ChatOpenAI] = {}

    def _client_for(self, request: CompletionRequest) -> ChatOpenAI:
        key = (request.model, request.temperature, request.max_tokens)
        if key not in self._clients:
            self._clients[key] = ChatOpenAI(
                model=request.model,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                api_key=self._api_key,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._clients[key]

    def complete(self, request: CompletionRequest) -> str:
        """Run one chat completion.

        Raises:
            CompletionError: Classified provider failure
        """
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        logger.info(
            f"[{request_id}] Completion request: model={request.model} "
            f"messages={len(request.messages)} prompt_hash={_get_prompt_hash(request.prompt_text)}"
        )

        try:
            response = self._client_for(request).invoke(to_langchain_messages(request.messages))
        except Exception as e:
            error = classify_completion_error(e)
            logger.error(
                f"[{request_id}] Completion error: category={error.category} "
                f"status={error.status_code} code={error.code}"
            )
            raise error from e

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[{request_id}] Completion response: latency_ms={latency_ms}")

        content = response.content
        if not isinstance(content, str):
            raise CompletionError("Completion returned non-text content")
        return content
