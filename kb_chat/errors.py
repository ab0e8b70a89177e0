"""Exception types and user-facing error messages for Knowledge Base Chat."""

from typing import Optional

import openai


class KBChatError(Exception):
    """Base class for all Knowledge Base Chat errors."""


class ConfigurationError(KBChatError):
    """Missing or malformed configuration; never retried."""


class EmbeddingDimensionError(KBChatError):
    """Embedding length does not match the configured dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Unexpected embedding dimension: {actual}. Expected {expected} dimensions."
        )


class VectorStoreError(KBChatError):
    """A vector store operation failed."""


class EvaluationError(KBChatError):
    """The evaluation interview could not continue and was reset."""


class CompletionError(KBChatError):
    """Completion service failure with a classified category."""

    def __init__(
        self,
        message: str,
        category: str = "unknown",
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.category = category
        self.status_code = status_code
        self.code = code


# Completion error categories
RATE_LIMIT = "rate_limit"
AUTH = "auth"
NETWORK = "network"
BAD_REQUEST = "bad_request"
UNKNOWN = "unknown"

# Categories that are surfaced immediately and never retried
PERMANENT_CATEGORIES = (AUTH, BAD_REQUEST)

USER_MESSAGES = {
    RATE_LIMIT: "The OpenAI API rate limit has been reached. Please try again in a moment.",
    AUTH: "Your OpenAI API key appears to be invalid or expired. Please check your settings.",
    NETWORK: "Unable to connect to OpenAI. Please check your internet connection and try again.",
    BAD_REQUEST: (
        "The request could not be processed. Please try a shorter or more specific question."
    ),
    UNKNOWN: (
        "I encountered an error processing your request. Please try again or check your settings."
    ),
}


def classify_completion_error(exc: BaseException) -> CompletionError:
    """Map an exception raised by the OpenAI client stack to a CompletionError.

    Args:
        exc: Exception raised while calling the completion service

    Returns:
        CompletionError with category, status code and error code when known
    """
    if isinstance(exc, CompletionError):
        return exc

    status_code = getattr(exc, "status_code", None)
    code = getattr(exc, "code", None)

    if isinstance(exc, openai.RateLimitError):
        category = RATE_LIMIT
    elif isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        category = AUTH
    elif isinstance(exc, (openai.APIConnectionError, ConnectionError, TimeoutError)):
        # APITimeoutError subclasses APIConnectionError
        category = NETWORK
    elif isinstance(exc, openai.BadRequestError):
        category = BAD_REQUEST
    elif status_code == 429:
        category = RATE_LIMIT
    elif status_code in (401, 403):
        category = AUTH
    else:
        category = UNKNOWN

    return CompletionError(
        str(exc) or type(exc).__name__,
        category=category,
        status_code=status_code,
        code=code,
    )


def user_message_for(error: CompletionError) -> str:
    """Return the fixed chat message for a classified completion error."""
    return USER_MESSAGES.get(error.category, USER_MESSAGES[UNKNOWN])
