"""
Configuration management using Pydantic Settings.

Supports environment variables and .env files for configuration.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

API_KEY_PREFIX = "sk-"
API_KEY_MIN_LENGTH = 40


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="KB_",
        case_sensitive=False,
    )

    # OpenAI
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key used for completions and embeddings",
    )
    chat_model: str = Field(
        default="gpt-4",
        description="Chat completion model",
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model",
    )
    embedding_dimensions: int = Field(
        default=1024,
        description="Embedding vector dimensionality",
    )
    temperature: float = Field(
        default=0.7,
        description="Sampling temperature for chat completions",
    )
    max_tokens: int = Field(
        default=1000,
        description="Token ceiling for chat completions",
    )
    request_timeout: float = Field(
        default=60.0,
        description="Client timeout in seconds for OpenAI calls",
    )

    # Vector store
    chroma_path: Optional[str] = Field(
        default=None,
        description="Directory for persistent Chroma storage (in-memory if unset)",
    )
    collection_name: str = Field(
        default="ai-readiness",
        description="Vector store namespace",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Logging level",
    )

    @property
    def masked_api_key(self) -> str:
        """API key with everything but the prefix and last four characters hidden."""
        if not self.openai_api_key:
            return ""
        return f"{self.openai_api_key[:3]}...{self.openai_api_key[-4:]}"


def validate_api_key(api_key: Optional[str]) -> Optional[str]:
    """Check that an API key is present and plausibly formatted.

    Args:
        api_key: Candidate OpenAI API key

    Returns:
        A user-facing error message, or None if the key looks valid
    """
    if not api_key:
        return (
            "Please set your OpenAI API key in the settings. Make sure to use "
            "a valid API key from your OpenAI account."
        )
    if not api_key.startswith(API_KEY_PREFIX) or len(api_key) < API_KEY_MIN_LENGTH:
        return (
            "The API key format appears to be invalid. Please check your OpenAI "
            f"API key in settings. It should start with '{API_KEY_PREFIX}' and be "
            f"at least {API_KEY_MIN_LENGTH} characters long."
        )
    return None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
