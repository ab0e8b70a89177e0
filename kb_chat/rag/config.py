"""Configuration for the ingestion and retrieval pipeline.

Environment variables:
- KB_TEXT_CHUNK_SIZE: target chunk size for free text (default: 800)
- KB_BATCH_SIZE: initial ingestion batch size (default: 1000)
- KB_MIN_BATCH_SIZE: floor for batch-size halving (default: 50)
- KB_RETRY_BATCH_SIZE: batch size for the retry replay (default: 50)
- KB_TOP_K: number of matches per query (default: 15)
- KB_MAX_CONTEXT_LENGTH: character budget for grounding context (default: 8000)
"""

import os
from dataclasses import dataclass, field

from kb_chat.errors import ConfigurationError

DEFAULT_GROUP = "General Content"


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


@dataclass
class RAGConfig:
    """Configuration for pipeline components."""

    # Chunking
    text_chunk_size: int = field(
        default_factory=lambda: _env_int("KB_TEXT_CHUNK_SIZE", 800)
    )
    default_group: str = DEFAULT_GROUP

    # Batched upsert
    batch_size: int = field(default_factory=lambda: _env_int("KB_BATCH_SIZE", 1000))
    min_batch_size: int = field(
        default_factory=lambda: _env_int("KB_MIN_BATCH_SIZE", 50)
    )
    max_consecutive_failures: int = 2  # shrink once the counter exceeds this
    retry_batch_size: int = field(
        default_factory=lambda: _env_int("KB_RETRY_BATCH_SIZE", 50)
    )
    batch_delay: float = 0.2  # seconds between successful batches
    retry_delay: float = 0.5  # seconds between retry batches
    embedding_workers: int = 8

    # Retrieval
    top_k: int = field(default_factory=lambda: _env_int("KB_TOP_K", 15))
    max_context_length: int = field(
        default_factory=lambda: _env_int("KB_MAX_CONTEXT_LENGTH", 8000)
    )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.text_chunk_size < 1:
            errors.append("text_chunk_size must be positive")
        if self.min_batch_size < 1:
            errors.append("min_batch_size must be positive")
        if self.batch_size < self.min_batch_size:
            errors.append("batch_size must be >= min_batch_size")
        if self.retry_batch_size < 1:
            errors.append("retry_batch_size must be positive")
        if self.top_k < 1:
            errors.append("top_k must be positive")
        if self.max_context_length < 10:
            errors.append("max_context_length must be at least 10")

        return errors

    def ensure_valid(self) -> "RAGConfig":
        """Return self, raising ConfigurationError if validate() reports errors."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("Invalid pipeline configuration: " + "; ".join(errors))
        return self

    @classmethod
    def from_env(cls) -> "RAGConfig":
        """Create config from environment variables."""
        return cls()
