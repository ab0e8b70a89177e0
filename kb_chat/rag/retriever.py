"""Similarity retrieval and grounding-context assembly.

Provides:
- Module/week filter hints parsed from the query text
- Top-K similarity query with an optional equality metadata filter
- Grouping of matches by group key into a bounded context string
- Fallback to the raw knowledge-base text when the query fails
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from kb_chat.models.knowledge import RetrievedChunk
from kb_chat.monitoring.logging import ComponentLogger
from kb_chat.monitoring.tracing import trace_span
from kb_chat.rag.config import DEFAULT_GROUP, RAGConfig
from kb_chat.rag.embeddings import EmbeddingProvider
from kb_chat.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)

MODULE_PATTERN = re.compile(r"module\s*(\d+)", re.IGNORECASE)
WEEK_PATTERN = re.compile(r"week\s*(\d+)", re.IGNORECASE)

GROUP_SEPARATOR = "\n\n===================\n\n"
TRUNCATION_MARKER = "..."


def extract_query_filter(query: str) -> dict[str, str]:
    """Extract module/week equality filters from a query ('module 3', 'week2')."""
    metadata_filter = {}
    module_match = MODULE_PATTERN.search(query)
    if module_match:
        metadata_filter["module"] = module_match.group(1)
    week_match = WEEK_PATTERN.search(query)
    if week_match:
        metadata_filter["week"] = week_match.group(1)
    return metadata_filter


def truncate_context(text: str, max_length: int) -> str:
    """Cut text to max_length characters including the truncation marker."""
    if len(text) <= max_length:
        return text
    if max_length <= len(TRUNCATION_MARKER):
        return text[: max(max_length, 0)]
    return text[: max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def build_context(
    matches: list[RetrievedChunk],
    max_length: int,
    default_group: str = DEFAULT_GROUP,
) -> str:
    """Group matches by group key and join them into a bounded context string.

    Matches are re-sorted by descending score; groups appear in order of
    their best match.
    """
    ordered = sorted(matches, key=lambda m: m.score, reverse=True)

    groups: dict[str, list[str]] = {}
    for match in ordered:
        groups.setdefault(match.group_key or default_group, []).append(match.text)

    context = GROUP_SEPARATOR.join(
        f"{group}:\n" + "\n\n".join(texts) for group, texts in groups.items()
    )
    return truncate_context(context, max_length)


@dataclass
class RetrievalResult:
    """Result of a retrieval operation."""

    query: str
    metadata_filter: dict[str, str] = field(default_factory=dict)
    matches: list[RetrievedChunk] = field(default_factory=list)
    context: str = ""
    fallback_used: bool = False


class ContextRetriever:
    """Retrieves grounding context for a question."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        config: Optional[RAGConfig] = None,
        monitor: Optional[ComponentLogger] = None,
    ):
        """Initialize retriever.

        Args:
            embedder: Embedding provider used for the query vector
            store: Vector store to query
            config: Pipeline configuration
            monitor: Component logger for stage timing
        """
        self.embedder = embedder
        self.store = store
        self.config = (config or RAGConfig.from_env()).ensure_valid()
        self.monitor = monitor or ComponentLogger()

    def search(self, query: str, top_k: Optional[int] = None) -> RetrievalResult:
        """Run the similarity query; errors propagate.

        Args:
            query: User question
            top_k: Number of matches (default: config.top_k)

        Returns:
            RetrievalResult with matches and assembled context
        """
        if top_k is None:
            top_k = self.config.top_k

        result = RetrievalResult(query=query, metadata_filter=extract_query_filter(query))
        vector = self.embedder.embed(query)
        result.matches = self.store.query(vector, top_k, result.metadata_filter or None)
        result.context = build_context(
            result.matches, self.config.max_context_length, self.config.default_group
        )
        return result

    def retrieve(self, query: str, fallback_text: Optional[str] = None) -> RetrievalResult:
        """Retrieve context, degrading to the raw knowledge-base text on failure.

        Args:
            query: User question
            fallback_text: Unchunked knowledge-base text used if the query fails

        Returns:
            RetrievalResult; `fallback_used` is set when the query failed
        """
        with trace_span("retrieval") as span, self.monitor.component("retrieval") as stage:
            try:
                result = self.search(query)
            except Exception as e:
                logger.error(f"Failed to get relevant context: {e}")
                result = RetrievalResult(
                    query=query,
                    context=truncate_context(fallback_text or "", self.config.max_context_length),
                    fallback_used=True,
                )

            stage["matches"] = len(result.matches)
            stage["context_chars"] = len(result.context)
            stage["fallback_used"] = result.fallback_used
            span.set_attribute("matches", len(result.matches))
            span.set_attribute("fallback_used", result.fallback_used)

        logger.info(f"Retrieved {len(result.context)} characters of relevant context")
        return result

    def get_context(self, query: str, fallback_text: Optional[str] = None) -> str:
        """Context string for a query (see retrieve)."""
        return self.retrieve(query, fallback_text).context
