"""Tests for retrieval and context assembly."""

from unittest.mock import MagicMock

import pytest

from kb_chat.errors import ConfigurationError, VectorStoreError
from kb_chat.rag.config import RAGConfig
from kb_chat.models.knowledge import RetrievedChunk
from kb_chat.rag.ingest import KnowledgeIngester
from kb_chat.rag.retriever import (
    GROUP_SEPARATOR,
    ContextRetriever,
    build_context,
    extract_query_filter,
    truncate_context,
)


def _match(text, score, group=None):
    metadata = {"text": text}
    if group:
        metadata["groupKey"] = group
    return RetrievedChunk(id=text, text=text, score=score, metadata=metadata)


class TestQueryFilter:
    """Tests for module/week filter extraction."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("What is covered in Module 3?", {"module": "3"}),
            ("readings for week2", {"week": "2"}),
            ("module 1 week 4 assignments", {"module": "1", "week": "4"}),
            ("When are office hours?", {}),
        ],
    )
    def test_extract(self, query, expected):
        """Module and week numbers are parsed case-insensitively."""
        assert extract_query_filter(query) == expected


class TestContextAssembly:
    """Tests for grouping and truncation."""

    def test_truncate_short_text_unchanged(self):
        """Text within the limit is untouched."""
        assert truncate_context("abc", 10) == "abc"

    @pytest.mark.parametrize("limit", [10, 25, 100])
    def test_truncate_respects_limit(self, limit):
        """Truncated text never exceeds the limit, marker included."""
        text = "x" * 500
        truncated = truncate_context(text, limit)
        assert len(truncated) == limit
        assert truncated.endswith("...")

    @pytest.mark.parametrize("limit", [0, 1, 2, 3])
    def test_truncate_limit_shorter_than_marker(self, limit):
        """Limits no longer than the marker still bound the output."""
        truncated = truncate_context("x" * 100, limit)
        assert len(truncated) == limit
        assert truncated == "x" * limit

    def test_groups_in_order_of_best_match(self):
        """Matches are grouped by key, ordered by their best score."""
        matches = [
            _match("second group text", 0.8, "Module 2 Week 1"),
            _match("best text", 0.9, "Module 1 Week 1"),
            _match("third text", 0.7, "Module 1 Week 1"),
        ]
        context = build_context(matches, 1000)
        assert context == (
            "Module 1 Week 1:\nbest text\n\nthird text"
            + GROUP_SEPARATOR
            + "Module 2 Week 1:\nsecond group text"
        )

    def test_missing_group_uses_default(self):
        """Matches without a group key land in the default group."""
        context = build_context([_match("loose text", 0.5)], 1000)
        assert context == "General Content:\nloose text"

    def test_context_bounded(self):
        """Assembled context never exceeds the maximum length."""
        matches = [_match("word " * 100 + str(i), 1.0 - i / 100, f"G{i % 3}") for i in range(20)]
        context = build_context(matches, 300)
        assert len(context) <= 300

    def test_empty_matches(self):
        """No matches give an empty context."""
        assert build_context([], 100) == ""


class TestContextRetriever:
    """Tests for ContextRetriever."""

    def test_rejects_invalid_config(self, embedder, store, monitor):
        """A context budget below the minimum is refused at construction."""
        with pytest.raises(ConfigurationError, match="max_context_length"):
            ContextRetriever(embedder, store, RAGConfig(max_context_length=2), monitor)

    @pytest.fixture
    def loaded_store(self, embedder, store, rag_config, monitor, sample_knowledge_base):
        """Store populated from the sample knowledge base."""
        ingester = KnowledgeIngester(embedder, store, rag_config, monitor, sleep=lambda s: None)
        ingester.ingest(sample_knowledge_base)
        return store

    def test_filtered_retrieval(self, embedder, loaded_store, rag_config, monitor):
        """A module/week hint restricts matches to that group."""
        retriever = ContextRetriever(embedder, loaded_store, rag_config, monitor)

        result = retriever.retrieve("What is the topic for module 1 week 2?")

        assert result.metadata_filter == {"module": "1", "week": "2"}
        assert not result.fallback_used
        assert len(result.matches) == 1
        assert result.context.startswith("Module 1 Week 2:\n")
        assert "Search algorithms" in result.context

    def test_unfiltered_retrieval_ranks_overlap(self, embedder, loaded_store, rag_config, monitor):
        """Without hints the best-overlapping chunk ranks first."""
        retriever = ContextRetriever(embedder, loaded_store, rag_config, monitor)

        result = retriever.retrieve("Which room are the office hours held in?")

        assert len(result.matches) == rag_config.top_k
        assert "room 204" in result.matches[0].text
        assert len(result.context) <= rag_config.max_context_length

    def test_fallback_on_store_error(self, embedder, rag_config, monitor):
        """A failed query degrades to the truncated raw text."""
        store = MagicMock()
        store.query.side_effect = VectorStoreError("index unavailable")
        retriever = ContextRetriever(embedder, store, rag_config, monitor)
        raw_text = "fallback " * 200

        result = retriever.retrieve("anything", fallback_text=raw_text)

        assert result.fallback_used
        assert result.matches == []
        assert len(result.context) == rag_config.max_context_length
        assert result.context.startswith("fallback fallback")
        assert monitor.last_entry["fallback_used"] is True

    def test_fallback_without_text(self, embedder, rag_config, monitor):
        """Without fallback text the context is empty."""
        store = MagicMock()
        store.query.side_effect = RuntimeError("down")
        retriever = ContextRetriever(embedder, store, rag_config, monitor)

        assert retriever.get_context("anything") == ""

    def test_search_propagates_errors(self, embedder, rag_config, monitor):
        """search() leaves error handling to the caller."""
        store = MagicMock()
        store.query.side_effect = VectorStoreError("index unavailable")
        retriever = ContextRetriever(embedder, store, rag_config, monitor)

        with pytest.raises(VectorStoreError):
            retriever.search("anything")
