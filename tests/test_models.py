"""Tests for data models, settings and session state."""

import json
from unittest.mock import patch

import pytest

from kb_chat.config import Settings, validate_api_key
from kb_chat.errors import EmbeddingDimensionError
from kb_chat.evaluation import EvaluationState
from kb_chat.models.knowledge import (
    Chunk,
    ChunkMetadata,
    KnowledgeBase,
    RetrievedChunk,
    TabularRow,
    VectorRecord,
    normalize_cell,
)
from kb_chat.monitoring.logging import ComponentLogger, new_request_context, read_logs
from kb_chat.services import ChatSession


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Settings fall back to documented defaults."""
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)
            assert settings.chat_model == "gpt-4"
            assert settings.embedding_dimensions == 1024
            assert settings.temperature == 0.7
            assert settings.max_tokens == 1000
            assert settings.collection_name == "ai-readiness"

    def test_from_env(self):
        """KB_ prefixed variables override defaults."""
        env = {"KB_CHAT_MODEL": "gpt-4o", "KB_EMBEDDING_DIMENSIONS": "512"}
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)
            assert settings.chat_model == "gpt-4o"
            assert settings.embedding_dimensions == 512

    def test_masked_api_key(self, mock_settings):
        """Only the prefix and last four characters are shown."""
        assert mock_settings.masked_api_key == "sk-...aaaa"


class TestValidateApiKey:
    """Tests for API key validation."""

    def test_valid(self, mock_settings):
        assert validate_api_key(mock_settings.openai_api_key) is None

    @pytest.mark.parametrize("key", [None, ""])
    def test_missing(self, key):
        """A missing key asks the user to set one."""
        assert validate_api_key(key).startswith("Please set your OpenAI API key")

    @pytest.mark.parametrize("key", ["sk-short", "pk-" + "a" * 45])
    def test_malformed(self, key):
        """Wrong prefix or short keys are rejected."""
        assert "at least 40 characters" in validate_api_key(key)


class TestTabularRow:
    """Tests for TabularRow."""

    @pytest.mark.parametrize("value", [None, "", "  ", "null", "NULL", "undefined", "None"])
    def test_null_markers(self, value):
        """Missing-value markers normalize to None."""
        assert normalize_cell(value) is None

    def test_values_stripped_and_stringified(self):
        """Cell values are stripped strings."""
        assert normalize_cell("  Week 3 ") == "Week 3"
        assert normalize_cell(4) == "4"

    def test_from_mapping_preserves_order(self):
        """Column order follows the source mapping."""
        row = TabularRow.from_mapping({"Week": "2", "Module": "1", "Notes": "null"})
        assert row.headers == ["Week", "Module", "Notes"]
        assert row.get("Module") == "1"
        assert row.get("Notes") is None
        assert row.get("Missing") is None


class TestChunkAndRecord:
    """Tests for Chunk and VectorRecord."""

    def test_chunk_requires_text(self):
        """Chunks are never empty."""
        with pytest.raises(ValueError):
            Chunk(text="", source_metadata=ChunkMetadata(group_key="G"))

    def test_chunk_is_frozen(self):
        """Chunks are immutable once built."""
        chunk = Chunk(text="t", source_metadata=ChunkMetadata(group_key="G"))
        with pytest.raises(ValueError):
            chunk.text = "other"

    def test_record_from_chunk(self):
        """Record metadata carries text and provenance."""
        chunk = Chunk(
            text="=== Module 1 Week 2 ===\nTopic: Search",
            source_metadata=ChunkMetadata(group_key="Module 1 Week 2", module="1", week="2"),
        )
        record = VectorRecord.from_chunk("doc-3", [0.1, 0.2, 0.3], chunk, dimensions=3)

        assert record.id == "doc-3"
        assert record.metadata == {
            "text": chunk.text,
            "groupKey": "Module 1 Week 2",
            "module": "1",
            "week": "2",
        }

    def test_record_dimension_mismatch(self):
        """Records refuse embeddings of the wrong size."""
        chunk = Chunk(text="t", source_metadata=ChunkMetadata(group_key="G"))
        with pytest.raises(EmbeddingDimensionError) as exc_info:
            VectorRecord.from_chunk("doc-0", [0.1, 0.2], chunk, dimensions=1024)
        assert exc_info.value.expected == 1024
        assert exc_info.value.actual == 2

    def test_retrieved_chunk_group_key(self):
        """The group key is read from match metadata."""
        match = RetrievedChunk(text="t", metadata={"groupKey": "Module 2 Week 1"})
        assert match.group_key == "Module 2 Week 1"
        assert RetrievedChunk(text="t").group_key is None


class TestChatSession:
    """Tests for per-session state."""

    def test_defaults(self):
        """New sessions have no knowledge base and are in Q&A mode."""
        session = ChatSession()
        assert not session.knowledge_base.is_loaded
        assert not session.evaluation_mode
        assert session.evaluation == EvaluationState()
        assert session.session_id

    def test_set_api_key_strips(self):
        session = ChatSession()
        session.set_api_key("  sk-key \n")
        assert session.api_key == "sk-key"

    def test_set_knowledge_base_replaces(self, sample_knowledge_base):
        """Updating the knowledge base replaces it wholesale."""
        session = ChatSession()
        session.set_knowledge_base(sample_knowledge_base)
        assert session.knowledge_base is sample_knowledge_base
        session.set_knowledge_base(KnowledgeBase(text_content="new", is_loaded=True))
        assert session.knowledge_base.rows == []

    def test_toggle_evaluation_mode(self):
        """Entering evaluation mode starts from a fresh interview."""
        session = ChatSession()
        session.evaluation.in_progress = True
        session.evaluation.answers["data"] = "old"

        assert session.toggle_evaluation_mode(True) is True
        assert session.evaluation == EvaluationState()
        assert session.toggle_evaluation_mode(False) is False


class TestComponentLogger:
    """Tests for structured component logging."""

    def test_success_entry(self, monitor):
        """Successful components record timing and custom fields."""
        new_request_context("session-1")
        with monitor.component("retrieval", query_len=12) as stage:
            stage["matches"] = 3

        entry = monitor.last_entry
        assert entry["component"] == "retrieval"
        assert entry["success"] is True
        assert entry["severity"] == "INFO"
        assert entry["matches"] == 3
        assert entry["query_len"] == 12
        assert entry["session_id"] == "session-1"
        assert entry["duration_ms"] >= 0

    def test_failure_entry(self, monitor):
        """Failures are recorded and re-raised."""
        with pytest.raises(RuntimeError):
            with monitor.component("ingestion"):
                raise RuntimeError("boom")

        entry = monitor.last_entry
        assert entry["success"] is False
        assert entry["severity"] == "ERROR"
        assert entry["error"] == "boom"
        assert entry["error_type"] == "RuntimeError"

    def test_jsonl_output(self, tmp_path):
        """Entries are appended to a dated JSONL file and can be read back."""
        monitor = ComponentLogger(log_dir=tmp_path)
        with monitor.component("ingestion") as stage:
            stage["total_chunks"] = 10
        with monitor.component("retrieval"):
            pass

        log_file = monitor.get_log_file_path()
        lines = log_file.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["total_chunks"] == 10

        entries = read_logs(tmp_path, component="retrieval")
        assert [e["component"] for e in entries] == ["retrieval"]

    def test_turn_summary(self, monitor):
        """A turn entry collects the stages run since the turn started."""
        monitor.start_turn("session-1")
        with monitor.component("retrieval") as stage:
            stage["matches"] = 2
        entry = monitor.log_turn("qa", success=True, duration_ms=5)

        assert entry["component"] == "turn"
        assert entry["session_id"] == "session-1"
        assert entry["stages"]["retrieval"]["matches"] == 2
        assert monitor.log_turn("qa", success=True, duration_ms=1)["stages"] == {}

    def test_stages_outside_turn_not_collected(self, monitor):
        """Stages logged before a turn starts stay out of its summary."""
        with monitor.component("ingestion"):
            pass
        request_id = monitor.start_turn()
        with monitor.component("retrieval"):
            pass
        entry = monitor.log_turn("qa", success=True, duration_ms=3)

        assert set(entry["stages"]) == {"retrieval"}
        assert entry["request_id"] == request_id

        with monitor.component("ingestion"):
            pass
        monitor.start_turn()
        assert monitor.log_turn("qa", success=True, duration_ms=1)["stages"] == {}

    def test_file_logging_disabled(self, monitor):
        """Without a log directory there is no log file."""
        with pytest.raises(ValueError):
            monitor.get_log_file_path()
