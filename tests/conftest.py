"""Pytest fixtures for Knowledge Base Chat tests."""

from unittest.mock import MagicMock

import pytest

from kb_chat.agents.completion import CompletionRequest
from kb_chat.config import Settings
from kb_chat.models.knowledge import KnowledgeBase, TabularRow
from kb_chat.monitoring.logging import ComponentLogger
from kb_chat.rag.config import RAGConfig
from kb_chat.rag.embeddings import HashingEmbeddingProvider
from kb_chat.rag.vector_store import InMemoryVectorStore

VALID_API_KEY = "sk-" + "a" * 45


class FakeCompletion:
    """Completion service that records requests and returns canned replies."""

    def __init__(self, reply: str = "Grounded answer.", error: Exception = None):
        self.reply = reply
        self.error = error
        self.requests: list[CompletionRequest] = []

    def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


class FlakyStore(InMemoryVectorStore):
    """In-memory store whose upsert fails on selected calls."""

    def __init__(self, fail_calls=(), always_fail: bool = False):
        super().__init__()
        self.fail_calls = set(fail_calls)
        self.always_fail = always_fail
        self.upsert_calls = 0
        self.batch_sizes: list[int] = []

    def upsert(self, records):
        self.upsert_calls += 1
        self.batch_sizes.append(len(records))
        if self.always_fail or self.upsert_calls in self.fail_calls:
            raise RuntimeError(f"simulated upsert failure #{self.upsert_calls}")
        super().upsert(records)


@pytest.fixture
def mock_settings():
    """Provide test settings."""
    return Settings(
        openai_api_key=VALID_API_KEY,
        chat_model="gpt-4",
        embedding_model="text-embedding-3-small",
        embedding_dimensions=64,
        temperature=0.7,
        max_tokens=1000,
        collection_name="test-namespace",
    )


@pytest.fixture
def rag_config():
    """Pipeline config with small batches and no delays."""
    return RAGConfig(
        text_chunk_size=120,
        batch_size=4,
        min_batch_size=1,
        retry_batch_size=2,
        batch_delay=0.0,
        retry_delay=0.0,
        embedding_workers=2,
        top_k=5,
        max_context_length=500,
    )


@pytest.fixture
def monitor():
    """Component logger without file output."""
    return ComponentLogger(log_dir=None)


@pytest.fixture
def embedder():
    """Deterministic offline embedder."""
    return HashingEmbeddingProvider(dimensions=64)


@pytest.fixture
def store():
    """Empty in-memory vector store."""
    return InMemoryVectorStore(dimensions=64)


@pytest.fixture
def fake_completion():
    """Completion service returning a fixed reply."""
    return FakeCompletion()


@pytest.fixture
def sample_rows():
    """Course schedule rows with module/week columns."""
    return [
        TabularRow.from_mapping(
            {"Module": "1", "Week": "1", "Topic": "Intro to AI", "Reading": "Chapter 1"}
        ),
        TabularRow.from_mapping(
            {"Module": "1", "Week": "2", "Topic": "Search algorithms", "Reading": "null"}
        ),
        TabularRow.from_mapping(
            {"Module": "2", "Week": "3", "Topic": "Neural networks", "Reading": "Chapter 5"}
        ),
    ]


@pytest.fixture
def sample_knowledge_base(sample_rows):
    """Loaded knowledge base with text and rows."""
    return KnowledgeBase(
        text_content=(
            "The course covers artificial intelligence fundamentals. "
            "Assignments are due every Friday. "
            "Late submissions lose ten percent per day. "
            "Office hours are held on Tuesday afternoons in room 204."
        ),
        rows=sample_rows,
        is_loaded=True,
    )


@pytest.fixture
def mock_chroma_client():
    """Mock Chroma client with a single mock collection."""
    client = MagicMock()
    collection = MagicMock()
    collection.count.return_value = 0
    client.get_or_create_collection.return_value = collection
    return client


@pytest.fixture
def make_completion():
    """Factory for FakeCompletion instances."""
    return FakeCompletion


@pytest.fixture
def make_flaky_store():
    """Factory for FlakyStore instances."""
    return FlakyStore
