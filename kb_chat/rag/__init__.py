"""Retrieval-Augmented Generation pipeline for Knowledge Base Chat.

This module provides:
- Sentence/word-boundary chunking of free text
- Conversion of tabular rows into grouped chunks
- Batched embedding and upsert with adaptive batch sizing and a retry queue
- Similarity retrieval with module/week filters and bounded context assembly

Architecture:
- Knowledge base -> chunks -> embeddings -> vector store
- Query -> embedding -> top-K matches -> grouped context -> completion prompt
"""

from kb_chat.rag.chunker import chunk_text
from kb_chat.rag.config import DEFAULT_GROUP, RAGConfig
from kb_chat.rag.embeddings import (
    EmbeddingProvider,
    HashingEmbeddingProvider,
    OpenAIEmbeddingProvider,
    cosine_similarity,
    l2_normalize,
)
from kb_chat.rag.ingest import BatchState, IngestResult, KnowledgeIngester
from kb_chat.rag.retriever import ContextRetriever, RetrievalResult, extract_query_filter
from kb_chat.rag.vector_store import ChromaVectorStore, InMemoryVectorStore, VectorStore

__all__ = [
    "DEFAULT_GROUP",
    "RAGConfig",
    "chunk_text",
    "EmbeddingProvider",
    "HashingEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "cosine_similarity",
    "l2_normalize",
    "BatchState",
    "IngestResult",
    "KnowledgeIngester",
    "ContextRetriever",
    "RetrievalResult",
    "extract_query_filter",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "VectorStore",
]
