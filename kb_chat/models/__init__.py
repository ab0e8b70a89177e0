"""Data models for Knowledge Base Chat."""

from kb_chat.models.knowledge import (
    Chunk,
    ChunkMetadata,
    KnowledgeBase,
    RetrievedChunk,
    RowField,
    TabularRow,
    VectorRecord,
    normalize_cell,
)

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "KnowledgeBase",
    "RetrievedChunk",
    "RowField",
    "TabularRow",
    "VectorRecord",
    "normalize_cell",
]
