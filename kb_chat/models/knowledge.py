"""
Knowledge base and vector record models.

Tabular rows are kept as ordered, string-keyed fields with explicit null
handling, since module/week header detection is a runtime scan over
unknown column names.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from kb_chat.errors import EmbeddingDimensionError

# Cell values treated as missing
NULL_MARKERS = {"", "null", "undefined", "none"}


def normalize_cell(value: Any) -> Optional[str]:
    """Convert a raw cell value to a stripped string, or None when missing."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in NULL_MARKERS:
        return None
    return text


class RowField(BaseModel):
    """A single named cell of a tabular row."""

    name: str
    value: Optional[str] = None


class TabularRow(BaseModel):
    """An ordered list of fields from one tabular record."""

    cells: list[RowField] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "TabularRow":
        """Build a row from a header->value mapping, preserving column order."""
        return cls(
            cells=[
                RowField(name=str(name), value=normalize_cell(value))
                for name, value in row.items()
            ]
        )

    @property
    def headers(self) -> list[str]:
        """Column names in order."""
        return [f.name for f in self.cells]

    def get(self, name: str) -> Optional[str]:
        """Value of the first field with the given name, or None."""
        for f in self.cells:
            if f.name == name:
                return f.value
        return None


class KnowledgeBase(BaseModel):
    """Uploaded knowledge: free text and/or tabular rows."""

    text_content: Optional[str] = None
    rows: list[TabularRow] = Field(default_factory=list)
    is_loaded: bool = False

    @property
    def is_empty(self) -> bool:
        """True when there is neither text nor any row."""
        return not self.text_content and not self.rows


class ChunkMetadata(BaseModel):
    """Provenance metadata carried by a chunk."""

    model_config = ConfigDict(frozen=True)

    group_key: str
    module: Optional[str] = None
    week: Optional[str] = None


class Chunk(BaseModel):
    """Bounded-size fragment of source text."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    source_metadata: ChunkMetadata


class VectorRecord(BaseModel):
    """Vector plus metadata as transmitted to the vector store."""

    id: str
    embedding: list[float]
    metadata: dict[str, Any]

    @classmethod
    def from_chunk(
        cls, record_id: str, embedding: list[float], chunk: Chunk, dimensions: int
    ) -> "VectorRecord":
        """Assemble a record from an embedded chunk.

        Raises:
            EmbeddingDimensionError: If the embedding length differs from dimensions
        """
        record = cls(
            id=record_id,
            embedding=list(embedding),
            metadata={
                "text": chunk.text,
                "groupKey": chunk.source_metadata.group_key,
                "module": chunk.source_metadata.module,
                "week": chunk.source_metadata.week,
            },
        )
        record.validate_dimensions(dimensions)
        return record

    def validate_dimensions(self, dimensions: int) -> None:
        """Raise if the embedding is not exactly `dimensions` long."""
        if len(self.embedding) != dimensions:
            raise EmbeddingDimensionError(dimensions, len(self.embedding))


class RetrievedChunk(BaseModel):
    """A match returned by a similarity query."""

    id: str = ""
    text: str
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def group_key(self) -> Optional[str]:
        """Group label stored with the vector, if any."""
        return self.metadata.get("groupKey")
