"""Vector store adapters.

Both adapters operate on a single logical namespace and return matches as
RetrievedChunk with higher scores meaning more similar.
"""

import logging
from typing import Any, Optional, Protocol

import chromadb
import numpy as np
from chromadb.config import Settings as ChromaSettings

from kb_chat.errors import VectorStoreError
from kb_chat.models.knowledge import RetrievedChunk, VectorRecord
from kb_chat.rag.embeddings import l2_normalize

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    """Persists vectors with metadata and answers nearest-neighbour queries."""

    def upsert(self, records: list[VectorRecord]) -> None:
        ...

    def query(
        self,
        vector: list[float],
        top_k: int,
        metadata_filter: Optional[dict[str, str]] = None,
    ) -> list[RetrievedChunk]:
        ...

    def stats(self) -> dict[str, int]:
        ...

    def delete_all(self) -> None:
        ...

    def is_ready(self) -> bool:
        ...


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Drop None values, which Chroma does not accept."""
    return {k: v for k, v in metadata.items() if v is not None}


def build_where(metadata_filter: Optional[dict[str, str]]) -> Optional[dict[str, Any]]:
    """Translate an equality filter into a Chroma `where` clause."""
    if not metadata_filter:
        return None
    clauses = [{key: value} for key, value in metadata_filter.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore:
    """Vector store backed by a Chroma collection using cosine distance."""

    def __init__(
        self,
        collection_name: str = "ai-readiness",
        path: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """Initialize the store.

        Args:
            collection_name: Collection used as the namespace
            path: Directory for persistent storage (in-memory if None)
            client: Pre-built Chroma client (mainly for tests)
        """
        self.collection_name = collection_name
        self.path = path
        self._client = client
        self._collection = None
        self._ready = False

    @property
    def client(self):
        """Lazy-load Chroma client."""
        if self._client is None:
            settings = ChromaSettings(anonymized_telemetry=False)
            if self.path:
                self._client = chromadb.PersistentClient(path=self.path, settings=settings)
            else:
                self._client = chromadb.EphemeralClient(settings=settings)
        return self._client

    def connect(self) -> None:
        """Open the collection and verify it answers a count request."""
        try:
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
            count = self._collection.count()
        except Exception as e:
            self._ready = False
            raise VectorStoreError(f"Failed to open collection {self.collection_name}: {e}") from e
        self._ready = True
        logger.info(f"Vector store ready: {self.collection_name} ({count} vectors)")

    def is_ready(self) -> bool:
        return self._ready

    @property
    def collection(self):
        if not self._ready or self._collection is None:
            raise VectorStoreError("Vector store not initialized. Call connect() first.")
        return self._collection

    def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        try:
            self.collection.upsert(
                ids=[r.id for r in records],
                embeddings=[r.embedding for r in records],
                metadatas=[_clean_metadata(r.metadata) for r in records],
                documents=[r.metadata.get("text", "") for r in records],
            )
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Upsert of {len(records)} vectors failed: {e}") from e
        logger.debug(f"Upserted {len(records)} vectors")

    def query(
        self,
        vector: list[float],
        top_k: int,
        metadata_filter: Optional[dict[str, str]] = None,
    ) -> list[RetrievedChunk]:
        try:
            response = self.collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                where=build_where(metadata_filter),
                include=["metadatas", "documents", "distances"],
            )
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Query failed: {e}") from e

        ids = response["ids"][0] if response.get("ids") else []
        metadatas = response["metadatas"][0] if response.get("metadatas") else []
        documents = response["documents"][0] if response.get("documents") else []
        distances = response["distances"][0] if response.get("distances") else []

        matches = []
        for i, vector_id in enumerate(ids):
            metadata = dict(metadatas[i] or {})
            text = metadata.get("text") or (documents[i] if i < len(documents) else "") or ""
            matches.append(
                RetrievedChunk(
                    id=vector_id,
                    text=text,
                    score=1.0 - float(distances[i]),
                    metadata=metadata,
                )
            )
        return matches

    def stats(self) -> dict[str, int]:
        return {"total_vector_count": self.collection.count()}

    def delete_all(self) -> None:
        if self.collection.count() == 0:
            logger.info("No vectors to delete")
            return
        try:
            self.client.delete_collection(self.collection_name)
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to reset collection {self.collection_name}: {e}") from e
        logger.info(f"Deleted all vectors from {self.collection_name}")


class InMemoryVectorStore:
    """Brute-force cosine similarity store held in process memory."""

    def __init__(self, dimensions: Optional[int] = None):
        self.dimensions = dimensions
        self._vectors: dict[str, np.ndarray] = {}
        self._metadata: dict[str, dict[str, Any]] = {}

    def is_ready(self) -> bool:
        return True

    def upsert(self, records: list[VectorRecord]) -> None:
        for record in records:
            if self.dimensions is not None:
                record.validate_dimensions(self.dimensions)
            self._vectors[record.id] = l2_normalize(record.embedding)
            self._metadata[record.id] = dict(record.metadata)

    def _matches_filter(self, metadata: dict[str, Any], metadata_filter: dict[str, str]) -> bool:
        return all(metadata.get(key) == value for key, value in metadata_filter.items())

    def query(
        self,
        vector: list[float],
        top_k: int,
        metadata_filter: Optional[dict[str, str]] = None,
    ) -> list[RetrievedChunk]:
        query_vec = l2_normalize(vector)
        scored = []
        for vector_id, stored in self._vectors.items():
            metadata = self._metadata[vector_id]
            if metadata_filter and not self._matches_filter(metadata, metadata_filter):
                continue
            if stored.shape != query_vec.shape:
                raise VectorStoreError("Query vector dimension does not match stored vectors")
            scored.append((float(np.dot(stored, query_vec)), vector_id))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            RetrievedChunk(
                id=vector_id,
                text=self._metadata[vector_id].get("text", ""),
                score=score,
                metadata=dict(self._metadata[vector_id]),
            )
            for score, vector_id in scored[:top_k]
        ]

    def stats(self) -> dict[str, int]:
        return {"total_vector_count": len(self._vectors)}

    def delete_all(self) -> None:
        self._vectors.clear()
        self._metadata.clear()
