"""Embedding providers and vector similarity helpers."""

import hashlib
import logging
import re
import threading
from typing import Optional, Protocol, Sequence

import numpy as np
from langchain_openai import OpenAIEmbeddings

from kb_chat.errors import EmbeddingDimensionError

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    """Converts text to a fixed-dimension vector."""

    dimensions: int

    def embed(self, text: str) -> list[float]:
        ...


def check_dimensions(embedding: Sequence[float], dimensions: int) -> list[float]:
    """Return the embedding as a list, raising if its length is not `dimensions`."""
    if len(embedding) != dimensions:
        raise EmbeddingDimensionError(dimensions, len(embedding))
    return list(embedding)


def l2_normalize(vector: Sequence[float]) -> np.ndarray:
    """Scale a vector to unit length; the zero vector is returned unchanged."""
    arr = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr
    return arr / norm


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if either is zero)."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimensions")
    return float(np.dot(l2_normalize(a), l2_normalize(b)))


class OpenAIEmbeddingProvider:
    """OpenAI embeddings through LangChain, with a dimensionality check."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int = 1024,
        timeout: Optional[float] = None,
        client: Optional[OpenAIEmbeddings] = None,
    ):
        self.model = model
        self.dimensions = dimensions
        self._api_key = api_key
        self._timeout = timeout
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> OpenAIEmbeddings:
        """Lazy-load the LangChain embeddings client; safe to call from worker threads."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = OpenAIEmbeddings(
                        model=self.model,
                        dimensions=self.dimensions,
                        api_key=self._api_key,
                        timeout=self._timeout,
                        max_retries=0,
                    )
        return self._client

    def embed(self, text: str) -> list[float]:
        return check_dimensions(self.client.embed_query(text), self.dimensions)


class HashingEmbeddingProvider:
    """Deterministic term-hashing embedding for offline runs and tests.

    Each token increments the bucket selected by its digest; the result is
    L2-normalized. This captures word overlap only, not meaning.
    """

    def __init__(self, dimensions: int = 1024):
        self.dimensions = dimensions

    def _bucket(self, token: str) -> int:
        digest = hashlib.md5(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self.dimensions

    def embed(self, text: str) -> list[float]:
        vector = np.zeros(self.dimensions)
        for token in TOKEN_PATTERN.findall(text.lower()):
            vector[self._bucket(token)] += 1.0
        return l2_normalize(vector).tolist()
