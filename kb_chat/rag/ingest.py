"""Ingestion pipeline for the knowledge base.

Handles:
1. Flattening free text and tabular rows into chunks
2. Embedding each batch of chunks concurrently
3. Upserting batches to the vector store, shrinking the batch size after
   repeated consecutive failures and queueing failed chunks for a replay
4. Replaying the retry queue with a small batch size

Ingestion is best-effort: transient failures are reported in the result,
never raised. Invalid credentials and malformed requests abort the run.
"""

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from kb_chat.errors import (
    PERMANENT_CATEGORIES,
    ConfigurationError,
    EmbeddingDimensionError,
    KBChatError,
    classify_completion_error,
)
from kb_chat.models.knowledge import Chunk, KnowledgeBase, VectorRecord
from kb_chat.monitoring.logging import ComponentLogger
from kb_chat.monitoring.tracing import trace_span
from kb_chat.rag.config import RAGConfig
from kb_chat.rag.embeddings import EmbeddingProvider
from kb_chat.rag.tabular import build_chunks
from kb_chat.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)


def _raise_if_permanent(exc: Exception) -> None:
    """Re-raise invalid-credential and malformed-request errors as CompletionError."""
    error = classify_completion_error(exc)
    if error.category in PERMANENT_CATEGORIES:
        raise error from exc


@dataclass
class IngestResult:
    """Result of a knowledge base ingestion."""

    success_count: int = 0
    total_count: int = 0
    failed_batches: int = 0
    retried_chunks: int = 0

    @property
    def complete(self) -> bool:
        return self.success_count == self.total_count

    def as_tuple(self) -> tuple[int, int]:
        return self.success_count, self.total_count


@dataclass
class BatchState:
    """Batch sizing and retry bookkeeping for the main ingestion pass.

    After more than `max_consecutive_failures` failures in a row the batch
    size is halved (never below `min_batch_size`) and the same batch is
    retried. Otherwise a failed batch is skipped. Once the floor is reached
    a failing batch is always skipped, so the pass terminates.

    The retry queue is keyed by global chunk index; a chunk that later
    succeeds in the main pass is removed from it.
    """

    batch_size: int
    min_batch_size: int
    max_consecutive_failures: int = 2
    consecutive_failures: int = 0
    total_failures: int = 0
    retry_queue: dict[int, Chunk] = field(default_factory=dict)

    def record_success(self, start: int, batch: list[Chunk]) -> None:
        self.consecutive_failures = 0
        for index in range(start, start + len(batch)):
            self.retry_queue.pop(index, None)

    def record_failure(self, start: int, batch: list[Chunk]) -> bool:
        """Register a failed batch.

        Returns:
            True if the batch size was halved and the same batch should be
            retried, False if the caller should move on to the next batch
        """
        self.consecutive_failures += 1
        self.total_failures += 1
        for offset, chunk in enumerate(batch):
            self.retry_queue[start + offset] = chunk

        if (
            self.consecutive_failures > self.max_consecutive_failures
            and self.batch_size > self.min_batch_size
        ):
            self.batch_size = max(self.min_batch_size, self.batch_size // 2)
            logger.warning(
                f"Reducing batch size to {self.batch_size} due to multiple failures"
            )
            return True
        return False

    def pending_retries(self) -> list[tuple[int, Chunk]]:
        return sorted(self.retry_queue.items())


class KnowledgeIngester:
    """Chunks, embeds and persists a knowledge base."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        config: Optional[RAGConfig] = None,
        monitor: Optional[ComponentLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize ingester.

        Args:
            embedder: Embedding provider
            store: Vector store to upsert into
            config: Pipeline configuration
            monitor: Component logger for stage timing
            sleep: Delay function (injectable for tests)
        """
        self.embedder = embedder
        self.store = store
        self.config = (config or RAGConfig.from_env()).ensure_valid()
        self.monitor = monitor or ComponentLogger()
        self._sleep = sleep

    def build_chunks(self, knowledge_base: KnowledgeBase) -> list[Chunk]:
        return build_chunks(
            knowledge_base,
            text_chunk_size=self.config.text_chunk_size,
            default_group=self.config.default_group,
        )

    def _embed_batch(
        self,
        executor: Executor,
        indexed_chunks: list[tuple[int, Chunk]],
    ) -> list[VectorRecord]:
        """Embed chunks concurrently and assemble vector records.

        Any embedding error propagates and fails the whole batch.
        """
        texts = [chunk.text for _, chunk in indexed_chunks]
        embeddings = list(executor.map(self.embedder.embed, texts))
        return [
            VectorRecord.from_chunk(
                f"doc-{index}", embedding, chunk, self.embedder.dimensions
            )
            for (index, chunk), embedding in zip(indexed_chunks, embeddings)
        ]

    def ingest(self, knowledge_base: KnowledgeBase, reset: bool = True) -> IngestResult:
        """Reprocess the entire knowledge base into the vector store.

        Args:
            knowledge_base: Current knowledge base content
            reset: Clear the namespace first (full re-ingestion)

        Returns:
            IngestResult with success and total chunk counts

        Raises:
            ConfigurationError: If the vector store is not ready
            EmbeddingDimensionError: If the provider returns vectors of the wrong size
            CompletionError: On an invalid credential or malformed request
        """
        if not self.store.is_ready():
            raise ConfigurationError("Vector store is not ready")

        with trace_span("ingestion") as span, self.monitor.component("ingestion") as stage:
            chunks = self.build_chunks(knowledge_base)
            result = IngestResult(total_count=len(chunks))
            logger.info(f"Total chunks to process: {len(chunks)}")
            span.set_attribute("total_chunks", len(chunks))

            if reset:
                self.store.delete_all()

            with ThreadPoolExecutor(max_workers=self.config.embedding_workers) as executor:
                state = self._main_pass(executor, chunks, result)
                self._replay(executor, state, result)

            logger.info(
                f"Completed processing. Successfully upserted {result.success_count} "
                f"vectors out of {result.total_count} chunks"
            )
            self._log_index_stats()

            stage["total_chunks"] = result.total_count
            stage["success_count"] = result.success_count
            stage["failed_batches"] = result.failed_batches
            span.set_attribute("success_count", result.success_count)

        return result

    def _main_pass(
        self,
        executor: Executor,
        chunks: list[Chunk],
        result: IngestResult,
    ) -> BatchState:
        state = BatchState(
            batch_size=self.config.batch_size,
            min_batch_size=self.config.min_batch_size,
            max_consecutive_failures=self.config.max_consecutive_failures,
        )

        i = 0
        while i < len(chunks):
            end = min(i + state.batch_size, len(chunks))
            batch = chunks[i:end]
            try:
                records = self._embed_batch(executor, list(enumerate(batch, start=i)))
                self.store.upsert(records)
            except EmbeddingDimensionError:
                raise
            except Exception as e:
                _raise_if_permanent(e)
                logger.error(f"Error processing batch at chunk {i} ({len(batch)} chunks): {e}")
                result.failed_batches += 1
                if state.record_failure(i, batch):
                    continue
                i = end
                continue

            result.success_count += len(records)
            state.record_success(i, batch)
            logger.info(
                f"Processed chunks {i}-{end - 1} - Total vectors: "
                f"{result.success_count}/{len(chunks)}"
            )
            i = end
            if i < len(chunks):
                self._sleep(self.config.batch_delay)

        return state

    def _replay(self, executor: Executor, state: BatchState, result: IngestResult) -> None:
        """Replay queued chunks with a small batch size; failures are logged only."""
        pending = state.pending_retries()
        if not pending:
            return

        result.retried_chunks = len(pending)
        logger.info(f"Attempting to process {len(pending)} failed chunks...")
        size = self.config.retry_batch_size

        try:
            for start in range(0, len(pending), size):
                batch = pending[start:start + size]
                try:
                    records = self._embed_batch(executor, batch)
                    self.store.upsert(records)
                except EmbeddingDimensionError:
                    raise
                except Exception as e:
                    _raise_if_permanent(e)
                    logger.error(f"Failed to process retry batch {start // size + 1}: {e}")
                    continue
                result.success_count += len(records)
                logger.info(
                    f"Processed retry batch {start // size + 1} - Total vectors: "
                    f"{result.success_count}/{result.total_count}"
                )
                self._sleep(self.config.retry_delay)
        except KBChatError:
            raise
        except Exception:
            logger.exception("Retry replay aborted")

    def _log_index_stats(self) -> None:
        try:
            stats = self.store.stats()
        except Exception as e:
            logger.error(f"Failed to get index stats: {e}")
            return
        logger.info(f"Total vectors in index: {stats.get('total_vector_count', 0)}")
