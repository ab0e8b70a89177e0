"""Conversion of tabular rows and free text into chunks."""

import logging
from dataclasses import dataclass
from typing import Optional

from kb_chat.models.knowledge import Chunk, ChunkMetadata, KnowledgeBase, TabularRow
from kb_chat.rag.chunker import chunk_text
from kb_chat.rag.config import DEFAULT_GROUP

logger = logging.getLogger(__name__)


@dataclass
class GroupingColumns:
    """Column names detected as module/week grouping keys."""

    module: Optional[str] = None
    week: Optional[str] = None


def detect_grouping_columns(headers: list[str]) -> GroupingColumns:
    """Find the first headers mentioning 'module' and 'week' (case-insensitive)."""
    columns = GroupingColumns()
    for header in headers:
        lowered = header.lower()
        if columns.module is None and "module" in lowered:
            columns.module = header
        if columns.week is None and "week" in lowered:
            columns.week = header
    return columns


def row_to_chunk(
    row: TabularRow,
    columns: GroupingColumns,
    default_group: str = DEFAULT_GROUP,
) -> Optional[Chunk]:
    """Render one row as 'field: value' lines under a group heading.

    Returns None when every field of the row is empty.
    """
    module = row.get(columns.module) if columns.module else None
    week = row.get(columns.week) if columns.week else None
    group_key = f"Module {module} Week {week}" if module and week else default_group

    lines = [f"{cell.name}: {cell.value}" for cell in row.cells if cell.value is not None]
    if not lines:
        return None

    return Chunk(
        text=f"=== {group_key} ===\n" + "\n".join(lines),
        source_metadata=ChunkMetadata(group_key=group_key, module=module, week=week),
    )


def rows_to_chunks(
    rows: list[TabularRow],
    default_group: str = DEFAULT_GROUP,
) -> list[Chunk]:
    """Convert tabular rows to chunks, one per non-empty row.

    Grouping columns are detected from the first row's headers.
    """
    if not rows:
        return []

    columns = detect_grouping_columns(rows[0].headers)
    logger.debug(f"Grouping columns: module={columns.module!r} week={columns.week!r}")

    chunks = []
    for row in rows:
        chunk = row_to_chunk(row, columns, default_group)
        if chunk is not None:
            chunks.append(chunk)
    return chunks


def build_chunks(
    knowledge_base: KnowledgeBase,
    text_chunk_size: int = 800,
    default_group: str = DEFAULT_GROUP,
) -> list[Chunk]:
    """Flatten a knowledge base into chunks: free text first, then rows."""
    chunks: list[Chunk] = []

    if knowledge_base.text_content:
        text_metadata = ChunkMetadata(group_key=default_group)
        chunks.extend(
            Chunk(text=piece, source_metadata=text_metadata)
            for piece in chunk_text(knowledge_base.text_content, text_chunk_size)
        )

    if knowledge_base.rows:
        logger.info(f"Processing {len(knowledge_base.rows)} tabular records...")
        row_chunks = rows_to_chunks(knowledge_base.rows, default_group)
        logger.info(f"Created {len(row_chunks)} entries from tabular data")
        chunks.extend(row_chunks)

    return chunks
