"""Local file intake for the knowledge base."""

import csv
import io
from pathlib import Path
from typing import Optional

from kb_chat.models.knowledge import KnowledgeBase, TabularRow


def load_text_file(path: Path) -> str:
    """Read a UTF-8 text file."""
    if not path.exists():
        raise FileNotFoundError(f"Text file not found: {path}")
    return path.read_text(encoding="utf-8")


def parse_csv(content: str) -> list[TabularRow]:
    """Parse CSV content with a header row into tabular rows.

    Blank lines are skipped; missing trailing values become empty.
    """
    reader = csv.reader(io.StringIO(content))
    try:
        headers = [h.strip() for h in next(reader)]
    except StopIteration:
        return []

    rows = []
    for values in reader:
        if not any(v.strip() for v in values):
            continue
        padded = values + [""] * (len(headers) - len(values))
        rows.append(TabularRow.from_mapping(dict(zip(headers, padded))))
    return rows


def load_csv_file(path: Path) -> list[TabularRow]:
    """Read and parse a CSV file."""
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")
    return parse_csv(path.read_text(encoding="utf-8-sig"))


def build_knowledge_base(
    text_content: Optional[str] = None,
    rows: Optional[list[TabularRow]] = None,
) -> KnowledgeBase:
    """Create a loaded knowledge base from uploaded content."""
    return KnowledgeBase(text_content=text_content, rows=rows or [], is_loaded=True)


def summarize_knowledge_base(knowledge_base: KnowledgeBase) -> str:
    """Short human-readable description of the knowledge base contents."""
    lines = ["Knowledge Base Summary:"]

    if knowledge_base.text_content:
        text = knowledge_base.text_content
        lines.append(f"- Text file: {len(text)} characters, ~{len(text.split())} words")

    if knowledge_base.rows:
        lines.append(f"- CSV file: {len(knowledge_base.rows)} rows")
        lines.append(f"- Columns: {', '.join(knowledge_base.rows[0].headers)}")

    return "\n".join(lines)
