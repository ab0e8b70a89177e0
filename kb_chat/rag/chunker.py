"""Sentence- and word-boundary text chunking."""

import re

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def _split_words(sentence: str, target_size: int) -> list[str]:
    """Split an oversized sentence into word-boundary pieces.

    A single word longer than target_size becomes its own piece.
    """
    pieces = []
    current = ""
    for word in sentence.split():
        if current and len(current) + 1 + len(word) > target_size:
            pieces.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        pieces.append(current)
    return pieces


def chunk_text(text: str, target_size: int = 800) -> list[str]:
    """Split text into chunks of at most target_size characters.

    Sentences are accumulated into a buffer which is flushed whenever the
    next sentence would overflow it. Sentences longer than target_size are
    split on word boundaries. Whitespace between sentences and words is
    normalized to a single space.

    Args:
        text: Input text
        target_size: Maximum chunk length in characters

    Returns:
        Non-empty chunks in source order
    """
    if target_size < 1:
        raise ValueError("target_size must be positive")
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    buffer = ""

    for sentence in SENTENCE_BOUNDARY.split(text.strip()):
        sentence = " ".join(sentence.split())
        if not sentence:
            continue

        if len(sentence) > target_size:
            if buffer:
                chunks.append(buffer)
                buffer = ""
            chunks.extend(_split_words(sentence, target_size))
            continue

        if buffer and len(buffer) + 1 + len(sentence) > target_size:
            chunks.append(buffer)
            buffer = ""

        buffer = f"{buffer} {sentence}" if buffer else sentence

    if buffer:
        chunks.append(buffer)

    return chunks
