"""Sentence-boundary text chunker for knowledge documents."""

import re

from sitekb.models.chunk import Chunk
from sitekb.models.document import KnowledgeDocument

DEFAULT_CHUNK_SIZE = 500

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|\n\s*\n")


def split_sentences(text: str) -> list[str]:
    """Split text into sentences on terminal punctuation and blank lines."""
    return [s.strip() for s in SENTENCE_BOUNDARY.split(text) if s and s.strip()]


def _split_long_sentence(sentence: str, max_chars: int) -> list[str]:
    """Break a sentence longer than the budget on word boundaries.

    A single word longer than the budget is hard-cut.
    """
    pieces = []
    current = ""
    for word in sentence.split():
        while len(word) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chars:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Pack whole sentences into chunks of at most max_chars characters.

    Sentences are never split unless a single sentence exceeds the budget.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    if not text or not text.strip():
        return []

    chunks = []
    current = ""

    for sentence in split_sentences(text):
        parts = [sentence] if len(sentence) <= max_chars else _split_long_sentence(sentence, max_chars)
        for part in parts:
            candidate = f"{current} {part}" if current else part
            if len(candidate) > max_chars and current:
                chunks.append(current)
                current = part
            else:
                current = candidate

    if current:
        chunks.append(current)

    return chunks


def chunk_document(
    document: KnowledgeDocument,
    max_chars: int = DEFAULT_CHUNK_SIZE,
) -> list[Chunk]:
    """Split a document into indexed chunks owned by that document."""
    return [
        Chunk(document_id=document.id, content=content, index=idx)
        for idx, content in enumerate(chunk_text(document.content, max_chars))
    ]
