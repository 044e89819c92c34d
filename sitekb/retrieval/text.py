"""Text normalization and tokenization shared by the lexical scorers."""

import re

TOKEN_PATTERN = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "can", "could",
    "did", "do", "does", "for", "from", "had", "has", "have", "how", "i",
    "if", "in", "is", "it", "its", "me", "my", "of", "on", "or", "our",
    "please", "so", "that", "the", "their", "there", "this", "to", "us",
    "was", "we", "what", "when", "where", "which", "who", "why", "will",
    "with", "would", "you", "your",
})


def normalize(text: str | None) -> str:
    """Lowercase, trim, and collapse internal whitespace."""
    if not text:
        return ""
    return " ".join(text.lower().split())


def tokenize(text: str | None) -> list[str]:
    """Word tokens of the normalized text, punctuation dropped."""
    return TOKEN_PATTERN.findall(normalize(text))


def content_tokens(text: str | None) -> list[str]:
    """Tokens longer than one character that are not stopwords."""
    return [t for t in tokenize(text) if len(t) > 1 and t not in STOPWORDS]
