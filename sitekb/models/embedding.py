"""Embedding record and cache entry data models."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class EmbeddingRecord:
    """One intent's embedding vector."""

    intent_name: str
    intent_index: int
    vector: list[float]
    generated_at: datetime = field(default_factory=datetime.now)
    text: str = ""

    def __post_init__(self):
        if not self.vector:
            raise ValueError("vector must not be empty")
        if self.intent_index < 0:
            raise ValueError("intent_index must be >= 0")

    def to_dict(self) -> dict:
        return {
            "intent_name": self.intent_name,
            "intent_index": self.intent_index,
            "vector": list(self.vector),
            "generated_at": self.generated_at.isoformat(),
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EmbeddingRecord":
        return cls(
            intent_name=data["intent_name"],
            intent_index=data["intent_index"],
            vector=[float(v) for v in data["vector"]],
            generated_at=datetime.fromisoformat(data["generated_at"]),
            text=data.get("text", ""),
        )


@dataclass
class EmbeddingCacheEntry:
    """Persisted embeddings for a corpus, keyed by corpus hash and model."""

    model_id: str
    corpus_hash: str
    records: list[EmbeddingRecord] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    def matches(self, corpus_hash: str, model_id: str) -> bool:
        return self.corpus_hash == corpus_hash and self.model_id == model_id

    @property
    def dimension(self) -> int | None:
        """Shared vector dimension, or None if records disagree or are absent."""
        dims = {len(r.vector) for r in self.records}
        if len(dims) != 1:
            return None
        return dims.pop()

    def to_dict(self) -> dict:
        return {
            "model_id": self.model_id,
            "corpus_hash": self.corpus_hash,
            "generated_at": self.generated_at.isoformat(),
            "records": [r.to_dict() for r in self.records],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EmbeddingCacheEntry":
        return cls(
            model_id=data["model_id"],
            corpus_hash=data["corpus_hash"],
            records=[EmbeddingRecord.from_dict(r) for r in data.get("records", [])],
            generated_at=datetime.fromisoformat(data["generated_at"]),
        )
