"""Document Chunk data model."""

import uuid
from dataclasses import dataclass, field


@dataclass
class Chunk:
    """A bounded slice of a document's text, the unit indexed for retrieval."""

    document_id: str
    content: str
    index: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not self.content:
            raise ValueError("content must not be empty")
        if self.index < 0:
            raise ValueError("index must be >= 0")

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "content": self.content,
            "index": self.index,
        }

    @classmethod
    def from_record(cls, record: dict) -> "Chunk":
        return cls(
            document_id=record["document_id"],
            content=record["content"],
            index=record["index"],
            id=record["id"],
        )
