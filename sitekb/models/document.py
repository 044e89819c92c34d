"""Knowledge document data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class KnowledgeDocument:
    """A support article or uploaded text ingested into the knowledge base."""

    title: str
    content: str
    category: str | None = None
    keywords: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.title:
            raise ValueError("title must not be empty")
        if not self.content or not self.content.strip():
            raise ValueError("content must not be empty")

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "keywords": list(self.keywords),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict) -> "KnowledgeDocument":
        created_at = record.get("created_at")
        return cls(
            title=record["title"],
            content=record["content"],
            category=record.get("category"),
            keywords=list(record.get("keywords") or []),
            id=record["id"],
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )
