"""Knowledge resolution result data models."""

from dataclasses import dataclass

from sitekb.models.enums import Source


@dataclass
class Candidate:
    """A scored answer candidate from one retrieval source."""

    source: Source
    score: float
    answer: str
    intent_name: str | None = None
    document_id: str | None = None
    chunk_id: str | None = None

    def __post_init__(self):
        if not isinstance(self.source, Source):
            self.source = Source(self.source)
        if self.score < 0:
            raise ValueError(f"score must be >= 0, got {self.score}")


@dataclass
class Resolution:
    """The single ranked answer for a query.

    When found is False, answer is None and score is the best score observed
    (for logging only).
    """

    found: bool
    score: float
    source: Source | None = None
    answer: str | None = None
    intent_name: str | None = None
    document_id: str | None = None

    @classmethod
    def not_found(cls, best_score: float = 0.0) -> "Resolution":
        return cls(found=False, score=best_score)

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "Resolution":
        return cls(
            found=True,
            score=candidate.score,
            source=candidate.source,
            answer=candidate.answer,
            intent_name=candidate.intent_name,
            document_id=candidate.document_id,
        )

    def to_dict(self) -> dict:
        return {
            "found": self.found,
            "answer": self.answer,
            "score": round(self.score, 4),
            "source": self.source.value if self.source else None,
            "intent_name": self.intent_name,
            "document_id": self.document_id,
        }
