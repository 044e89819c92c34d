"""Knowledge resolver: merges lexical and vector retrieval into one answer.

Order of consultation:
1. Lexical scorer over every intent (keywords, patterns, name).
2. Lexical scorer over every document chunk (title weighted above content).
3. Vector search top hit, compared at face value with the lexical scores.
4. The single best candidate is accepted only if it reaches min_confidence.

Raw TF-IDF scores are unbounded, so TF-IDF chunk hits are never answers
here; callers that want grounding context use KnowledgeBase.search_chunks().
"""

from __future__ import annotations

import logging

from sitekb.knowledge.base import KnowledgeBase
from sitekb.models.enums import Source
from sitekb.models.resolution import Candidate, Resolution
from sitekb.retrieval.lexical import LexicalScorer
from sitekb.retrieval.vector_search import VectorSearch

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.25
PERFECT_SCORE = 1.0


def _best(candidates: list[Candidate]) -> Candidate | None:
    """Highest-scoring candidate; the earliest wins ties."""
    best = None
    for candidate in candidates:
        if best is None or candidate.score > best.score:
            best = candidate
    return best


class KnowledgeResolver:
    """Answers free-text queries from the knowledge base."""

    def __init__(
        self,
        knowledge: KnowledgeBase,
        scorer: LexicalScorer | None = None,
        vector_search: VectorSearch | None = None,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ):
        self._knowledge = knowledge
        self._scorer = scorer or LexicalScorer()
        self._vector_search = vector_search
        self.min_confidence = min_confidence

    def _intent_candidates(self, query: str) -> list[Candidate]:
        candidates = []
        for intent in self._knowledge.intents:
            score = self._scorer.score_intent(query, intent)
            if score > 0:
                candidates.append(Candidate(
                    source=Source.INTENT,
                    score=score,
                    answer=intent.response,
                    intent_name=intent.name,
                ))
        return candidates

    def _document_candidates(self, query: str) -> list[Candidate]:
        candidates = []
        for chunk in self._knowledge.chunks:
            document = self._knowledge.get_document(chunk.document_id)
            if document is None:
                continue
            score = self._scorer.score_document(query, document.title, chunk.content)
            if score > 0:
                candidates.append(Candidate(
                    source=Source.DOCUMENT,
                    score=score,
                    answer=chunk.content,
                    document_id=document.id,
                    chunk_id=chunk.id,
                ))
        return candidates

    def rank(self, query: str, limit: int = 3) -> list[Candidate]:
        """Lexical candidates from intents and documents, best first."""
        if not self._scorer.is_scorable(query) or limit <= 0:
            return []
        candidates = self._intent_candidates(query) + self._document_candidates(query)
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates[:limit]

    async def _vector_candidate(self, query: str) -> Candidate | None:
        if self._vector_search is None or not self._vector_search.ready:
            return None
        matches = await self._vector_search.search(query, limit=1)
        if not matches:
            return None
        intent = self._knowledge.get_intent(matches[0].id)
        if intent is None:
            logger.warning("Vector hit '%s' no longer matches a loaded intent", matches[0].id)
            return None
        return Candidate(
            source=Source.VECTOR,
            score=max(0.0, matches[0].score),
            answer=intent.response,
            intent_name=intent.name,
        )

    def _lexical_best(self, query: str) -> Candidate | None:
        return _best(self._intent_candidates(query) + self._document_candidates(query))

    def _accept(self, query: str, best: Candidate | None) -> Resolution:
        if best is not None and best.score >= self.min_confidence:
            logger.debug("Resolved %r via %s (%.3f)", query[:50], best.source.value, best.score)
            return Resolution.from_candidate(best)

        best_score = best.score if best else 0.0
        logger.debug("No answer for %r (best score %.3f)", query[:50], best_score)
        return Resolution.not_found(best_score)

    def resolve_lexical(self, query: str) -> Resolution:
        """Resolve without consulting vector search."""
        if not self._scorer.is_scorable(query):
            return Resolution.not_found()
        return self._accept(query, self._lexical_best(query))

    async def resolve(self, query: str) -> Resolution:
        """Resolve a query to the single best answer above min_confidence."""
        if not self._scorer.is_scorable(query):
            return Resolution.not_found()

        best = self._lexical_best(query)

        # A perfect lexical hit cannot be beaten, so skip the embedding call.
        if best is None or best.score < PERFECT_SCORE:
            vector = await self._vector_candidate(query)
            if vector is not None and (best is None or vector.score > best.score):
                best = vector

        return self._accept(query, best)
