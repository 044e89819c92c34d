"""Lexical match scoring between a query and candidate texts.

Scores are in [0, 1]. Direct containment earns a fixed score; word overlap
can beat it, and the larger of the two wins.
"""

import logging

from sitekb.models.intent import Intent
from sitekb.retrieval.text import content_tokens, normalize

logger = logging.getLogger(__name__)

# Empirical constants kept for behavior parity; override per scorer instance.
KEYWORD_MATCH_SCORE = 0.9
NAME_MATCH_SCORE = 0.85
MIN_QUERY_LENGTH = 2

TITLE_WEIGHT = 2
CONTENT_WEIGHT = 1
MAX_TOKEN_WEIGHT = TITLE_WEIGHT + CONTENT_WEIGHT


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def word_overlap(tokens: list[str], candidate: str) -> float:
    """Fraction of query tokens found as substrings of the candidate."""
    if not tokens:
        return 0.0
    hits = sum(1 for token in tokens if token in candidate)
    return hits / len(tokens)


class LexicalScorer:
    """Containment and word-overlap scorer for intents and documents."""

    def __init__(
        self,
        keyword_match_score: float = KEYWORD_MATCH_SCORE,
        name_match_score: float = NAME_MATCH_SCORE,
        min_query_length: int = MIN_QUERY_LENGTH,
    ):
        self.keyword_match_score = keyword_match_score
        self.name_match_score = name_match_score
        self.min_query_length = min_query_length

    def is_scorable(self, query: str | None) -> bool:
        return len(normalize(query)) >= self.min_query_length

    def score(self, query: str, candidate: str, containment_score: float | None = None) -> float:
        """Score one candidate phrase against the query.

        containment_score defaults to the keyword-level score.
        """
        q = normalize(query)
        c = normalize(candidate)
        if len(q) < self.min_query_length or len(c) < self.min_query_length:
            return 0.0

        fixed = self.keyword_match_score if containment_score is None else containment_score
        score = fixed if _contains_either(q, c) else 0.0
        return max(score, word_overlap(content_tokens(q), c))

    def score_intent(self, query: str, intent: Intent) -> float:
        """Best score over an intent's keywords, patterns and name."""
        if not self.is_scorable(query):
            return 0.0

        best = 0.0
        for phrase in intent.keywords + intent.patterns:
            best = max(best, self.score(query, phrase))

        name = intent.name.replace("_", " ").replace("-", " ")
        best = max(best, self.score(query, name, containment_score=self.name_match_score))

        # Overlap against the whole trigger vocabulary catches multi-keyword queries.
        corpus = normalize(" ".join((name,) + intent.keywords + intent.patterns))
        best = max(best, word_overlap(content_tokens(query), corpus))
        return best

    def score_document(self, query: str, title: str, content: str) -> float:
        """Score document text, weighting title hits above content hits.

        Each query token earns TITLE_WEIGHT if found in the title and
        CONTENT_WEIGHT if found in the content; the sum is normalized by the
        maximum attainable weight so the result stays in [0, 1].
        """
        q = normalize(query)
        if len(q) < self.min_query_length:
            return 0.0

        t = normalize(title)
        c = normalize(content)

        score = 0.0
        if len(t) >= self.min_query_length and _contains_either(q, t):
            score = self.keyword_match_score
        elif len(c) >= self.min_query_length and q in c:
            score = self.keyword_match_score

        tokens = content_tokens(q)
        if tokens:
            weight = sum(
                (TITLE_WEIGHT if token in t else 0) + (CONTENT_WEIGHT if token in c else 0)
                for token in tokens
            )
            score = max(score, weight / (len(tokens) * MAX_TOKEN_WEIGHT))
        return score
