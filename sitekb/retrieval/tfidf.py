"""In-memory TF-IDF index over knowledge chunks.

The index has no removal: when the chunk corpus changes, build a new index
with TfIdfIndex.build() and swap it in for the old one.
"""

import math
from collections import Counter
from typing import Iterable

from sitekb.retrieval.text import content_tokens


class TfIdfIndex:
    """Term-frequency x inverse-document-frequency relevance model.

    idf(term) = 1 + ln(N / (1 + df)), add-one smoothed on document
    frequency so unseen terms never divide by zero.
    """

    def __init__(self):
        self._ids: list[str] = []
        self._term_counts: list[Counter] = []
        self._doc_freq: Counter = Counter()

    @classmethod
    def build(cls, items: Iterable[tuple[str, str]]) -> "TfIdfIndex":
        """Build a fresh index from (text, id) pairs."""
        index = cls()
        for text, doc_id in items:
            index.add_document(text, doc_id)
        return index

    def __len__(self) -> int:
        return len(self._ids)

    def add_document(self, text: str, doc_id: str) -> None:
        counts = Counter(content_tokens(text))
        self._ids.append(doc_id)
        self._term_counts.append(counts)
        self._doc_freq.update(counts.keys())

    def idf(self, term: str) -> float:
        n_docs = len(self._ids)
        if n_docs == 0:
            return 0.0
        return 1.0 + math.log(n_docs / (1 + self._doc_freq.get(term, 0)))

    def query(self, text: str, limit: int = 5) -> list[tuple[str, float]]:
        """Return (id, score) pairs with positive scores, best first.

        Ties keep insertion order.
        """
        terms = set(content_tokens(text))
        if not terms or not self._ids or limit <= 0:
            return []

        idf = {term: self.idf(term) for term in terms}
        results = []
        for doc_id, counts in zip(self._ids, self._term_counts):
            score = sum(counts[term] * idf[term] for term in terms if term in counts)
            if score > 0:
                results.append((doc_id, score))

        results.sort(key=lambda r: r[1], reverse=True)
        return results[:limit]
