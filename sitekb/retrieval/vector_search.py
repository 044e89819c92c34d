"""Cosine-similarity search over cached intent embeddings.

The search never raises: with no provider, before initialization, or when
the embedding backend fails, it returns an empty list so callers fall back
to the lexical and TF-IDF paths.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass

import numpy as np

from sitekb.embedding.provider import EmbeddingProvider
from sitekb.models.embedding import EmbeddingCacheEntry, EmbeddingRecord
from sitekb.models.intent import Intent
from sitekb.storage.cache import CacheBackend, MemoryCache

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_DELAY_SECONDS = 0.05
MAX_STORED_TEXT = 500


@dataclass
class VectorMatch:
    """One vector search hit."""

    id: str
    intent_index: int
    score: float


@dataclass
class VectorStatus:
    ready: bool
    count: int
    model_id: str | None
    corpus_hash: str | None = None


def cosine_similarity(a, b) -> float:
    """Cosine of the angle between two vectors.

    Returns 0.0 if either norm is zero.

    Raises:
        ValueError: If the vectors differ in dimension.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"dimension mismatch: {va.shape} vs {vb.shape}")
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def corpus_hash(intents: list[Intent]) -> str:
    """Stable hash over each intent's name, keywords and responses."""
    content = json.dumps(
        [
            {"name": i.name, "keywords": list(i.keywords), "responses": list(i.responses)}
            for i in intents
        ],
        sort_keys=True,
    )
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def embedding_text(intent: Intent) -> str:
    """Text embedded for an intent: name, keywords and primary response."""
    keywords = ", ".join(intent.keywords)
    return f"{intent.name}. Keywords: {keywords}. {intent.response}"


class VectorSearch:
    """Intent embedding cache plus cosine ranking."""

    def __init__(
        self,
        provider: EmbeddingProvider | None,
        cache: CacheBackend | None = None,
        delay_seconds: float = DEFAULT_EMBEDDING_DELAY_SECONDS,
    ):
        self._provider = provider
        self._cache = cache or MemoryCache()
        self._delay = delay_seconds
        self._entry: EmbeddingCacheEntry | None = None
        self._init_lock = asyncio.Lock()

    @property
    def model_id(self) -> str | None:
        return self._provider.model_id if self._provider else None

    @property
    def ready(self) -> bool:
        return self._provider is not None and self._entry is not None and bool(self._entry.records)

    def status(self) -> VectorStatus:
        return VectorStatus(
            ready=self.ready,
            count=len(self._entry.records) if self._entry else 0,
            model_id=self.model_id,
            corpus_hash=self._entry.corpus_hash if self._entry else None,
        )

    async def initialize(self, intents: list[Intent]) -> None:
        """Load cached embeddings for this corpus, or regenerate and persist them.

        Concurrent calls are serialized; a call that finds the corpus already
        embedded returns without touching the provider or the cache.
        """
        if self._provider is None:
            logger.warning("No embedding provider configured, vector search disabled")
            return

        async with self._init_lock:
            await self._initialize(intents)

    async def _initialize(self, intents: list[Intent]) -> None:
        current_hash = corpus_hash(intents)
        if self._entry is not None and self._entry.matches(current_hash, self._provider.model_id):
            logger.debug("Intent embeddings already current")
            return

        cached = self._load_cache()
        if cached is not None and cached.matches(current_hash, self._provider.model_id) and cached.dimension:
            self._entry = cached
            logger.info("Loaded %d intent embeddings from cache", len(cached.records))
            return

        logger.info("Generating embeddings for %d intents", len(intents))
        try:
            records = await self._generate(intents)
        except Exception as e:
            logger.error("Embedding generation failed: %s", e)
            self._entry = None
            return

        self._entry = EmbeddingCacheEntry(
            model_id=self._provider.model_id,
            corpus_hash=current_hash,
            records=records,
        )
        self._cache.save(self._entry.to_dict())
        logger.info("Generated and cached %d intent embeddings", len(records))

    def _load_cache(self) -> EmbeddingCacheEntry | None:
        payload = self._cache.load()
        if payload is None:
            return None
        try:
            return EmbeddingCacheEntry.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable embedding cache: %s", e)
            return None

    async def _generate(self, intents: list[Intent]) -> list[EmbeddingRecord]:
        records = []
        for idx, intent in enumerate(intents):
            text = embedding_text(intent)
            try:
                vector = (await asyncio.to_thread(self._provider.embed, [text]))[0]
            except ValueError as e:
                logger.error("Failed to embed intent '%s': %s", intent.name, e)
                continue
            records.append(
                EmbeddingRecord(
                    intent_name=intent.name,
                    intent_index=idx,
                    vector=[float(v) for v in vector],
                    text=text[:MAX_STORED_TEXT],
                )
            )
            # Cooperative throttle for rate-limited embedding APIs.
            if idx < len(intents) - 1 and self._delay > 0:
                await asyncio.sleep(self._delay)
        return records

    async def search(self, query: str, limit: int = 3) -> list[VectorMatch]:
        """Rank cached intents by cosine similarity to the query."""
        if not self.ready or not query or limit <= 0:
            return []

        try:
            query_vector = (await asyncio.to_thread(self._provider.embed_query, [query]))[0]
            matches = [
                VectorMatch(
                    id=record.intent_name,
                    intent_index=record.intent_index,
                    score=cosine_similarity(query_vector, record.vector),
                )
                for record in self._entry.records
            ]
        except Exception as e:
            logger.error("Vector search unavailable: %s", e)
            return []

        matches.sort(key=lambda m: m.score, reverse=True)
        top = matches[:limit]
        logger.debug(
            "Vector search for %r: top score %s",
            query[:50],
            f"{top[0].score:.3f}" if top else "n/a",
        )
        return top
