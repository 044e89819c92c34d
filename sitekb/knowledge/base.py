"""Knowledge base service: intents, documents and chunks over a record store.

Owns the chunk TF-IDF index. Any change to the chunk corpus builds a new
index and swaps it in whole, so readers never observe a half-built index.
"""

import logging

from sitekb.ingestion.chunker import DEFAULT_CHUNK_SIZE, chunk_document
from sitekb.models.chunk import Chunk
from sitekb.models.document import KnowledgeDocument
from sitekb.models.intent import Intent, normalize_intent, normalize_intents
from sitekb.retrieval.tfidf import TfIdfIndex
from sitekb.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

INTENTS_TABLE = "intents"
DOCUMENTS_TABLE = "documents"
CHUNKS_TABLE = "chunks"


class KnowledgeBase:
    """In-memory view of the knowledge corpus, persisted through a RecordStore."""

    def __init__(self, store: RecordStore, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._store = store
        self._chunk_size = chunk_size
        self._intents: list[Intent] = []
        self._documents: dict[str, KnowledgeDocument] = {}
        self._chunks: list[Chunk] = []
        self._index = TfIdfIndex()
        self.reload()

    def reload(self) -> None:
        """Re-read every table from the store and rebuild the index."""
        self._intents = normalize_intents(self._store.all(INTENTS_TABLE))
        self._documents = {}
        for record in self._store.all(DOCUMENTS_TABLE):
            try:
                doc = KnowledgeDocument.from_record(record)
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid document record %s: %s", record.get("id"), e)
                continue
            self._documents[doc.id] = doc
        self._chunks = []
        for record in self._store.all(CHUNKS_TABLE):
            try:
                self._chunks.append(Chunk.from_record(record))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid chunk record %s: %s", record.get("id"), e)
        self.rebuild_index()

    def rebuild_index(self) -> None:
        self._index = TfIdfIndex.build((c.content, c.id) for c in self._chunks)
        logger.info("Loaded %d knowledge chunks into the TF-IDF index", len(self._chunks))

    # --- intents ---

    @property
    def intents(self) -> list[Intent]:
        return list(self._intents)

    def list_intents(self) -> list[dict]:
        return [
            {"name": i.name, "keywords": list(i.keywords), "responses": len(i.responses)}
            for i in self._intents
        ]

    def get_intent(self, name: str) -> Intent | None:
        wanted = name.strip().lower()
        return next((i for i in self._intents if i.name == wanted), None)

    def load_intents(self, records: list[dict]) -> int:
        """Replace the whole intent collection. Returns the number kept."""
        intents = normalize_intents(records)
        self._store.replace_all(INTENTS_TABLE, [i.to_record() for i in intents])
        self._intents = normalize_intents(self._store.all(INTENTS_TABLE))
        logger.info("Loaded %d intents (%d records supplied)", len(self._intents), len(records))
        return len(self._intents)

    def add_intent(
        self,
        name: str,
        responses: list[str],
        keywords: list[str] | None = None,
        patterns: list[str] | None = None,
    ) -> Intent:
        """Add one intent.

        Raises:
            ValueError: If the name is taken or there is no usable response.
        """
        intent = normalize_intent({
            "name": name,
            "responses": responses,
            "keywords": keywords or [],
            "patterns": patterns or [],
        })
        if intent is None:
            raise ValueError("intent needs a name and at least one non-empty response")
        if self.get_intent(intent.name) is not None:
            raise ValueError(f"intent '{intent.name}' already exists")

        stored = self._store.insert(INTENTS_TABLE, intent.to_record())
        intent = normalize_intent(stored)
        self._intents.append(intent)
        return intent

    def delete_intent(self, name: str) -> bool:
        record = self._store.get_by(INTENTS_TABLE, "name", name.strip().lower())
        if record is None:
            return False
        self._store.delete(INTENTS_TABLE, record["id"])
        self._intents = [i for i in self._intents if i.name != record["name"]]
        return True

    # --- documents and chunks ---

    @property
    def documents(self) -> list[KnowledgeDocument]:
        return list(self._documents.values())

    @property
    def chunks(self) -> list[Chunk]:
        return list(self._chunks)

    def get_document(self, document_id: str) -> KnowledgeDocument | None:
        return self._documents.get(document_id)

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        return next((c for c in self._chunks if c.id == chunk_id), None)

    def chunks_for(self, document_id: str) -> list[Chunk]:
        return sorted((c for c in self._chunks if c.document_id == document_id), key=lambda c: c.index)

    def add_document(
        self,
        title: str,
        content: str,
        category: str | None = None,
        keywords: list[str] | None = None,
    ) -> dict:
        """Persist a document, chunk it, and rebuild the index."""
        document = KnowledgeDocument(
            title=title,
            content=content,
            category=category,
            keywords=list(keywords or []),
        )
        return self.ingest(document)

    def ingest(self, document: KnowledgeDocument) -> dict:
        chunks = chunk_document(document, max_chars=self._chunk_size)

        self._store.insert(DOCUMENTS_TABLE, document.to_record())
        self._store.insert_many(CHUNKS_TABLE, [c.to_record() for c in chunks])

        self._documents[document.id] = document
        self._chunks.extend(chunks)
        self.rebuild_index()

        logger.info("Ingested document '%s': %d chunks", document.title, len(chunks))
        return {"document_id": document.id, "chunks_created": len(chunks)}

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and its chunks, then rebuild the index."""
        if document_id not in self._documents:
            return False

        self._store.delete_where(CHUNKS_TABLE, "document_id", document_id)
        self._store.delete(DOCUMENTS_TABLE, document_id)

        del self._documents[document_id]
        self._chunks = [c for c in self._chunks if c.document_id != document_id]
        self.rebuild_index()

        logger.info("Deleted document %s", document_id)
        return True

    def search_chunks(self, query: str, top_k: int = 5) -> list[dict]:
        """TF-IDF chunk search with the owning document's title attached."""
        index = self._index
        results = []
        for chunk_id, score in index.query(query, limit=top_k):
            chunk = self.get_chunk(chunk_id)
            if chunk is None:
                continue
            document = self._documents.get(chunk.document_id)
            results.append({
                "id": chunk.id,
                "document_id": chunk.document_id,
                "content": chunk.content,
                "index": chunk.index,
                "source": document.title if document else "Unknown",
                "score": score,
            })
        return results

    def list_documents(self) -> list[dict]:
        """Documents with chunk counts, newest first."""
        docs = sorted(self._documents.values(), key=lambda d: d.created_at, reverse=True)
        return [
            {
                "id": d.id,
                "title": d.title,
                "category": d.category,
                "chunk_count": len(self.chunks_for(d.id)),
                "created_at": d.created_at.isoformat(),
            }
            for d in docs
        ]

    def stats(self) -> dict:
        return {
            "intents": len(self._intents),
            "documents": len(self._documents),
            "chunks": len(self._chunks),
            "total_characters": sum(len(c.content) for c in self._chunks),
        }
