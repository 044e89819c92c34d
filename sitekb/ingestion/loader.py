"""Load intent collections and text documents from disk."""

import json
import logging
from pathlib import Path

from sitekb.models.document import KnowledgeDocument

logger = logging.getLogger(__name__)


def load_intent_records(path: Path) -> list[dict]:
    """Read raw intent records from a JSON file.

    Accepts a top-level list or an object with an ``intents`` list.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("intents", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain an intent list")
    records = [r for r in data if isinstance(r, dict)]
    logger.info("Read %d intent records from %s", len(records), path)
    return records


def load_text_document(
    path: Path,
    title: str | None = None,
    category: str | None = None,
) -> KnowledgeDocument:
    """Read a UTF-8 text or markdown file as a KnowledgeDocument.

    The title defaults to the file stem with separators replaced by spaces.
    """
    content = path.read_text(encoding="utf-8")
    doc_title = title or path.stem.replace("_", " ").replace("-", " ").strip() or path.name
    return KnowledgeDocument(title=doc_title, content=content, category=category)
