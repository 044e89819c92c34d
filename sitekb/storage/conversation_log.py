"""Chat conversation and message history over the record store."""

import logging
import uuid
from datetime import datetime

from sitekb.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "messages"


class ConversationLog:
    """Conversations with their messages, oldest message first."""

    def __init__(self, store: RecordStore):
        self._store = store

    def create(self, customer_name: str | None = None) -> dict:
        conversation = self._store.insert(CONVERSATIONS_TABLE, {
            "id": str(uuid.uuid4()),
            "customer_name": customer_name,
            "status": "active",
            "started_at": datetime.now().isoformat(),
            "ended_at": None,
        })
        logger.info("Started conversation %s", conversation["id"])
        return conversation

    def get(self, conversation_id: str) -> dict | None:
        return self._store.get(CONVERSATIONS_TABLE, conversation_id)

    def messages(self, conversation_id: str) -> list[dict]:
        # Insertion order is chronological.
        return self._store.filter_by(MESSAGES_TABLE, "conversation_id", conversation_id)

    def add_message(self, conversation_id: str, role: str, content: str) -> dict:
        if role not in ("user", "assistant"):
            raise ValueError(f"unknown role '{role}'")
        return self._store.insert(MESSAGES_TABLE, {
            "id": str(uuid.uuid4()),
            "conversation_id": conversation_id,
            "role": role,
            "content": content,
            "created_at": datetime.now().isoformat(),
        })

    def end(self, conversation_id: str) -> dict | None:
        return self._store.update(CONVERSATIONS_TABLE, conversation_id, {
            "status": "ended",
            "ended_at": datetime.now().isoformat(),
        })

    def recent(self, limit: int = 50) -> list[dict]:
        """Conversations newest first, with message count and last message."""
        summaries = []
        for conversation in self._store.all(CONVERSATIONS_TABLE):
            messages = self.messages(conversation["id"])
            summaries.append({
                **conversation,
                "message_count": len(messages),
                "last_message": messages[-1]["content"] if messages else None,
            })
        summaries.sort(key=lambda c: c["started_at"], reverse=True)
        return summaries[:limit]
