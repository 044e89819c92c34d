"""Text-chat support agent for site visitors."""

import logging
from dataclasses import dataclass, field

from sitekb.agent.chat_nodes import DEFAULT_CONTEXT_MIN_SCORE
from sitekb.agent.graph import build_chat_graph
from sitekb.knowledge.base import KnowledgeBase
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.storage.conversation_log import ConversationLog

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    """One assistant message in a chat conversation."""

    conversation_id: str
    text: str
    matched_intent: str | None = None
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "conversation_id": self.conversation_id,
            "message": self.text,
            "matched_intent": self.matched_intent,
            "sources": list(self.sources),
        }


class ChatAgent:
    """Answers chat messages from intents, small talk and grounded LLM replies."""

    def __init__(
        self,
        knowledge: KnowledgeBase,
        resolver: KnowledgeResolver,
        conversations: ConversationLog,
        context_min_score: float = DEFAULT_CONTEXT_MIN_SCORE,
    ):
        self._conversations = conversations
        self._graph = build_chat_graph(knowledge, resolver, conversations, context_min_score)

    @property
    def conversations(self) -> ConversationLog:
        return self._conversations

    def start(self, customer_name: str | None = None) -> ChatReply:
        """Open a conversation and return the greeting."""
        conversation = self._conversations.create(customer_name)
        greeting = f"Hi {customer_name or 'there'}! What can I assist you with?"
        self._conversations.add_message(conversation["id"], "assistant", greeting)
        return ChatReply(conversation_id=conversation["id"], text=greeting)

    async def reply(self, conversation_id: str, message: str) -> ChatReply:
        """Answer one customer message and record both sides.

        Raises:
            ValueError: If the conversation is unknown or ended, or the
                message is empty.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation["status"] != "active":
            raise ValueError(f"no active conversation '{conversation_id}'")
        message = (message or "").strip()
        if not message:
            raise ValueError("message must not be empty")

        result = await self._graph.ainvoke({
            "conversation_id": conversation_id,
            "customer_name": conversation.get("customer_name"),
            "message": message,
        })

        reply = ChatReply(
            conversation_id=conversation_id,
            text=result.get("reply_text", ""),
            matched_intent=result.get("matched_intent"),
            sources=result.get("sources") or [],
        )
        self._conversations.add_message(conversation_id, "user", message)
        self._conversations.add_message(conversation_id, "assistant", reply.text)
        return reply

    def end(self, conversation_id: str) -> bool:
        ended = self._conversations.end(conversation_id) is not None
        if ended:
            logger.info("Ended conversation %s", conversation_id)
        return ended
