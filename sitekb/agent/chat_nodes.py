"""Graph nodes for one text-chat support turn.

A turn is answered by the first of: a confident intent match, a small-talk
reply, "no information" when the knowledge base has nothing relevant, or an
LLM reply grounded in the retrieved chunks. LLM replies that read like
guesses are replaced by the no-information reply.
"""

import logging
import re

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from sitekb.agent.llm import get_llm
from sitekb.agent.state import ChatTurnState
from sitekb.knowledge.base import KnowledgeBase
from sitekb.models.enums import Source
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.storage.conversation_log import ConversationLog

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_MIN_SCORE = 0.5
MAX_CONTEXT_CHUNKS = 3
HISTORY_MESSAGES = 4

NO_INFO_REPLY = (
    "I don't have that information with me, {name}. "
    "Would you like me to arrange a call with our team?"
)
UNGROUNDED_REPLY = (
    "I don't have that specific information with me, {name}. "
    "Would you like me to arrange a call with our team to get you accurate details?"
)
ERROR_REPLY = "Sorry, something went wrong on my side. Please try again in a moment."

SMALL_TALK = (
    (re.compile(r"^(hi|hello|hey|good (morning|afternoon|evening)|howdy)[\s!.,]*$", re.I),
     "Hi {name}! What can I help you with today?"),
    (re.compile(r"^(thanks|thank you|thx|ty)[\s!.,]*$", re.I),
     "You're welcome, {name}! Anything else you need?"),
    (re.compile(r"^(bye|goodbye|see you|take care)[\s!.,]*$", re.I),
     "Goodbye {name}! Have a great day!"),
    (re.compile(r"^(how are you|what's up|wassup)[\s?!.,]*$", re.I),
     "I'm doing well, thanks for asking! How can I help you today, {name}?"),
    (re.compile(r"^(ok|okay|sure|got it|understood|alright)[\s!.,]*$", re.I),
     "Great! Let me know if you have any other questions."),
)

# Hedges that suggest the model answered from general knowledge.
SUSPICIOUS_PHRASES = (
    "based on my knowledge",
    "generally speaking",
    "typically",
    "usually",
    "in most cases",
    "i believe",
    "i think",
    "from what i understand",
    "as far as i know",
)

SYSTEM_PROMPT = """You are a helpful and friendly customer support assistant for a small business.

HOW TO RESPOND:
- Keep responses SHORT and scannable (2-4 sentences usually)
- Use simple, everyday language and answer the question first
- Use bullet points ONLY for lists of 3+ items
- Don't start every message with "Great question!" and don't over-apologize

KNOWLEDGE BASE:
You can ONLY answer from the knowledge base context in the customer's message.
If the answer is not there, say you don't have that information and offer to
arrange a call with the team. NEVER make up information or guess.

If someone asks about calling us: our voice assistant Sarah answers the phone.
For account information they will need their Google Authenticator code."""


def small_talk_reply(message: str, name: str) -> str | None:
    """Canned reply for greetings, thanks, goodbyes and acknowledgements."""
    text = message.strip()
    for pattern, reply in SMALL_TALK:
        if pattern.match(text):
            return reply.format(name=name)
    return None


def looks_ungrounded(reply: str) -> bool:
    lowered = reply.lower()
    return any(phrase in lowered for phrase in SUSPICIOUS_PHRASES)


def _name(state: ChatTurnState) -> str:
    return state.get("customer_name") or "there"


async def answer_directly(state: ChatTurnState, resolver: KnowledgeResolver) -> dict:
    """Intent answers first, then small talk. Everything else goes on."""
    message = state["message"]
    resolution = await resolver.resolve(message)
    if resolution.found and resolution.source in (Source.INTENT, Source.VECTOR):
        logger.debug("Chat %s answered by intent %s", state["conversation_id"], resolution.intent_name)
        return {
            "handled": True,
            "reply_text": resolution.answer,
            "matched_intent": resolution.intent_name,
            "sources": [],
        }

    reply = small_talk_reply(message, _name(state))
    if reply is not None:
        return {"handled": True, "reply_text": reply, "sources": []}
    return {"handled": False}


def gather_context(state: ChatTurnState, knowledge: KnowledgeBase, min_score: float) -> dict:
    """Top chunks for the message, or the no-information reply."""
    chunks = knowledge.search_chunks(state["message"], top_k=MAX_CONTEXT_CHUNKS)
    if not chunks or chunks[0]["score"] <= min_score:
        return {
            "handled": True,
            "reply_text": NO_INFO_REPLY.format(name=_name(state)),
            "context": [],
            "sources": [],
        }
    return {"context": chunks}


def build_user_message(message: str, context: list[dict]) -> str:
    sources = "\n".join(f"Source {i}: {chunk['content']}" for i, chunk in enumerate(context, start=1))
    return (
        f'Customer Question: "{message}"\n\n'
        f"[KNOWLEDGE BASE CONTEXT - ONLY use this information to answer]:\n{sources}\n\n"
        "INSTRUCTIONS:\n"
        "- Answer ONLY using the information above\n"
        "- If the answer is not in the context above, say you don't have that information "
        "and offer to arrange a call with our team\n"
        "- Keep the answer to 1-3 sentences"
    )


def _history(conversations: ConversationLog, conversation_id: str) -> list:
    messages = []
    for record in conversations.messages(conversation_id)[-HISTORY_MESSAGES:]:
        if record["role"] == "user":
            messages.append(HumanMessage(content=record["content"]))
        elif messages:
            messages.append(AIMessage(content=record["content"]))
    return messages


async def generate_answer(state: ChatTurnState, conversations: ConversationLog) -> dict:
    """Ask the LLM for a reply grounded in the gathered chunks."""
    context = state.get("context", [])
    messages = [SystemMessage(content=f"{SYSTEM_PROMPT}\n\nCURRENT CUSTOMER: {_name(state)}")]
    messages.extend(_history(conversations, state["conversation_id"]))
    messages.append(HumanMessage(content=build_user_message(state["message"], context)))

    try:
        llm = get_llm()
        response = await llm.ainvoke(messages)
    except Exception as e:
        logger.error("LLM reply failed for chat %s: %s", state["conversation_id"], e)
        return {"reply_text": ERROR_REPLY, "sources": []}

    reply = str(response.content).strip()
    if looks_ungrounded(reply):
        logger.warning("Replaced ungrounded reply in chat %s", state["conversation_id"])
        reply = UNGROUNDED_REPLY.format(name=_name(state))

    return {"reply_text": reply, "sources": [chunk["source"] for chunk in context]}
