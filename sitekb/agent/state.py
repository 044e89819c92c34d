"""Turn state for the voice and chat LangGraph workflows."""

from typing import TypedDict

from sitekb.agent.actions import AgentAction
from sitekb.models.verification import OtpRecord


class VoiceTurnState(TypedDict, total=False):
    """State passed through one caller turn."""
    call_id: str
    utterance: str
    input_type: str  # "speech" | "dtmf"
    handled: bool  # answered by the state machine, skip the LLM
    knowledge: list[str]
    reply_text: str
    actions: list[AgentAction]
    issued_code: OtpRecord | None


class ChatTurnState(TypedDict, total=False):
    """State passed through one text-chat turn."""
    conversation_id: str
    customer_name: str | None
    message: str
    handled: bool
    reply_text: str
    matched_intent: str | None
    context: list[dict]  # chunks from KnowledgeBase.search_chunks
    sources: list[str]
