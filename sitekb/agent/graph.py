"""LangGraph workflows for voice conversation turns and text-chat turns."""

from functools import partial

from langgraph.graph import StateGraph, END

from sitekb.agent.chat_nodes import answer_directly, gather_context, generate_answer
from sitekb.agent.nodes import (
    apply_actions,
    generate_reply,
    interpret_input,
    lookup_knowledge,
)
from sitekb.agent.state import ChatTurnState, VoiceTurnState
from sitekb.knowledge.base import KnowledgeBase
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.storage.conversation_log import ConversationLog
from sitekb.verification.state_machine import VerificationStateMachine


def _route_after_interpret(state: VoiceTurnState) -> str:
    """Skip the LLM when the state machine already answered."""
    if state.get("handled"):
        return "apply_actions"
    return "lookup_knowledge"


def build_voice_graph(
    machine: VerificationStateMachine,
    resolver: KnowledgeResolver,
    sms_sender,
):
    """Build the per-turn voice workflow.

    Args:
        machine: Verification state machine holding the call sessions.
        resolver: Knowledge resolver used once the caller is SMS-verified.
        sms_sender: Object with an async send_sms(to, body) -> bool.

    Returns:
        A compiled LangGraph StateGraph; run it with ainvoke().
    """
    graph = StateGraph(VoiceTurnState)

    graph.add_node("interpret_input", partial(interpret_input, machine=machine))
    graph.add_node("lookup_knowledge", partial(lookup_knowledge, machine=machine, resolver=resolver))
    graph.add_node("generate_reply", partial(generate_reply, machine=machine))
    graph.add_node("apply_actions", partial(apply_actions, machine=machine, sms_sender=sms_sender))

    graph.set_entry_point("interpret_input")

    graph.add_conditional_edges("interpret_input", _route_after_interpret)
    graph.add_edge("lookup_knowledge", "generate_reply")
    graph.add_edge("generate_reply", "apply_actions")
    graph.add_edge("apply_actions", END)

    return graph.compile()


def _route_if_handled(next_node: str):
    def route(state: ChatTurnState) -> str:
        return END if state.get("handled") else next_node
    return route


def build_chat_graph(
    knowledge: KnowledgeBase,
    resolver: KnowledgeResolver,
    conversations: ConversationLog,
    context_min_score: float,
):
    """Build the per-turn text-chat workflow.

    answer_directly (intent or small talk) -> gather_context (TF-IDF chunks,
    or the no-information reply) -> generate_answer (grounded LLM reply).
    Each of the first two steps ends the turn when it has an answer.
    """
    graph = StateGraph(ChatTurnState)

    graph.add_node("answer_directly", partial(answer_directly, resolver=resolver))
    graph.add_node("gather_context", partial(gather_context, knowledge=knowledge, min_score=context_min_score))
    graph.add_node("generate_answer", partial(generate_answer, conversations=conversations))

    graph.set_entry_point("answer_directly")

    graph.add_conditional_edges("answer_directly", _route_if_handled("gather_context"))
    graph.add_conditional_edges("gather_context", _route_if_handled("generate_answer"))
    graph.add_edge("generate_answer", END)

    return graph.compile()
