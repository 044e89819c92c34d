"""Graph nodes for one voice conversation turn."""

import logging

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from sitekb.agent.actions import AgentAction, AgentReply, parse_agent_reply
from sitekb.agent.llm import get_llm
from sitekb.agent.state import VoiceTurnState
from sitekb.models.enums import AgentActionType, FailureReason, VerificationState
from sitekb.models.verification import TransitionResult, VerificationSession
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.verification.speech import extract_callback_time, is_sensitive_request
from sitekb.verification.state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)

S = VerificationState

MIN_LOOKUP_LENGTH = 3
FALLBACK_REPLY = "I'm having trouble understanding. Could you please repeat that?"
HISTORY_TURNS = 20

# Failures that leave the SMS factor without a usable code.
REISSUE_REASONS = (FailureReason.EXPIRED, FailureReason.NO_ACTIVE_CODE, FailureReason.TOO_MANY_ATTEMPTS)

STATE_GUIDANCE = {
    S.GREETING: "This is the start of the call. Greet the caller by name and ask if this is a good time to talk.",
    S.CONSENT_PENDING: "You asked whether this is a good time to talk. Get a clear yes or no.",
    S.DECLINED: (
        "The caller said it is NOT a good time. Ask when would be better and suggest times if they are unsure. "
        "Once they give a time, confirm it, say goodbye and include [SCHEDULE_CALLBACK:TIME]."
    ),
    S.SMS_PENDING: "You are waiting for the 6-digit SMS code. Ask them to enter it and include [WAIT_FOR_SMS_CODE].",
    S.SMS_VERIFIED: (
        "The caller is SMS verified. Answer general questions from the knowledge base below. "
        "For balance, account number or account status, include [WAIT_FOR_GOOGLE_CODE]."
    ),
    S.TOTP_PENDING: "You are waiting for the caller's authenticator code. Include [WAIT_FOR_GOOGLE_CODE].",
    S.TOTP_VERIFIED: "The caller is fully verified. You may discuss their account.",
}

RULES = """RULES:
1. You are on a phone call: be conversational, warm and professional
2. Keep responses SHORT (1-3 sentences)
3. If the caller says goodbye or wants to end the call, say goodbye and include [HANGUP]
4. If the caller is confused or frustrated, offer a human agent and include [TRANSFER]
5. NEVER make up information; only use the knowledge base provided
6. If you don't know something, say so and offer to find out"""


def build_system_prompt(session: VerificationSession, knowledge: list[str]) -> str:
    """System prompt for the current verification state plus any knowledge hits."""
    name = session.name or "there"
    prompt = (
        "You are a friendly phone agent for a small business. Your name is Sarah.\n\n"
        f"CURRENT CALLER: {name}\n\n"
        f"CONVERSATION STATE:\n{STATE_GUIDANCE.get(session.state, '')}\n\n"
        f"{RULES}"
    )
    if knowledge:
        prompt += "\n\nKNOWLEDGE BASE INFO:\n" + "\n".join(knowledge)
    return prompt


def _reply(result: TransitionResult, *actions: AgentAction) -> dict:
    return {
        "handled": True,
        "reply_text": result.message,
        "actions": list(actions) or [AgentAction.listen()],
        "issued_code": result.issued_code,
    }


def _handle_consent(state: VoiceTurnState, machine: VerificationStateMachine) -> dict:
    result = machine.handle_consent(state["call_id"], state["utterance"])
    if not result.accepted:
        return _reply(result)
    if result.state == S.SMS_PENDING:
        return _reply(result, AgentAction.gather_code("sms"))
    if result.state == S.CALLBACK_SCHEDULED:
        return _reply(result, AgentAction(AgentActionType.HANGUP))
    # Declined without a time: let the model ask for one.
    return {"handled": False}


def _handle_code(
    state: VoiceTurnState,
    session: VerificationSession,
    machine: VerificationStateMachine,
) -> dict:
    call_id = state["call_id"]
    factor = "sms" if session.state == S.SMS_PENDING else "totp"
    result = machine.submit_code(call_id, state["utterance"])

    if result.accepted:
        return _reply(result)

    if factor == "sms" and result.reason in REISSUE_REASONS:
        reissued = machine.reissue_code(call_id)
        if not reissued.accepted:
            return _reply(reissued, AgentAction(AgentActionType.HANGUP))
        reply = _reply(reissued, AgentAction.gather_code("sms"))
        reply["reply_text"] = f"{result.message} {reissued.message}".strip()
        return reply

    if factor == "totp" and result.reason == FailureReason.TOO_MANY_ATTEMPTS:
        return _reply(result)

    message = result.message
    if result.attempts_remaining:
        message = f"{message} You have {result.attempts_remaining} attempts left."
    reply = _reply(result, AgentAction.gather_code(factor))
    reply["reply_text"] = message
    return reply


def interpret_input(state: VoiceTurnState, machine: VerificationStateMachine) -> dict:
    """Route the utterance through the state machine where it can answer alone.

    Consent answers, code submissions and sensitive-information requests are
    settled here. Everything else is left for the LLM.
    """
    session = machine.get(state["call_id"])
    if session is None:
        return {
            "handled": True,
            "reply_text": "Sorry, I can't find this call. Goodbye.",
            "actions": [AgentAction(AgentActionType.HANGUP)],
        }

    if session.state == S.GREETING:
        machine.greeted(session.call_id)
        session = machine.get(session.call_id)

    if session.state == S.CONSENT_PENDING:
        return _handle_consent(state, machine)

    if session.state == S.DECLINED:
        when = extract_callback_time(state["utterance"])
        if when is None:
            return {"handled": False}
        return _reply(machine.schedule_callback(session.call_id, when), AgentAction(AgentActionType.HANGUP))

    if session.state in (S.SMS_PENDING, S.TOTP_PENDING):
        return _handle_code(state, session, machine)

    if session.state == S.SMS_VERIFIED and is_sensitive_request(state["utterance"]):
        result = machine.request_sensitive(session.call_id)
        return _reply(result, AgentAction.gather_code("totp"))

    return {"handled": False}


async def lookup_knowledge(state: VoiceTurnState, machine: VerificationStateMachine, resolver: KnowledgeResolver) -> dict:
    """Resolve the utterance against the knowledge base once SMS-verified."""
    session = machine.get(state["call_id"])
    utterance = state.get("utterance", "").strip()
    if session is None or not session.sms_verified or len(utterance) <= MIN_LOOKUP_LENGTH:
        return {"knowledge": []}

    resolution = await resolver.resolve(utterance)
    if resolution.found:
        logger.debug("Knowledge hit for call %s via %s", state["call_id"], resolution.source.value)
        return {"knowledge": [resolution.answer]}
    return {"knowledge": []}


def _history(session: VerificationSession) -> list:
    messages = []
    for turn in session.transcript[-HISTORY_TURNS:]:
        if turn["role"] == "user":
            messages.append(HumanMessage(content=turn["content"]))
        elif messages:
            # Conversation history must open with a caller turn.
            messages.append(AIMessage(content=turn["content"]))
    return messages


async def generate_reply(state: VoiceTurnState, machine: VerificationStateMachine) -> dict:
    """Ask the LLM what to say and parse its markers into actions."""
    session = machine.get(state["call_id"])
    if session is None:
        return {"reply_text": FALLBACK_REPLY, "actions": [AgentAction.listen()]}

    messages = [SystemMessage(content=build_system_prompt(session, state.get("knowledge", [])))]
    messages.extend(_history(session))
    if not messages[-1:] or not isinstance(messages[-1], HumanMessage):
        messages.append(HumanMessage(content=state["utterance"]))

    try:
        llm = get_llm()
        response = await llm.ainvoke(messages)
    except Exception as e:
        logger.error("LLM reply failed for call %s: %s", state["call_id"], e)
        return {"reply_text": FALLBACK_REPLY, "actions": [AgentAction.listen()]}

    reply: AgentReply = parse_agent_reply(response.content)
    return {"reply_text": reply.text, "actions": reply.actions}


async def apply_actions(state: VoiceTurnState, machine: VerificationStateMachine, sms_sender) -> dict:
    """Deliver any issued code and feed parsed actions to the state machine."""
    call_id = state["call_id"]
    session = machine.get(call_id)
    record = state.get("issued_code")
    if record is not None and session is not None and session.phone:
        minutes = max(1, int(round((record.expires_at - record.issued_at) / 60)))
        body = f"Your verification code is {record.code}. It expires in {minutes} minutes."
        if not await sms_sender.send_sms(session.phone, body):
            logger.warning("SMS delivery failed for call %s", call_id)

    actions = state.get("actions") or [AgentAction.listen()]
    for action in actions:
        if session is None:
            break
        if action.type == AgentActionType.SCHEDULE_CALLBACK and session.state == S.DECLINED:
            machine.schedule_callback(call_id, action.payload.get("when"))
        elif action.type == AgentActionType.GATHER_TOTP_CODE and session.state == S.SMS_VERIFIED:
            machine.request_sensitive(call_id)
        elif action.type == AgentActionType.TRANSFER:
            logger.info("Call %s flagged for transfer to a human agent", call_id)
    return {"actions": actions}
