"""Voice agent: opening line, per-turn replies and call teardown.

The telephony layer (speech recognition, text-to-speech, keypad capture)
sits above this class and only exchanges text and AgentReply objects.
"""

import logging
from typing import Protocol

from sitekb.agent.actions import AgentAction, AgentReply
from sitekb.agent.graph import build_voice_graph
from sitekb.models.enums import AgentActionType
from sitekb.models.verification import TransitionResult
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.verification.state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)


class SmsSender(Protocol):
    async def send_sms(self, to: str, body: str) -> bool:
        ...


def mask_phone(phone: str | None) -> str:
    if not phone:
        return "<none>"
    return f"***{phone[-4:]}"


class LoggingSmsSender:
    """Default sender for development: records that a message went out."""

    async def send_sms(self, to: str, body: str) -> bool:
        logger.info("SMS to %s (%d chars) not delivered: no SMS provider configured", mask_phone(to), len(body))
        return True


class VoiceAgent:
    """Runs verification-aware conversations, one call_id per call."""

    def __init__(
        self,
        machine: VerificationStateMachine,
        resolver: KnowledgeResolver,
        sms_sender: SmsSender | None = None,
    ):
        self._machine = machine
        self._sms_sender = sms_sender or LoggingSmsSender()
        self._graph = build_voice_graph(machine, resolver, self._sms_sender)

    @property
    def machine(self) -> VerificationStateMachine:
        return self._machine

    def start_call(
        self,
        call_id: str,
        name: str | None = None,
        phone: str | None = None,
        totp_secret: str | None = None,
    ) -> AgentReply:
        """Open a session and return the greeting; the call then awaits consent."""
        self._machine.start(call_id, phone=phone, name=name, totp_secret=totp_secret)
        greeting = (
            f"Hello {name or 'there'}! How are you? We received your inquiry on our website. "
            "Is this a good time to talk?"
        )
        self._machine.record_turn(call_id, "assistant", greeting)
        self._machine.greeted(call_id)
        logger.info("Call %s started for %s", call_id, mask_phone(phone))
        return AgentReply(text=greeting)

    async def handle_turn(self, call_id: str, utterance: str, input_type: str = "speech") -> AgentReply:
        """Process one caller utterance (speech transcript or keypad digits)."""
        utterance = (utterance or "").strip()
        if self._machine.get(call_id) is None:
            logger.warning("Turn for unknown call %s", call_id)
            return AgentReply(
                text="Sorry, I can't find this call. Goodbye.",
                actions=[AgentAction(AgentActionType.HANGUP)],
            )

        self._machine.record_turn(call_id, "user", utterance)
        result = await self._graph.ainvoke({
            "call_id": call_id,
            "utterance": utterance,
            "input_type": input_type,
        })

        reply = AgentReply(
            text=result.get("reply_text", ""),
            actions=result.get("actions") or [AgentAction.listen()],
        )
        self._machine.record_turn(call_id, "assistant", reply.text)

        if reply.has(AgentActionType.HANGUP):
            self.end_call(call_id)
        return reply

    def end_call(self, call_id: str) -> TransitionResult:
        """End the call and drop its session."""
        return self._machine.end(call_id)
