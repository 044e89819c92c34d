"""Tagged actions parsed out of LLM replies.

The model is told to append bracketed markers such as [HANGUP] to what it
says. parse_agent_reply() turns those markers into AgentAction values once,
so nothing downstream ever looks at marker strings.
"""

import re
from dataclasses import dataclass, field

from sitekb.models.enums import AgentActionType

MARKERS = {
    "[WAIT_FOR_SMS_CODE]": AgentActionType.GATHER_SMS_CODE,
    "[WAIT_FOR_GOOGLE_CODE]": AgentActionType.GATHER_TOTP_CODE,
    "[HANGUP]": AgentActionType.HANGUP,
    "[TRANSFER]": AgentActionType.TRANSFER,
}
CALLBACK_MARKER = re.compile(r"\[SCHEDULE_CALLBACK:([^\]]+)\]")
ANY_MARKER = re.compile(r"\[[^\]]*\]")

CODE_DIGITS = 6


@dataclass(frozen=True)
class AgentAction:
    """One thing the telephony layer should do after speaking."""

    type: AgentActionType
    payload: dict = field(default_factory=dict)

    @classmethod
    def listen(cls) -> "AgentAction":
        return cls(AgentActionType.LISTEN)

    @classmethod
    def gather_code(cls, factor: str) -> "AgentAction":
        kind = AgentActionType.GATHER_SMS_CODE if factor == "sms" else AgentActionType.GATHER_TOTP_CODE
        return cls(kind, {"num_digits": CODE_DIGITS})

    def to_dict(self) -> dict:
        return {"type": self.type.value, "payload": dict(self.payload)}


@dataclass
class AgentReply:
    """What to say and what to do next."""

    text: str
    actions: list[AgentAction] = field(default_factory=lambda: [AgentAction.listen()])

    def has(self, action_type: AgentActionType) -> bool:
        return any(a.type == action_type for a in self.actions)

    def action(self, action_type: AgentActionType) -> AgentAction | None:
        return next((a for a in self.actions if a.type == action_type), None)

    def to_dict(self) -> dict:
        return {"text": self.text, "actions": [a.to_dict() for a in self.actions]}


def _tidy(text: str) -> str:
    return re.sub(r"\s{2,}", " ", text).strip()


def parse_agent_reply(raw: str | None) -> AgentReply:
    """Split an LLM reply into spoken text and actions, in marker order.

    Every bracketed span is removed from the spoken text, known or not.
    With no recognised marker the reply carries a single LISTEN action.
    """
    raw = raw or ""
    found: list[tuple[int, AgentAction]] = []

    for marker, action_type in MARKERS.items():
        position = raw.find(marker)
        if position >= 0:
            payload = {"num_digits": CODE_DIGITS} if action_type in (
                AgentActionType.GATHER_SMS_CODE, AgentActionType.GATHER_TOTP_CODE
            ) else {}
            found.append((position, AgentAction(action_type, payload)))

    callback = CALLBACK_MARKER.search(raw)
    if callback:
        found.append((
            callback.start(),
            AgentAction(AgentActionType.SCHEDULE_CALLBACK, {"when": callback.group(1).strip()}),
        ))

    actions = [action for _, action in sorted(found, key=lambda f: f[0])]
    return AgentReply(
        text=_tidy(ANY_MARKER.sub("", raw)),
        actions=actions or [AgentAction.listen()],
    )
