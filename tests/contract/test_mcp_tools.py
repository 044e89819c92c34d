"""Contract tests for the MCP tool payloads."""

import asyncio
import json
import re

import pytest

from config.settings import Settings
from sitekb.mcp_server.server import (
    HANDLERS,
    TOOLS,
    create_server,
    handle_search_knowledge_base,
    handle_send_otp,
    handle_verify_otp,
    handle_verify_totp,
)
from sitekb.services import build_services
from sitekb.verification import totp

SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class RecordingSmsSender:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent: list[tuple[str, str]] = []

    async def send_sms(self, to: str, body: str) -> bool:
        self.sent.append((to, body))
        return self.ok


@pytest.fixture
def sender():
    return RecordingSmsSender()


@pytest.fixture
def services(sender):
    services = build_services(Settings(sitekb_persist=False, sitekb_vector_enabled=False), sms_sender=sender)
    services.knowledge.load_intents([
        {"name": "hours", "keywords": ["hours", "open"], "response": "We're open 9 to 6"},
    ])
    yield services
    services.close()


def _call(handler, services, arguments: dict) -> dict:
    contents = asyncio.run(handler(services, arguments))
    assert len(contents) == 1
    assert contents[0].type == "text"
    return json.loads(contents[0].text)


class TestToolRegistry:
    def test_every_tool_has_a_handler(self):
        assert {t.name for t in TOOLS} == set(HANDLERS)

    def test_schemas_declare_required_fields(self):
        for tool in TOOLS:
            assert tool.inputSchema["type"] == "object"
            assert set(tool.inputSchema["required"]) <= set(tool.inputSchema["properties"])

    def test_create_server(self, services):
        assert create_server(services).name == "sitekb"


class TestSearchKnowledgeBase:
    def test_found(self, services):
        result = _call(handle_search_knowledge_base, services, {"query": "what are your hours"})
        assert result["found"] is True
        assert result["answer"] == "We're open 9 to 6"
        assert result["source"] == "intent"
        assert 0.25 <= result["score"] <= 1.0

    def test_not_found(self, services):
        result = _call(handle_search_knowledge_base, services, {"query": "parking downtown"})
        assert result["found"] is False
        assert result["answer"] is None
        assert result["top_matches"] == []

    @pytest.mark.parametrize("arguments", [{}, {"query": ""}, {"query": "x" * 1001}, {"query": 42}])
    def test_invalid_query(self, services, arguments):
        assert _call(handle_search_knowledge_base, services, arguments) == {"error": "invalid_query"}


class TestOtpTools:
    def test_send_then_verify(self, services, sender):
        sent = _call(handle_send_otp, services, {"call_id": "call-1", "phone": "+15550001234"})
        assert sent["sent"] is True
        code = re.search(r"\d{6}", sender.sent[0][1]).group(0)

        result = _call(handle_verify_otp, services, {"call_id": "call-1", "code": code})
        assert result == {"verified": True, "reason": None, "attempts_remaining": None}

        replay = _call(handle_verify_otp, services, {"call_id": "call-1", "code": code})
        assert replay["reason"] == "already used"

    def test_wrong_code_reports_attempts(self, services):
        _call(handle_send_otp, services, {"call_id": "call-1", "phone": "+15550001234"})
        result = _call(handle_verify_otp, services, {"call_id": "call-1", "code": "000000"})
        assert result == {"verified": False, "reason": "invalid code", "attempts_remaining": 2}

    def test_no_active_code(self, services):
        result = _call(handle_verify_otp, services, {"call_id": "unknown", "code": "123456"})
        assert result["reason"] == "no active code"

    def test_missing_arguments(self, services):
        assert _call(handle_send_otp, services, {"call_id": "call-1"}) == {"error": "invalid_arguments"}
        assert _call(handle_verify_otp, services, {"code": "123456"}) == {"error": "invalid_arguments"}

    def test_failed_delivery_discards_code(self, services, sender):
        sender.ok = False
        result = _call(handle_send_otp, services, {"call_id": "call-1", "phone": "+15550001234"})
        assert result == {"error": "sms_failed"}
        assert services.otp.active("call-1") is None


class TestVerifyTotp:
    def test_valid(self, services):
        result = _call(handle_verify_totp, services, {"secret": SECRET, "code": totp.generate_code(SECRET)})
        assert result == {"verified": True}

    @pytest.mark.parametrize("arguments", [{}, {"secret": SECRET}, {"code": "123456"}])
    def test_missing_is_false(self, services, arguments):
        assert _call(handle_verify_totp, services, arguments) == {"verified": False}
