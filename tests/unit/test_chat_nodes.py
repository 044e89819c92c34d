"""Unit tests for the text-chat turn helpers."""

import pytest

from sitekb.agent.chat_nodes import (
    NO_INFO_REPLY,
    build_user_message,
    gather_context,
    looks_ungrounded,
    small_talk_reply,
)
from sitekb.knowledge.base import KnowledgeBase
from sitekb.storage.record_store import RecordStore


class TestSmallTalk:
    @pytest.mark.parametrize("message,expected", [
        ("hello!", "Hi Dana! What can I help you with today?"),
        ("Good morning", "Hi Dana! What can I help you with today?"),
        ("thank you.", "You're welcome, Dana! Anything else you need?"),
        ("bye", "Goodbye Dana! Have a great day!"),
        ("how are you?", "I'm doing well, thanks for asking! How can I help you today, Dana?"),
        ("  ok  ", "Great! Let me know if you have any other questions."),
    ])
    def test_canned_replies(self, message, expected):
        assert small_talk_reply(message, "Dana") == expected

    @pytest.mark.parametrize("message", [
        "what are your hours",
        "hello, do you ship abroad?",
        "thanks but where is my order",
    ])
    def test_questions_are_not_small_talk(self, message):
        assert small_talk_reply(message, "Dana") is None


class TestUngroundedGuard:
    @pytest.mark.parametrize("reply", [
        "I think we open at nine.",
        "Typically orders arrive in a week.",
        "Generally speaking, refunds take 5 days.",
    ])
    def test_hedged_replies_are_flagged(self, reply):
        assert looks_ungrounded(reply)

    def test_plain_answer_passes(self):
        assert not looks_ungrounded("Orders ship within five business days.")


class TestGatherContext:
    @pytest.fixture
    def kb(self):
        kb = KnowledgeBase(RecordStore())
        kb.add_document("Shipping", "We ship worldwide within five business days.")
        kb.add_document("Returns", "Items can be returned within 30 days for a refund.")
        kb.add_document("Store Hours", "The shop opens at nine each weekday morning.")
        return kb

    def test_relevant_chunks(self, kb):
        result = gather_context({"conversation_id": "c1", "message": "ship to canada"}, kb, min_score=0.5)
        assert "handled" not in result
        assert result["context"][0]["source"] == "Shipping"

    def test_nothing_relevant_gives_no_info_reply(self, kb):
        state = {"conversation_id": "c1", "customer_name": "Dana", "message": "do you sell gift cards"}
        result = gather_context(state, kb, min_score=0.5)
        assert result["handled"] is True
        assert result["reply_text"] == NO_INFO_REPLY.format(name="Dana")

    def test_weak_match_below_minimum(self, kb):
        result = gather_context({"conversation_id": "c1", "message": "ship to canada"}, kb, min_score=50.0)
        assert result["handled"] is True
        assert result["context"] == []


def test_user_message_lists_sources():
    text = build_user_message("how fast?", [{"content": "Five days."}, {"content": "Express in two."}])
    assert 'Customer Question: "how fast?"' in text
    assert "Source 1: Five days." in text
    assert "Source 2: Express in two." in text
