"""Integration tests: text-chat turns through the LangGraph chat workflow."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from sitekb.agent.chat import ChatAgent
from sitekb.agent.chat_nodes import ERROR_REPLY, NO_INFO_REPLY, UNGROUNDED_REPLY
from sitekb.knowledge.base import KnowledgeBase
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.storage.conversation_log import ConversationLog
from sitekb.storage.record_store import RecordStore

DELIVERY_QUESTION = "how long does delivery take to arrive"


def _llm(*replies):
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[AIMessage(content=r) for r in replies])
    return llm


@pytest.fixture
def agent():
    store = RecordStore()
    kb = KnowledgeBase(store)
    kb.add_intent("hours", ["We're open 9 to 6, Monday to Saturday."], keywords=["hours", "open"])
    kb.add_document("Shipping", "We ship worldwide within five business days. Express delivery costs $15.")
    kb.add_document("Returns", "Items can be returned within 30 days for a refund.")
    kb.add_document("About Us", "Our bakery was founded by two sisters in Portland.")
    return ChatAgent(kb, KnowledgeResolver(kb), ConversationLog(store))


def _reply(agent, conversation_id, text):
    return asyncio.run(agent.reply(conversation_id, text))


class TestChatTurns:
    def test_start_greets_by_name(self, agent):
        opening = agent.start("Dana")
        assert opening.text == "Hi Dana! What can I assist you with?"
        assert agent.conversations.get(opening.conversation_id)["status"] == "active"

    def test_intent_answers_without_llm(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = _llm()
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            reply = _reply(agent, cid, "what are your hours")
        assert reply.text == "We're open 9 to 6, Monday to Saturday."
        assert reply.matched_intent == "hours"
        llm.ainvoke.assert_not_awaited()

    def test_small_talk(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = _llm()
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            reply = _reply(agent, cid, "hello")
        assert reply.text.startswith("Hi Dana!")
        llm.ainvoke.assert_not_awaited()

    def test_unknown_topic_gets_no_info_reply(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = _llm()
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            reply = _reply(agent, cid, "do you sell gift cards")
        assert reply.text == NO_INFO_REPLY.format(name="Dana")
        assert reply.sources == []
        llm.ainvoke.assert_not_awaited()

    def test_grounded_llm_reply(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = _llm("Orders arrive within five business days.")
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            reply = _reply(agent, cid, DELIVERY_QUESTION)

        assert reply.text == "Orders arrive within five business days."
        assert reply.sources == ["Shipping"]
        messages = llm.ainvoke.call_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert "CURRENT CUSTOMER: Dana" in messages[0].content
        assert "Source 1: We ship worldwide" in messages[-1].content

    def test_hedged_llm_reply_is_replaced(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = _llm("I think delivery usually takes about a week.")
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            reply = _reply(agent, cid, DELIVERY_QUESTION)
        assert reply.text == UNGROUNDED_REPLY.format(name="Dana")

    def test_llm_failure_gives_error_reply(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            reply = _reply(agent, cid, DELIVERY_QUESTION)
        assert reply.text == ERROR_REPLY

    def test_anonymous_customer(self, agent):
        cid = agent.start().conversation_id
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=_llm()):
            reply = _reply(agent, cid, "do you sell gift cards")
        assert "there" in reply.text


class TestConversationHistory:
    def test_messages_are_recorded(self, agent):
        cid = agent.start("Dana").conversation_id
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=_llm()):
            _reply(agent, cid, "hello")
            _reply(agent, cid, "what are your hours")

        roles = [m["role"] for m in agent.conversations.messages(cid)]
        assert roles == ["assistant", "user", "assistant", "user", "assistant"]

    def test_previous_turn_is_sent_to_llm(self, agent):
        cid = agent.start("Dana").conversation_id
        llm = _llm("Five business days.", "Express delivery costs $15.")
        with patch("sitekb.agent.chat_nodes.get_llm", return_value=llm):
            _reply(agent, cid, DELIVERY_QUESTION)
            _reply(agent, cid, "is express delivery faster")

        messages = llm.ainvoke.call_args.args[0]
        assert isinstance(messages[1], HumanMessage)
        assert messages[1].content == DELIVERY_QUESTION
        assert isinstance(messages[2], AIMessage)
        assert messages[2].content == "Five business days."

    def test_ended_conversation_rejects_messages(self, agent):
        cid = agent.start("Dana").conversation_id
        assert agent.end(cid) is True
        with pytest.raises(ValueError):
            _reply(agent, cid, "hello")

    def test_unknown_conversation(self, agent):
        with pytest.raises(ValueError):
            _reply(agent, "missing", "hello")
        assert agent.end("missing") is False

    def test_empty_message(self, agent):
        cid = agent.start("Dana").conversation_id
        with pytest.raises(ValueError):
            _reply(agent, cid, "   ")
