"""Integration tests: knowledge resolution through the composed services."""

import asyncio
import json

import pytest

from config.settings import Settings
from sitekb.ingestion.loader import load_intent_records, load_text_document
from sitekb.services import build_services


@pytest.fixture
def services(tmp_path):
    settings = Settings(sitekb_data_path=str(tmp_path / "data"), sitekb_vector_enabled=False)
    services = build_services(settings)
    yield services
    services.close()


@pytest.fixture
def intents_file(tmp_path):
    path = tmp_path / "intents.json"
    path.write_text(json.dumps({"intents": [
        {"name": "hours", "keywords": ["hours", "open"], "response": "We're open 9 to 6"},
        {"name": "pricing", "keywords": ["price", "cost"], "responses": ["Plans start at $10 a month"]},
        {"name": "no_answer", "keywords": ["orphan"]},
    ]}), encoding="utf-8")
    return path


class TestResolutionScenarios:
    def test_hours_intent(self, services):
        services.knowledge.load_intents([
            {"name": "hours", "keywords": ["hours", "open"], "response": "We're open 9 to 6"},
        ])
        result = asyncio.run(services.resolver.resolve("what are your hours"))
        assert result.found
        assert result.answer == "We're open 9 to 6"
        assert result.source.value == "intent"
        assert result.score >= 0.25

    def test_empty_corpus(self, services):
        for query in ("what are your hours", "refund", "zz"):
            result = asyncio.run(services.resolver.resolve(query))
            assert not result.found
            assert result.score == 0

    def test_loaded_intents_and_documents(self, services, intents_file, tmp_path):
        kept = services.knowledge.load_intents(load_intent_records(intents_file))
        assert kept == 2

        doc_path = tmp_path / "returns_policy.md"
        doc_path.write_text(
            "Items can be returned within 30 days. Refunds go back to the original card.",
            encoding="utf-8",
        )
        services.knowledge.ingest(load_text_document(doc_path, category="policy"))

        pricing = asyncio.run(services.resolver.resolve("how much does it cost"))
        assert pricing.answer == "Plans start at $10 a month"

        returns = asyncio.run(services.resolver.resolve("returns policy"))
        assert returns.found
        assert returns.source.value == "document"
        assert "30 days" in returns.answer

    def test_data_survives_restart(self, services, tmp_path):
        services.knowledge.add_intent("hours", ["We're open 9 to 6"], keywords=["hours"])
        reopened = build_services(services.settings)
        try:
            result = asyncio.run(reopened.resolver.resolve("hours"))
            assert result.answer == "We're open 9 to 6"
        finally:
            reopened.close()

    def test_settings_thresholds_apply(self, tmp_path):
        settings = Settings(
            sitekb_data_path=str(tmp_path / "strict"),
            sitekb_min_confidence=0.95,
        )
        services = build_services(settings)
        try:
            services.knowledge.add_intent("hours", ["We're open 9 to 6"], keywords=["hours"])
            assert not asyncio.run(services.resolver.resolve("are you open on weekends hours")).found
        finally:
            services.close()
