"""Tests for the analysis pipeline orchestration."""

import asyncio
import json
import threading
import time

import pytest

from financial_report_rag import core as core_module
from financial_report_rag import AnalysisEvent, generate_report
from financial_report_rag.analysis import build_analysis_contract
from financial_report_rag.exceptions import (FactsUnavailable, FilingNotFound,
                                             FinancialReportRAGError,
                                             UpstreamError, UpstreamRateLimited)
from financial_report_rag.strategies import AnalysisStrategy, MockStrategy

from conftest import FakeIndex


class ScriptedStrategy(AnalysisStrategy):
    """Strategy that fails, stalls or returns fixed text"""

    def __init__(self, name="flaky", error=None, text=None, delay=0.0):
        self.name = name
        self.model_name = f"{name}-model"
        self.error = error
        self.text = text
        self.delay = delay
        self.calls = 0

    async def stream(self, system_prompt, user_prompt, language):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        yield self.text


class BrokenMock(MockStrategy):

    async def stream(self, system_prompt, user_prompt, language):
        raise UpstreamError(self.name, "mock unavailable")
        yield  # pragma: no cover


class MismatchedIndex(FakeIndex):

    def search(self, company_id, query, top_k=None):
        raise RuntimeError("Embedding dimension 3072 does not match "
                           "collection dimensionality 384")


async def collect_events(system, *args, **kwargs):
    return [event async for event in system.analyze_stream(*args, **kwargs)]


class TestAnalyzeStream:

    @pytest.mark.asyncio
    async def test_event_order(self, make_system):
        events = await collect_events(make_system(), "aapl")

        assert [e.event for e in events] == ["progress"] * 3 + ["report"]
        assert [e.data["step"] for e in events[:3]] == ["facts", "evidence", "generating"]
        assert sum(e.is_terminal for e in events) == 1

    @pytest.mark.asyncio
    async def test_report_uses_evidence_and_provider_values(self, make_system):
        report = await make_system().analyze("AAPL")

        assert report.metadata.evidence_mode == "rag"
        assert report.metadata.model_name == "mock-analyst"
        assert report.metadata.language == "en"
        assert not report.metadata.fallback_used
        values = {m.metric_name: m.value for m in report.key_metrics}
        assert values["Revenue"] == "$94.93B"
        assert values["Revenue YoY Growth"] == "6.07%"
        assert report.citations[0].verification_status == "VERIFIED"

    @pytest.mark.asyncio
    async def test_chinese_report(self, make_system):
        report = await make_system().analyze("AAPL", language="zh")

        assert report.metadata.language == "zh"
        assert report.key_metrics[0].metric_name == "营收"
        assert report.dupont_analysis.interpretation == "离线模式下无法提供净资产收益率分解。"
        assert report.insight_engine.root_cause_analysis[0].metric == "营收"
        assert report.factor_analysis.margin_bridge[0].name == "产品结构"

    @pytest.mark.asyncio
    async def test_missing_facts_is_a_single_error(self, make_system):
        events = await collect_events(make_system(), "ZZZZ")

        assert [e.event for e in events] == ["progress", "error"]
        assert "ZZZZ" in events[-1].data["message"]
        assert isinstance(events[-1].exception, FactsUnavailable)

    @pytest.mark.asyncio
    async def test_analyze_raises_error_event(self, make_system):
        with pytest.raises(FactsUnavailable):
            await make_system().analyze("ZZZZ")

    @pytest.mark.asyncio
    async def test_unsupported_language(self, make_system):
        events = await collect_events(make_system(), "AAPL", language="fr")

        assert [e.event for e in events] == ["error"]
        assert "fr" in events[0].data["message"]

    @pytest.mark.asyncio
    async def test_events_serialize(self, make_system):
        events = await collect_events(make_system(), "AAPL")

        payload = json.loads(json.dumps([e.to_dict() for e in events]))

        assert payload[0] == {"event": "progress",
                              "data": {"step": "facts",
                                       "message": "Fetching financial facts for AAPL"}}
        assert "executiveSummary" in payload[-1]["data"]


class TestEvidence:

    @pytest.mark.asyncio
    async def test_missing_filing_degrades_to_facts_only(self, make_system):
        system = make_system(collector_error=FilingNotFound("AAPL"))

        report = await system.analyze("AAPL")

        assert report.metadata.evidence_mode == "facts-only"
        assert any("analysis uses financial facts only" in w
                   for w in report.metadata.warnings)
        assert report.citations[0].verification_status == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_evidence_timeout(self, make_system, monkeypatch):
        system = make_system(evidence_timeout=0.05)

        async def stalled(ticker):
            await asyncio.sleep(10)

        monkeypatch.setattr(system, "gather_evidence", stalled)

        report = await system.analyze("AAPL")

        assert report.metadata.evidence_mode == "facts-only"
        assert any("timed out" in w for w in report.metadata.warnings)

    @pytest.mark.asyncio
    async def test_ingest_once(self, make_system):
        system = make_system()

        first = await system.ingest_company("aapl")
        second = await system.ingest_company("AAPL")

        assert first > 0
        assert second == 0
        assert system.edgar_collector.fetched == ["AAPL"]
        assert system.get_system_status()["indexed_companies"] == {"AAPL": first}

    @pytest.mark.asyncio
    async def test_gather_evidence_sections(self, make_system):
        evidence = await make_system().gather_evidence("AAPL")

        assert list(evidence) == ["MD&A", "Risk Factors"]
        assert "\n\n---\n\n" in evidence["MD&A"]

    @pytest.mark.asyncio
    async def test_unexpected_collector_error_degrades(self, make_system):
        error = AttributeError("'NoneType' object has no attribute 'find_all'")
        system = make_system(collector_error=error)

        events = await collect_events(system, "AAPL")

        assert events[-1].event == "report"
        metadata = events[-1].data.metadata
        assert metadata.evidence_mode == "facts-only"
        assert any("Evidence retrieval failed" in w for w in metadata.warnings)

    @pytest.mark.asyncio
    async def test_broken_index_degrades(self, make_system):
        system = make_system()
        system._index = MismatchedIndex()

        report = await system.analyze("AAPL")

        assert report.metadata.evidence_mode == "facts-only"
        assert any("does not match collection dimensionality" in w
                   for w in report.metadata.warnings)

    @pytest.mark.asyncio
    async def test_unbuildable_index_degrades(self, make_system, monkeypatch):
        system = make_system()
        system._index = None

        def missing_key(config):
            raise ValueError("GEMINI_API_KEY is required for Gemini embeddings")

        monkeypatch.setattr(core_module, "build_embedding_provider", missing_key)

        report = await system.analyze("AAPL")

        assert report.metadata.evidence_mode == "facts-only"
        assert any("GEMINI_API_KEY" in w for w in report.metadata.warnings)


class TestIndexCreation:

    @pytest.fixture
    def created(self, monkeypatch):
        threads = []

        def build(config):
            threads.append(threading.current_thread())
            time.sleep(0.05)
            return object()

        monkeypatch.setattr(core_module, "build_embedding_provider", build)
        monkeypatch.setattr(core_module, "VectorIndex",
                            lambda provider, config: FakeIndex())
        return threads

    @pytest.mark.asyncio
    async def test_index_is_built_on_worker_pool(self, make_system, created):
        system = make_system()
        system._index = None

        await system.ingest_company("AAPL")

        assert len(created) == 1
        assert created[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_concurrent_requests_build_one_index(self, make_system, created):
        system = make_system()
        system._index = None

        await asyncio.gather(system.search("AAPL", "revenue"),
                             system.search("MSFT", "revenue"),
                             system.search("TSLA", "revenue"))

        assert len(created) == 1


class TestFallback:

    @pytest.mark.asyncio
    async def test_rate_limited_model_falls_back(self, make_system, sleep):
        flaky = ScriptedStrategy(error=UpstreamRateLimited("flaky"))
        system = make_system({"flaky": flaky}, default="flaky")

        report = await system.analyze("AAPL")

        assert flaky.calls == 4
        assert sleep.delays == [2.0, 4.0, 8.0]
        assert report.metadata.fallback_used
        assert report.metadata.model_name == "mock-analyst"
        assert any("Model 'flaky' failed" in w for w in report.metadata.warnings)

    @pytest.mark.asyncio
    async def test_malformed_output_falls_back(self, make_system):
        system = make_system({"chatty": ScriptedStrategy("chatty", text="Sure! Here you go.")},
                             default="chatty")

        report = await system.analyze("AAPL")

        assert report.metadata.fallback_used
        assert report.metadata.requested_model is None

    @pytest.mark.asyncio
    async def test_generation_timeout_falls_back(self, make_system):
        slow = ScriptedStrategy("slow", text="{}", delay=10)
        system = make_system({"slow": slow}, generation_timeout=0.05)

        report = await system.analyze("AAPL", model="slow")

        assert report.metadata.fallback_used
        assert report.metadata.requested_model == "slow"
        assert any("timed out" in w for w in report.metadata.warnings)

    @pytest.mark.asyncio
    async def test_unknown_model_uses_default(self, make_system):
        report = await make_system().analyze("AAPL", model="gpt-9")

        assert not report.metadata.fallback_used
        assert "Model 'gpt-9' is not available; used 'mock'" in report.metadata.warnings

    @pytest.mark.asyncio
    async def test_failing_fallback_is_an_error(self, make_system):
        system = make_system({"mock": BrokenMock()})

        events = await collect_events(system, "AAPL")

        assert events[-1].event == "error"
        assert isinstance(events[-1].exception, FinancialReportRAGError)
        assert "mock unavailable" in events[-1].data["message"]


class TestGenerateReport:

    @pytest.mark.asyncio
    async def test_any_backend_call(self, aapl_facts):
        contract = build_analysis_contract("AAPL", aapl_facts)
        prompts = []

        async def call_backend(system_prompt, user_prompt, language):
            prompts.append((system_prompt, user_prompt, language))
            yield '{"executiveSummary": "Apple grew.", '
            yield '"keyMetrics": [{"name": "Revenue", "value": "$200B", '
            yield '"sentiment": "positive"}]}'

        report = await generate_report(contract, "closure", call_backend,
                                       notes=["carried"])

        assert len(prompts) == 1
        assert prompts[0][2] == "en"
        assert report.metadata.model_name == "closure"
        assert report.metadata.evidence_mode == "facts-only"
        assert report.metadata.warnings[0] == "carried"
        assert any("200" in w for w in report.metadata.warnings)
        assert report.key_metrics[0].value == "$94.93B"

    def test_event_helpers(self):
        event = AnalysisEvent.error("boom", ValueError("boom"))

        assert event.is_terminal
        assert event == AnalysisEvent.error("boom")
        assert not AnalysisEvent.progress("facts", "...").is_terminal
