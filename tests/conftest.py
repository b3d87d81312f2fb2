"""Shared fixtures and fakes for the test suite."""

import hashlib
import math
import re
from typing import Dict, List

import pytest
import requests

from financial_report_rag import FinancialReportRAG
from financial_report_rag.config import Settings
from financial_report_rag.data_collectors import MockFactsProvider
from financial_report_rag.data_collectors.edgar_collector import EdgarFiling
from financial_report_rag.rag_engine import EmbeddingProvider, SearchResult
from financial_report_rag.strategies import (MockStrategy, StrategyRegistry,
                                             StreamAggregator)


class FakeResponse:
    """Minimal stand-in for requests.Response"""

    def __init__(self, text: str = "", status_code: int = 200, json_data=None):
        self.text = text
        self.status_code = status_code
        self._json = json_data

    def json(self):
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """
    Routes requests by URL to queued responses

    Each route holds a list of responses or exceptions. They are consumed in
    order and the last one repeats.
    """

    def __init__(self, routes: Dict[str, list] = None):
        self.routes = {url: list(items) for url, items in (routes or {}).items()}
        self.headers: Dict[str, str] = {}
        self.calls: List[dict] = []

    def _next(self, url):
        items = self.routes.get(url)
        if not items:
            raise requests.ConnectionError(f"no route for {url}")
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, BaseException):
            raise item
        return item

    def get(self, url, params=None, timeout=None, **kwargs):
        self.calls.append({"method": "GET", "url": url, "params": params,
                           "timeout": timeout})
        return self._next(url)

    def post(self, url, params=None, json=None, timeout=None, **kwargs):
        self.calls.append({"method": "POST", "url": url, "params": params,
                           "json": json, "timeout": timeout})
        return self._next(url)


class HashingEmbeddingProvider(EmbeddingProvider):
    """Deterministic bag-of-words embeddings for tests"""

    def __init__(self, dimensions: int = 64):
        self.dimensions = dimensions
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        vector = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16)
            vector[bucket % self.dimensions] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector] if norm else vector


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the environment and the working directory"""
    return Settings(_env_file=None,
                    default_llm_provider="mock",
                    openai_api_key=None,
                    groq_api_key=None,
                    anthropic_api_key=None,
                    gemini_api_key=None,
                    fmp_api_key=None,
                    enable_ollama=False,
                    chroma_persist_directory=str(tmp_path / "chroma"),
                    data_directory=str(tmp_path / "data"),
                    edgar_retry_delay=2.0,
                    max_workers=2,
                    llm_max_retries=3,
                    llm_retry_base_delay=0.0)


@pytest.fixture
def facts_provider():
    return MockFactsProvider()


@pytest.fixture
def aapl_facts(facts_provider):
    return facts_provider.get_financial_facts("AAPL")


@pytest.fixture
def embedding_provider():
    return HashingEmbeddingProvider()


@pytest.fixture
def fake_session():
    return FakeSession()


FILING_TEXT = (
    "Management's Discussion and Analysis. Total net sales increased 6% "
    "driven by Services and iPhone. Revenue growth primarily driven by strong "
    "performance in core product lines. Risk Factors. The Company depends on "
    "outsourcing partners located in Asia. ") * 20


class FakeCollector:
    """Filing collector returning a fixed filing, or raising ``error``"""

    def __init__(self, error: Exception = None):
        self.error = error
        self.fetched: List[str] = []

    def fetch_latest_filing(self, ticker):
        self.fetched.append(ticker)
        if self.error:
            raise self.error
        return EdgarFiling(ticker=ticker,
                           form_type="10-K",
                           index_url="https://www.sec.gov/index.htm",
                           document_url="https://www.sec.gov/aapl-10k.htm",
                           text_content=FILING_TEXT)

    def get_filing_preview(self, ticker):
        if self.error:
            raise self.error
        return FILING_TEXT[:100]


class FakeIndex:
    """In-memory stand-in for the vector index"""

    def __init__(self):
        self.passages: Dict[str, list] = {}

    def exists(self, company_id):
        return company_id in self.passages

    def upsert(self, passages):
        for passage in passages:
            self.passages.setdefault(passage.company_id, []).append(passage)
        return len(passages)

    def search(self, company_id, query, top_k=None):
        return [SearchResult(id=p.content_hash, text=p.text, score=0.9)
                for p in self.passages.get(company_id, [])[:top_k or 2]]

    def get_status(self):
        return {company: len(items) for company, items in self.passages.items()}


class RecordingSleep:
    """Async sleep replacement that only records delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_system(test_settings, facts_provider, sleep):
    """Factory for a fully faked FinancialReportRAG"""
    systems = []

    def factory(strategies=None, default="mock", collector_error=None,
                **overrides):
        strategies = dict(strategies or {})
        strategies.setdefault("mock", MockStrategy())
        system = FinancialReportRAG(
            config=test_settings.model_copy(update=overrides),
            collector=FakeCollector(collector_error),
            index=FakeIndex(),
            facts_provider=facts_provider,
            registry=StrategyRegistry(strategies, default_name=default),
            aggregator=StreamAggregator(max_retries=3, base_delay=2.0,
                                        sleep=sleep))
        systems.append(system)
        return system

    yield factory
    for system in systems:
        system.close()
