"""Tests for the model strategies and the registry."""

import json

import httpx
import openai
import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from financial_report_rag.exceptions import UpstreamError, UpstreamRateLimited
from financial_report_rag.strategies import (FALLBACK_STRATEGY, MockStrategy,
                                             StrategyRegistry,
                                             build_strategy_registry)
from financial_report_rag.strategies.base import status_code_of
from financial_report_rag.strategies.gemini import GeminiStrategy
from financial_report_rag.strategies.langchain_strategy import (
    LangChainStrategy, content_text)
from financial_report_rag.strategies.ollama import OllamaStrategy


async def collect(stream):
    return [fragment async for fragment in stream]


class FailingLLM:
    """Chat model stand-in whose stream fails immediately"""

    def __init__(self, error):
        self.error = error

    async def astream(self, messages):
        raise self.error
        yield  # pragma: no cover


class StatusError(Exception):

    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def openai_rate_limit():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, request=request)
    return openai.RateLimitError("Rate limit reached", response=response, body=None)


class TestLangChainStrategy:

    @pytest.mark.asyncio
    async def test_streams_model_output(self):
        llm = FakeListChatModel(responses=['{"executiveSummary": "ok"}'])
        strategy = LangChainStrategy("openai", llm, "gpt-test")

        fragments = await collect(strategy.stream("system", "user", "en"))

        assert "".join(fragments) == '{"executiveSummary": "ok"}'
        assert strategy.display_name == "openai:gpt-test"

    @pytest.mark.asyncio
    async def test_rate_limit_error_type(self):
        strategy = LangChainStrategy("groq", FailingLLM(openai_rate_limit()),
                                     rate_limit_errors=(openai.RateLimitError, ))

        with pytest.raises(UpstreamRateLimited) as excinfo:
            await collect(strategy.stream("system", "user", "en"))

        assert excinfo.value.provider == "groq"

    @pytest.mark.asyncio
    async def test_status_429_is_a_rate_limit(self):
        strategy = LangChainStrategy("anthropic", FailingLLM(StatusError(429)))

        with pytest.raises(UpstreamRateLimited):
            await collect(strategy.stream("system", "user", "en"))

    @pytest.mark.asyncio
    async def test_other_failures(self):
        strategy = LangChainStrategy("openai", FailingLLM(StatusError(500)))

        with pytest.raises(UpstreamError) as excinfo:
            await collect(strategy.stream("system", "user", "en"))

        assert not isinstance(excinfo.value, UpstreamRateLimited)
        assert str(excinfo.value).startswith("[openai]")

    def test_content_text(self):
        assert content_text("plain") == "plain"
        assert content_text([{"type": "text", "text": "a"},
                             {"type": "tool_use", "id": "x"},
                             "b"]) == "ab"
        assert content_text(None) == ""


def sse(*chunks):
    return "".join(f"data: {json.dumps(chunk)}\r\n\r\n" for chunk in chunks)


def gemini_chunk(*texts, thought=False):
    return {"candidates": [{"content": {"parts": [
        {"text": text, "thought": thought} for text in texts]}}]}


def make_gemini(handler):
    return GeminiStrategy(api_key="g-key", model_name="gemini-test",
                          transport=httpx.MockTransport(handler))


class TestGeminiStrategy:

    @pytest.mark.asyncio
    async def test_streams_sse_text(self):
        requests_seen = []

        def handler(request):
            requests_seen.append(request)
            body = sse(gemini_chunk("plan", thought=True), gemini_chunk('{"a":'),
                       gemini_chunk(" 1}"), {"candidates": []})
            return httpx.Response(200, text=body + "data: [DONE]\n\n")

        fragments = await collect(make_gemini(handler).stream("sys", "usr", "en"))

        assert "".join(fragments) == '{"a": 1}'
        request = requests_seen[0]
        assert request.url.path.endswith("/models/gemini-test:streamGenerateContent")
        assert request.url.params["alt"] == "sse"
        assert request.url.params["key"] == "g-key"
        payload = json.loads(request.content)
        assert payload["systemInstruction"]["parts"][0]["text"] == "sys"
        assert payload["contents"][0]["parts"][0]["text"] == "usr"
        assert payload["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_http_429(self):
        strategy = make_gemini(lambda request: httpx.Response(429, text="quota"))

        with pytest.raises(UpstreamRateLimited):
            await collect(strategy.stream("sys", "usr", "en"))

    @pytest.mark.asyncio
    async def test_http_error(self):
        strategy = make_gemini(lambda request: httpx.Response(500, text="internal"))

        with pytest.raises(UpstreamError) as excinfo:
            await collect(strategy.stream("sys", "usr", "en"))

        assert "internal" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_in_band_rate_limit(self):
        body = sse({"error": {"code": 429, "message": "Resource exhausted"}})
        strategy = make_gemini(lambda request: httpx.Response(200, text=body))

        with pytest.raises(UpstreamRateLimited):
            await collect(strategy.stream("sys", "usr", "en"))

    @pytest.mark.asyncio
    async def test_transport_error(self):

        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(UpstreamError):
            await collect(make_gemini(handler).stream("sys", "usr", "en"))


def ndjson(*objects):
    return "\n".join(json.dumps(o) for o in objects) + "\n"


class TestOllamaStrategy:

    @pytest.mark.asyncio
    async def test_streams_message_content(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, text=ndjson(
                {"message": {"content": '{"x"'}, "done": False},
                {"message": {"content": ": 2}"}, "done": False},
                {"message": {"content": ""}, "done": True},
                {"message": {"content": "ignored"}, "done": False}))

        strategy = OllamaStrategy("gemma-test", transport=httpx.MockTransport(handler))
        fragments = await collect(strategy.stream("sys", "usr", "zh"))

        assert "".join(fragments) == '{"x": 2}'
        assert seen[0]["model"] == "gemma-test"
        assert seen[0]["stream"] is True
        assert seen[0]["format"] == "json"
        assert [m["role"] for m in seen[0]["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_in_band_error(self):
        body = ndjson({"error": "model not found"})
        strategy = OllamaStrategy(
            "missing", transport=httpx.MockTransport(lambda r: httpx.Response(200, text=body)))

        with pytest.raises(UpstreamError) as excinfo:
            await collect(strategy.stream("sys", "usr", "en"))

        assert "model not found" in str(excinfo.value)


class TestMockStrategy:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("language", ["en", "zh"])
    async def test_deterministic_report(self, language):
        strategy = MockStrategy()

        first = await collect(strategy.stream("sys", "usr", language))
        second = await collect(strategy.stream("other", "prompts", language))

        assert first == second
        assert len(first) > 1
        report = json.loads("".join(first))
        assert len(report["keyMetrics"]) == 4
        assert all(m["value"] == "N/A" for m in report["keyMetrics"])

    def test_languages_share_structure(self):
        strategy = MockStrategy()

        en = json.loads(strategy.render("en"))
        zh = json.loads(strategy.render("zh"))

        assert list(zh) == list(en)
        assert zh["dupontAnalysis"].keys() == en["dupontAnalysis"].keys()
        assert zh["insightEngine"]["rootCauseAnalysis"][0]["metric"] == "营收"
        assert zh["factorAnalysis"]["revenueBridge"][0]["name"] == "销量"


def test_status_code_of():
    assert status_code_of(StatusError(503)) == 503
    assert status_code_of(ValueError("x")) is None


class TestRegistry:

    def test_only_mock_without_credentials(self, test_settings):
        registry = build_strategy_registry(test_settings)

        assert registry.available_models() == [FALLBACK_STRATEGY]
        assert registry.select("openai").name == "mock"
        assert registry.default_model == "mock"

    def test_registers_configured_backends(self, test_settings):
        settings = test_settings.model_copy(update={
            "openai_api_key": "sk-test",
            "groq_api_key": "gsk-test",
            "anthropic_api_key": "sk-ant-test",
            "gemini_api_key": "g-test",
            "enable_ollama": True,
            "default_llm_provider": "groq",
        })

        registry = build_strategy_registry(settings)

        assert registry.available_models() == [
            "openai", "groq", "anthropic", "gemini", "ollama", "mock"]
        assert registry.select().name == "groq"
        assert registry.select("gemini").name == "gemini"
        assert registry.select("unknown").name == "groq"
        assert registry.get("groq").model_name == settings.groq_model

    def test_default_not_registered_uses_fallback(self):
        registry = StrategyRegistry({"mock": MockStrategy()}, default_name="openai")

        assert registry.select().name == "mock"

    def test_registry_is_read_only(self):
        registry = StrategyRegistry({"mock": MockStrategy()})

        with pytest.raises(TypeError):
            registry.strategies["other"] = MockStrategy()

    def test_fallback_must_be_registered(self):
        with pytest.raises(ValueError):
            StrategyRegistry({}, fallback_name="mock")
