"""
Core Financial Report RAG System

Main orchestrator that coordinates filing ingestion, evidence retrieval,
financial facts and model generation for one analysis request.
"""

import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (Any, AsyncIterator, Callable, Dict, List, Optional,
                    Sequence)

import requests

from .analysis import (AnalysisContract, FactValidator, Language,
                       PromptRenderer, ReportParser, build_analysis_contract,
                       overwrite_key_metrics)
from .analysis.contract import EVIDENCE_QUERIES, EVIDENCE_SEPARATOR
from .analysis.report import AnalysisReport, ReportMetadata
from .config import Settings, settings, setup_directories
from .data_collectors import (EdgarFilingCollector, FinancialFactsProvider,
                              HistoricalDataPoint, FinancialFacts,
                              build_facts_provider)
from .exceptions import (DocumentParseError, FactsUnavailable,
                         FilingNotFound, FinancialReportRAGError,
                         MalformedReport, UpstreamError)
from .rag_engine import (SearchResult, VectorIndex, build_embedding_provider,
                         chunk_text)
from .strategies import (AnalysisStrategy, StrategyRegistry, StreamAggregator,
                         build_strategy_registry)

logger = logging.getLogger(__name__)

# (system prompt, user prompt, language) -> fragment stream
BackendCall = Callable[[str, str, str], AsyncIterator[str]]


@dataclass(frozen=True)
class AnalysisEvent:
    """One event of an analysis stream: progress, report or error"""
    event: str
    data: Any = None
    exception: Optional[BaseException] = field(default=None,
                                               compare=False,
                                               repr=False)

    @classmethod
    def progress(cls, step: str, message: str) -> "AnalysisEvent":
        return cls("progress", {"step": step, "message": message})

    @classmethod
    def report(cls, report: AnalysisReport) -> "AnalysisEvent":
        return cls("report", report)

    @classmethod
    def error(cls, message: str,
              exception: BaseException = None) -> "AnalysisEvent":
        return cls("error", {"message": message}, exception)

    @property
    def is_terminal(self) -> bool:
        return self.event in ("report", "error")

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if isinstance(self.data,
                                                 AnalysisReport) else self.data
        return {"event": self.event, "data": data}


async def generate_report(contract: AnalysisContract,
                          strategy_name: str,
                          call_backend: BackendCall,
                          *,
                          model_name: str = "",
                          requested_model: Optional[str] = None,
                          fallback_used: bool = False,
                          notes: Sequence[str] = (),
                          aggregator: StreamAggregator = None,
                          renderer: PromptRenderer = None,
                          parser: ReportParser = None,
                          validator: FactValidator = None) -> AnalysisReport:
    """
    Run one backend through the shared generation pipeline

    Renders the prompts, drains the backend stream, parses the report,
    fills in metadata, validates metrics and citations and finally overwrites
    the headline metrics with provider values.

    Args:
        contract: Analysis contract
        strategy_name: Name of the backend being called
        call_backend: Opens a fresh fragment stream for the rendered prompts
        model_name: Backend model identifier recorded in metadata
        requested_model: Model the caller asked for
        fallback_used: Whether this run replaces a failed backend
        notes: Pipeline warnings to carry into metadata
        aggregator: Stream aggregator (default settings when omitted)
        renderer: Prompt renderer
        parser: Report parser
        validator: Fact validator

    Returns:
        The validated, overwritten report

    Raises:
        UpstreamError: The backend failed (after rate-limit retries)
        MalformedReport: The backend output could not be parsed
    """
    aggregator = aggregator or StreamAggregator()
    renderer = renderer or PromptRenderer()
    parser = parser or ReportParser()
    validator = validator or FactValidator()
    language = contract.language.value

    system_prompt, user_prompt = renderer.render(contract)
    text = await aggregator.collect(
        lambda: call_backend(system_prompt, user_prompt, language),
        label=strategy_name)
    report = parser.parse(text)

    report.metadata = ReportMetadata(
        model_name=model_name or strategy_name,
        generated_at=datetime.now(timezone.utc).isoformat(),
        language=language,
        requested_model=requested_model,
        fallback_used=fallback_used,
        evidence_mode="rag" if contract.has_evidence else "facts-only",
        warnings=list(notes))

    facts = contract.financial_facts
    result = validator.validate(report, facts)
    citations = validator.validate_citations(report, contract.evidence_text())
    report.metadata.warnings.extend(result.warnings + citations.warnings)
    report.metadata.errors.extend(result.errors)

    overwrite_key_metrics(report, facts, contract.language)
    logger.info(f"Generated report for {contract.ticker} with {strategy_name} "
                f"({len(report.metadata.warnings)} warnings, "
                f"{len(report.metadata.errors)} errors)")
    return report


class FinancialReportRAG:
    """
    Main Financial Report RAG system for filing-grounded financial analysis
    """

    def __init__(self,
                 config: Settings = None,
                 collector: EdgarFilingCollector = None,
                 index: VectorIndex = None,
                 facts_provider: FinancialFactsProvider = None,
                 registry: StrategyRegistry = None,
                 aggregator: StreamAggregator = None,
                 executor: ThreadPoolExecutor = None):
        """Initialize the Financial Report RAG system"""
        logger.info("Initializing Financial Report RAG system")

        self.config = config or settings
        setup_directories(self.config)

        # Initialize components
        self.edgar_collector = collector or EdgarFilingCollector(self.config)
        self._index = index
        self._index_lock = threading.Lock()
        self.facts_provider = facts_provider or build_facts_provider(
            self.config)
        self.registry = registry or build_strategy_registry(self.config)
        self.aggregator = aggregator or StreamAggregator(
            max_retries=self.config.llm_max_retries,
            base_delay=self.config.llm_retry_base_delay)
        self.renderer = PromptRenderer()
        self.parser = ReportParser()
        self.validator = FactValidator()

        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers)

        logger.info("Financial Report RAG system initialized")

    @property
    def index(self) -> VectorIndex:
        """
        Vector index, created on first use

        Creation loads the embedding model, so coroutines reach the index
        through ``_run_index`` to keep that work on the worker pool.
        """
        with self._index_lock:
            if self._index is None:
                self._index = VectorIndex(
                    build_embedding_provider(self.config), self.config)
        return self._index

    async def _run(self, func: Callable, *args, **kwargs):
        """Run a blocking call on the worker pool"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor, functools.partial(func, *args, **kwargs))

    async def _run_index(self, method: str, *args):
        """Call a vector index method on the worker pool"""
        return await self._run(lambda: getattr(self.index, method)(*args))

    # Ingestion and retrieval

    async def ingest_company(self, ticker: str) -> int:
        """
        Fetch, chunk and index the latest annual filing of a company

        Args:
            ticker: Company ticker symbol

        Returns:
            Number of passages stored (0 when the company is already indexed)

        Raises:
            FilingNotFound: No 10-K or 20-F listing matched
            DocumentParseError: The filing index had no primary document
        """
        ticker = ticker.upper()
        if await self._run_index("exists", ticker):
            logger.info(f"{ticker} is already indexed, skipping ingestion")
            return 0

        filing = await self._run(self.edgar_collector.fetch_latest_filing,
                                 ticker)
        passages = await self._run(chunk_text,
                                   ticker,
                                   filing.text_content,
                                   chunk_size=self.config.chunk_size,
                                   overlap=self.config.chunk_overlap,
                                   max_chunks=self.config.max_chunks,
                                   source=filing.document_url)
        stored = await self._run_index("upsert", passages)

        logger.info(f"Ingested {ticker} {filing.form_type}: "
                    f"{len(passages)} passages, {stored} stored")
        return stored

    async def search(self,
                     ticker: str,
                     query: str,
                     top_k: int = None) -> List[SearchResult]:
        """Search the indexed filing of a company"""
        return await self._run_index("search", ticker.upper(), query, top_k)

    async def gather_evidence(self, ticker: str) -> Dict[str, str]:
        """
        Ingest the company if needed and retrieve one evidence section per topic

        Args:
            ticker: Company ticker symbol

        Returns:
            Evidence section name -> joined passage texts
        """
        await self.ingest_company(ticker)

        evidence = {}
        for section, query in EVIDENCE_QUERIES.items():
            results = await self.search(ticker, query)
            evidence[section] = EVIDENCE_SEPARATOR.join(r.text
                                                        for r in results)
            logger.info(f"Evidence '{section}' for {ticker}: "
                        f"{len(results)} passages")
        return evidence

    async def _evidence_or_empty(self, ticker: str,
                                 notes: List[str]) -> Dict[str, str]:
        """Evidence for a ticker, or no evidence when the filing is unusable"""
        try:
            return await asyncio.wait_for(
                self.gather_evidence(ticker),
                timeout=self.config.evidence_timeout)
        except asyncio.TimeoutError:
            message = (f"Evidence retrieval timed out after "
                       f"{self.config.evidence_timeout:g}s")
        except (FilingNotFound, DocumentParseError) as e:
            message = f"Filing unavailable: {e}"
        except requests.RequestException as e:
            message = f"Filing download failed: {e}"
        except Exception as e:
            logger.error(f"Evidence retrieval failed for {ticker}: {e}")
            message = f"Evidence retrieval failed: {e}"

        message += "; analysis uses financial facts only"
        logger.warning(message)
        notes.append(message)
        return {}

    # Generation

    async def _run_strategy(self,
                            contract: AnalysisContract,
                            strategy: AnalysisStrategy,
                            requested_model: Optional[str],
                            notes: Sequence[str],
                            fallback_used: bool = False) -> AnalysisReport:
        return await generate_report(contract,
                                     strategy.name,
                                     strategy.stream,
                                     model_name=strategy.model_name,
                                     requested_model=requested_model,
                                     fallback_used=fallback_used,
                                     notes=notes,
                                     aggregator=self.aggregator,
                                     renderer=self.renderer,
                                     parser=self.parser,
                                     validator=self.validator)

    async def generate(self,
                       contract: AnalysisContract,
                       model: Optional[str] = None,
                       notes: Sequence[str] = ()) -> AnalysisReport:
        """
        Generate a report with the selected model, falling back on failure

        Args:
            contract: Analysis contract
            model: Requested model name
            notes: Pipeline warnings to record in the report

        Returns:
            Report from the selected model, or from the fallback model when
            the selected one fails, times out or returns an unusable report
        """
        notes = list(notes)
        strategy = self.registry.select(model)
        if model and strategy.name != model:
            notes.append(f"Model '{model}' is not available; "
                         f"used '{strategy.name}'")

        try:
            return await asyncio.wait_for(
                self._run_strategy(contract, strategy, model, notes),
                timeout=self.config.generation_timeout)
        except asyncio.TimeoutError:
            reason = (f"generation timed out after "
                      f"{self.config.generation_timeout:g}s")
        except (UpstreamError, MalformedReport) as e:
            reason = str(e)
        except Exception as e:
            logger.error(f"Unexpected error from {strategy.name}: {e}")
            reason = f"unexpected error: {e}"

        fallback = self.registry.fallback
        if strategy.name == fallback.name:
            raise FinancialReportRAGError(
                f"Fallback model '{fallback.name}' failed: {reason}")

        logger.warning(f"Model '{strategy.name}' failed ({reason}); "
                       f"falling back to '{fallback.name}'")
        notes.append(f"Model '{strategy.name}' failed: {reason}; "
                     f"used fallback '{fallback.name}'")
        return await self._run_strategy(contract,
                                        fallback,
                                        model,
                                        notes,
                                        fallback_used=True)

    # Analysis

    async def analyze_stream(self,
                             ticker: str,
                             language: str = "en",
                             model: Optional[str] = None
                             ) -> AsyncIterator[AnalysisEvent]:
        """
        Run the full analysis pipeline for a ticker

        Args:
            ticker: Company ticker symbol
            language: Report language ("en" or "zh")
            model: Requested model name, the default model when omitted

        Yields:
            Progress events followed by exactly one report or error event
        """
        ticker = ticker.strip().upper()
        try:
            language = Language.parse(language)

            yield AnalysisEvent.progress(
                "facts", f"Fetching financial facts for {ticker}")
            facts = await self._run(self.facts_provider.get_financial_facts,
                                    ticker)
            if facts is None:
                raise FactsUnavailable(ticker)

            yield AnalysisEvent.progress(
                "evidence", f"Retrieving filing evidence for {ticker}")
            notes: List[str] = []
            evidence = await self._evidence_or_empty(ticker, notes)
            contract = build_analysis_contract(ticker, facts, evidence,
                                               language)
            mode = "filing evidence" if contract.has_evidence else "facts only"

            yield AnalysisEvent.progress(
                "generating",
                f"Generating {language.value} report with "
                f"{self.registry.select(model).name} ({mode})")
            report = await self.generate(contract, model, notes)

        except (FinancialReportRAGError, ValueError) as e:
            logger.error(f"Analysis of {ticker} failed: {e}")
            yield AnalysisEvent.error(str(e), e)
            return
        except Exception as e:
            logger.error(f"Unexpected error analyzing {ticker}: {e}")
            yield AnalysisEvent.error(f"Analysis of {ticker} failed: {e}", e)
            return

        yield AnalysisEvent.report(report)

    async def analyze(self,
                      ticker: str,
                      language: str = "en",
                      model: Optional[str] = None) -> AnalysisReport:
        """
        Analyze a ticker and return the final report

        Raises:
            FinancialReportRAGError: The analysis ended with an error event
        """
        async for event in self.analyze_stream(ticker, language, model):
            if event.event == "report":
                return event.data
            if event.event == "error":
                if event.exception is not None:
                    raise event.exception
                raise FinancialReportRAGError(event.data["message"])
        raise FinancialReportRAGError(f"Analysis of {ticker} produced no result")

    # Lookups

    def get_financial_facts(self, ticker: str) -> Optional[FinancialFacts]:
        """Latest provider facts for a ticker"""
        return self.facts_provider.get_financial_facts(ticker.upper())

    def get_historical_data(self, ticker: str) -> List[HistoricalDataPoint]:
        """Historical margin series for a ticker, oldest first"""
        return self.facts_provider.get_historical_data(ticker.upper())

    def get_filing_preview(self, ticker: str) -> str:
        """First part of the cleaned latest filing of a ticker"""
        return self.edgar_collector.get_filing_preview(ticker.upper())

    def available_models(self) -> List[str]:
        return self.registry.available_models()

    @property
    def default_model(self) -> str:
        return self.registry.default_model

    def get_system_status(self) -> Dict[str, Any]:
        """Overview of configured models, providers and indexed companies"""
        status = {
            'models': self.available_models(),
            'default_model': self.default_model,
            'facts_provider': type(self.facts_provider).__name__,
            'embedding_provider': self.config.embedding_provider,
            'chroma_persist_directory': self.config.chroma_persist_directory,
        }

        try:
            status['indexed_companies'] = self.index.get_status()
        except Exception as e:
            logger.error(f"Error reading vector index status: {e}")
            status['indexed_companies'] = {}
            status['error'] = str(e)

        return status

    def close(self):
        """Release the worker pool"""
        if self._owns_executor:
            self.executor.shutdown(wait=False)
        logger.info("Financial Report RAG system closed")
