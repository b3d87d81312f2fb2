"""
Analysis Contract

The request object handed to a model strategy: provider facts, retrieved
filing evidence and the fixed analysis tasks.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

from ..data_collectors.financial_models import FinancialFacts
from ..exceptions import FactsUnavailable


class Language(str, Enum):
    """Report languages"""
    EN = "en"
    ZH = "zh"

    @classmethod
    def parse(cls, value) -> "Language":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "en").strip().lower())
        except ValueError:
            raise ValueError(
                f"Unsupported language '{value}'. Use one of: "
                f"{', '.join(lang.value for lang in cls)}") from None


# Evidence section name -> retrieval query
EVIDENCE_QUERIES = MappingProxyType({
    "MD&A": "Management Discussion and Analysis, Revenue drivers, Business performance",
    "Risk Factors": "Risk Factors, Uncertainties, Challenges",
})

EVIDENCE_SEPARATOR = "\n\n---\n\n"

DEFAULT_TASKS: Tuple[str, ...] = (
    "Explain the primary drivers of revenue growth",
    "Analyze the sustainability of margin changes",
    "Summarize the most material risk factors",
)


@dataclass(frozen=True)
class AnalysisContract:
    """Immutable input of one analysis request"""
    ticker: str
    company_name: str
    period: str
    financial_facts: FinancialFacts
    text_evidence: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}))
    analysis_tasks: Tuple[str, ...] = DEFAULT_TASKS
    language: Language = Language.EN

    @property
    def has_evidence(self) -> bool:
        return any(text.strip() for text in self.text_evidence.values())

    def evidence_text(self) -> str:
        """All evidence sections joined for citation checks"""
        return "\n".join(self.text_evidence.values())


def build_analysis_contract(ticker: str,
                            facts: Optional[FinancialFacts],
                            evidence: Optional[Mapping[str, str]] = None,
                            language="en",
                            tasks: Sequence[str] = DEFAULT_TASKS
                            ) -> AnalysisContract:
    """
    Assemble an AnalysisContract

    Args:
        ticker: Company ticker symbol
        facts: Provider facts for the ticker
        evidence: Evidence section name -> retrieved text
        language: Report language code ("en" or "zh")
        tasks: Analysis tasks for the model

    Returns:
        The immutable contract

    Raises:
        FactsUnavailable: No facts were supplied
    """
    if facts is None:
        raise FactsUnavailable(ticker)

    return AnalysisContract(
        ticker=facts.ticker or ticker.upper(),
        company_name=facts.company_name,
        period=facts.period,
        financial_facts=facts,
        text_evidence=MappingProxyType(dict(evidence or {})),
        analysis_tasks=tuple(tasks) or DEFAULT_TASKS,
        language=Language.parse(language))
