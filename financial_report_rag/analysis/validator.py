"""
Fact Validator

Checks a parsed report against the provider facts and the retrieved
evidence:

- structural checks (summary present, at least one metric, valid
  sentiment) produce hard errors;
- numbers in metric values that match no provider figure produce soft
  warnings;
- citation excerpts are looked up in the evidence text and marked
  VERIFIED, UNVERIFIED or NOT_FOUND.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Set, Tuple

from ..data_collectors.financial_models import FinancialFacts
from .report import AnalysisReport, Sentiment, VerificationStatus

logger = logging.getLogger(__name__)

RELATIVE_TOLERANCE = Decimal("0.01")

VALID_SENTIMENTS = {s.value for s in Sentiment}

CURRENCY_SYMBOLS = re.compile(r"[$€£¥₹,，]")

# Fiscal period labels such as FY2024, Q4 or H1
PERIOD_LABELS = re.compile(
    r"(?<![A-Za-z])(?:(?:FY|CY)\s?'?\d{2,4}|[QH][1-4](?!\d))", re.IGNORECASE)

NUMBER_PATTERN = re.compile(
    r"(?<![\d.])(-?\d+(?:\.\d+)?)\s*"
    r"(%|万亿|亿|万|trillion|billion|million|thousand|[TBMK](?![A-Za-z]))?",
    re.IGNORECASE)

SCALES = {
    "%": Decimal("0.01"),
    "k": Decimal(10)**3,
    "thousand": Decimal(10)**3,
    "m": Decimal(10)**6,
    "million": Decimal(10)**6,
    "b": Decimal(10)**9,
    "billion": Decimal(10)**9,
    "t": Decimal(10)**12,
    "trillion": Decimal(10)**12,
    "万": Decimal(10)**4,
    "亿": Decimal(10)**8,
    "万亿": Decimal(10)**12,
}

NGRAM_SIZE = 3


@dataclass
class ValidationResult:
    """Outcome of validating one report"""
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.valid = False
        self.errors.append(message)

    def add_warning(self, message: str):
        self.warnings.append(message)


def approximately_equal(a: Decimal, b: Decimal,
                        tolerance: Decimal = RELATIVE_TOLERANCE) -> bool:
    """Relative difference below tolerance, measured against the mean"""
    diff = abs(a - b)
    average = (abs(a) + abs(b)) / 2
    if average == 0:
        return diff < tolerance
    return diff / average < tolerance


def number_readings(value: str) -> List[Tuple[str, str, List[Decimal]]]:
    """
    Candidate numeric readings of every number in a metric value

    "$94.93B" reads as 94.93 or 94930000000; "6.07%" as 6.07 or 0.0607.
Fiscal period labels such as FY2024 are not read as numbers.

    Returns:
        (number text, unit suffix, candidate values) per number found
    """
    cleaned = PERIOD_LABELS.sub(" ", CURRENCY_SYMBOLS.sub("", value))
    readings = []
    for match in NUMBER_PATTERN.finditer(cleaned):
        try:
            number = Decimal(match.group(1))
        except InvalidOperation:
            continue
        suffix = (match.group(2) or "").lower()
        candidates = [number]
        if suffix in SCALES:
            candidates.append(number * SCALES[suffix])
        readings.append((match.group(1), suffix, candidates))
    return readings


def _period_qualifiers(period: Optional[str]) -> Set[str]:
    return set(re.findall(r"\d+", period or ""))


class FactValidator:
    """Validates reports against facts and evidence"""

    def validate(self, report: AnalysisReport,
                 facts: Optional[FinancialFacts]) -> ValidationResult:
        """
        Check report structure and metric values

        Args:
            report: Parsed report
            facts: Provider facts used as ground truth

        Returns:
            ValidationResult with hard errors and soft warnings
        """
        result = ValidationResult()

        if not report.executive_summary.strip():
            result.add_error("Executive summary is missing")

        if not report.key_metrics:
            result.add_error("Report contains no key metrics")

        ground_truth = list(facts.scalar_values()) if facts else []
        qualifiers = _period_qualifiers(facts.period if facts else None)

        for metric in report.key_metrics:
            name = metric.metric_name or "<unnamed>"

            if metric.sentiment.strip().lower() not in VALID_SENTIMENTS:
                result.add_error(
                    f"Metric '{name}' has invalid sentiment "
                    f"'{metric.sentiment}'")

            if not metric.value.strip():
                result.add_warning(f"Metric '{name}' has no value")
                continue

            for warning in self._check_numbers(name, metric.value,
                                               ground_truth, qualifiers):
                result.add_warning(warning)

        if result.errors:
            logger.warning(f"Report validation failed: {result.errors}")
        if result.warnings:
            logger.info(f"Report validation warnings: {result.warnings}")

        return result

    def _check_numbers(self, name: str, value: str,
                       ground_truth: List[Decimal],
                       qualifiers: Set[str]) -> Iterable[str]:
        for number, suffix, candidates in number_readings(value):
            if not suffix and number in qualifiers:
                continue
            if any(
                    approximately_equal(candidate, truth)
                    for candidate in candidates for truth in ground_truth):
                continue
            yield (f"Metric '{name}' value '{value}' contains "
                   f"{number} which matches no reported figure")

    def validate_citations(self, report: AnalysisReport,
                           evidence_text: str) -> ValidationResult:
        """
        Mark each citation with its verification status

        Args:
            report: Parsed report, updated in place
            evidence_text: All retrieved evidence joined together

        Returns:
            ValidationResult with a warning for every citation not found
        """
        result = ValidationResult()
        evidence_tokens = _tokens(evidence_text)
        evidence_joined = f" {' '.join(evidence_tokens)} "
        evidence_ngrams = _ngrams(evidence_tokens, NGRAM_SIZE)

        for citation in report.citations:
            status = self.verify_excerpt(citation.excerpt, evidence_joined,
                                         evidence_ngrams)
            citation.verification_status = status.value
            if status == VerificationStatus.NOT_FOUND:
                result.add_warning(
                    f"Citation from '{citation.section}' not found in "
                    f"filing evidence")

        return result

    @staticmethod
    def verify_excerpt(excerpt: str, evidence_joined: str,
                       evidence_ngrams: Set[tuple]) -> VerificationStatus:
        tokens = _tokens(excerpt)
        if not tokens or not evidence_joined.strip():
            return VerificationStatus.NOT_FOUND

        if f" {' '.join(tokens)} " in evidence_joined:
            return VerificationStatus.VERIFIED

        if len(tokens) >= NGRAM_SIZE:
            overlap = _ngrams(tokens, NGRAM_SIZE) & evidence_ngrams
        else:
            # Short excerpts fall back to shared words
            overlap = {t for t in tokens if f" {t} " in evidence_joined}

        if overlap:
            return VerificationStatus.UNVERIFIED
        return VerificationStatus.NOT_FOUND


def _tokens(text: str) -> List[str]:
    return re.findall(r"\w+", (text or "").lower())


def _ngrams(tokens: List[str], size: int) -> Set[tuple]:
    if size <= 0 or len(tokens) < size:
        return set()
    return {tuple(tokens[i:i + size]) for i in range(len(tokens) - size + 1)}
