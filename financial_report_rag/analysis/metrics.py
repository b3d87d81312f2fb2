"""
Headline metric formatting and overwrite

The four headline metrics of every report (revenue, gross margin, net
income and revenue growth) are always replaced with values formatted from
the provider facts. Only the model's interpretation text is kept.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple

from ..data_collectors.financial_models import FinancialFacts
from .contract import Language
from .report import AnalysisReport, MetricInsight, Sentiment

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

MAGNITUDES: Tuple[Tuple[Decimal, str], ...] = (
    (Decimal(10)**12, "T"),
    (Decimal(10)**9, "B"),
    (Decimal(10)**6, "M"),
)


def format_currency(value, currency: str = "USD") -> str:
    """
    Format an amount with a T/B/M suffix

    >>> format_currency(Decimal("94930000000"))
    '$94.93B'
    """
    if value is None:
        return "N/A"

    amount = Decimal(str(value))
    currency = (currency or "USD").upper()
    prefix = "$" if currency == "USD" else f"{currency} "
    sign = "-" if amount < 0 else ""
    magnitude = abs(amount)

    for threshold, suffix in MAGNITUDES:
        if magnitude >= threshold:
            scaled = (magnitude / threshold).quantize(TWO_PLACES,
                                                      rounding=ROUND_HALF_UP)
            return f"{sign}{prefix}{scaled}{suffix}"

    rounded = magnitude.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return f"{sign}{prefix}{rounded:,}"


def format_percent(value) -> str:
    """
    Format a decimal fraction as a percentage

    >>> format_percent(Decimal("0.0607"))
    '6.07%'
    """
    if value is None:
        return "N/A"
    percent = (Decimal(str(value)) * 100).quantize(TWO_PLACES,
                                                   rounding=ROUND_HALF_UP)
    return f"{percent}%"


@dataclass(frozen=True)
class HeadlineMetric:
    """One of the metrics always sourced from provider facts"""
    names: Tuple[str, str]  # English, Chinese
    keywords: Tuple[str, ...]
    value_field: str
    delta_field: str
    kind: str  # "currency" or "percent"
    excluded: Tuple[str, ...] = ()

    def name(self, language: Language) -> str:
        return self.names[1] if language == Language.ZH else self.names[0]


# Words marking a derived metric such as "Net Income Growth"
CHANGE_WORDS = ("yoy", "growth", "change", "增长", "同比", "变化")

HEADLINE_METRICS: Tuple[HeadlineMetric, ...] = (
    HeadlineMetric(names=("Revenue", "营收"),
                   keywords=("revenue", "营收"),
                   value_field="revenue",
                   delta_field="revenue_yoy",
                   kind="currency",
                   excluded=CHANGE_WORDS),
    HeadlineMetric(names=("Gross Margin", "毛利率"),
                   keywords=("gross margin", "毛利率"),
                   value_field="gross_margin",
                   delta_field="gross_margin_change",
                   kind="percent",
                   excluded=CHANGE_WORDS),
    HeadlineMetric(names=("Net Income", "净利润"),
                   keywords=("net income", "净利润", "net profit"),
                   value_field="net_income",
                   delta_field="net_margin_change",
                   kind="currency",
                   excluded=CHANGE_WORDS),
    HeadlineMetric(names=("Revenue YoY Growth", "营收同比增长"),
                   keywords=("revenue yoy", "revenue growth", "营收同比",
                             "营收增长"),
                   value_field="revenue_yoy",
                   delta_field="revenue_yoy",
                   kind="percent"),
)

DEFAULT_INTERPRETATION = {
    Language.EN: "Sourced from reported financial data.",
    Language.ZH: "数据来源于已披露的财务报表。",
}


def find_interpretation(metrics: Sequence[MetricInsight],
                        keywords: Sequence[str],
                        excluded: Sequence[str] = ()) -> Optional[str]:
    """Interpretation of the first metric whose name matches a keyword"""
    for metric in metrics:
        name = (metric.metric_name or "").lower()
        if any(word in name for word in excluded):
            continue
        if any(keyword in name for keyword in keywords):
            if metric.interpretation.strip():
                return metric.interpretation
    return None


def _matches_headline(metric: MetricInsight) -> bool:
    name = (metric.metric_name or "").lower()
    for headline in HEADLINE_METRICS:
        if any(word in name for word in headline.excluded):
            continue
        if any(keyword in name for keyword in headline.keywords):
            return True
    return False


def overwrite_key_metrics(report: AnalysisReport, facts: FinancialFacts,
                          language=Language.EN) -> AnalysisReport:
    """
    Replace the headline metrics of a report with provider values

    The headline metrics come first, in fixed order, followed by the model's
    other metrics. The report is modified in place and returned.

    Args:
        report: Parsed model report
        facts: Provider facts
        language: Report language, selects the metric names

    Returns:
        The same report
    """
    language = Language.parse(language)
    original = list(report.key_metrics)
    headline: List[MetricInsight] = []

    for metric in HEADLINE_METRICS:
        value = getattr(facts, metric.value_field)
        if metric.kind == "currency":
            formatted = format_currency(value, facts.currency)
        else:
            formatted = format_percent(value)

        delta = getattr(facts, metric.delta_field)
        if delta is None:
            sentiment = Sentiment.NEUTRAL
        elif delta >= 0:
            sentiment = Sentiment.POSITIVE
        else:
            sentiment = Sentiment.NEGATIVE

        interpretation = find_interpretation(original, metric.keywords,
                                             metric.excluded)
        headline.append(
            MetricInsight(metric_name=metric.name(language),
                          value=formatted,
                          interpretation=interpretation
                          or DEFAULT_INTERPRETATION[language],
                          sentiment=sentiment.value))

    others = [m for m in original if not _matches_headline(m)]
    report.key_metrics = headline + others
    report.currency = facts.currency

    logger.info(f"Overwrote headline metrics for {facts.ticker}: "
                f"{', '.join(m.value for m in headline)}")
    return report
