"""
Financial statement records and the FinancialFacts snapshot

Statements hold raw provider values; FinancialFacts is the immutable,
fully calculated view handed to the analysis pipeline.
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

PRECISION = Decimal("0.0001")


def safe_divide(numerator: Optional[Decimal],
                denominator: Optional[Decimal]) -> Optional[Decimal]:
    """Divide to four decimal places, None when undefined"""
    if numerator is None or denominator is None or denominator == 0:
        return None
    return (numerator / denominator).quantize(PRECISION,
                                              rounding=ROUND_HALF_UP)


@dataclass
class IncomeStatement:
    """Income statement for one period"""
    period: str
    revenue: Optional[Decimal] = None
    cost_of_revenue: Optional[Decimal] = None
    gross_profit: Optional[Decimal] = None
    research_and_development: Optional[Decimal] = None
    selling_general_and_administrative: Optional[Decimal] = None
    operating_income: Optional[Decimal] = None
    net_income: Optional[Decimal] = None
    earnings_per_share_diluted: Optional[Decimal] = None
    currency: str = "USD"

    @property
    def gross_margin(self) -> Optional[Decimal]:
        return safe_divide(self.gross_profit, self.revenue)

    @property
    def operating_margin(self) -> Optional[Decimal]:
        return safe_divide(self.operating_income, self.revenue)

    @property
    def net_margin(self) -> Optional[Decimal]:
        return safe_divide(self.net_income, self.revenue)


@dataclass
class BalanceSheet:
    """Balance sheet at the end of one period"""
    period: str
    cash_and_cash_equivalents: Optional[Decimal] = None
    total_current_assets: Optional[Decimal] = None
    total_assets: Optional[Decimal] = None
    total_current_liabilities: Optional[Decimal] = None
    short_term_debt: Optional[Decimal] = None
    long_term_debt: Optional[Decimal] = None
    total_liabilities: Optional[Decimal] = None
    total_equity: Optional[Decimal] = None

    @property
    def debt_to_equity_ratio(self) -> Optional[Decimal]:
        if self.short_term_debt is None and self.long_term_debt is None:
            return None
        total_debt = (self.short_term_debt or Decimal(0)) + (
            self.long_term_debt or Decimal(0))
        return safe_divide(total_debt, self.total_equity)


@dataclass
class CashFlowStatement:
    """Cash flow statement for one period"""
    period: str
    net_income: Optional[Decimal] = None
    depreciation_and_amortization: Optional[Decimal] = None
    operating_cash_flow: Optional[Decimal] = None
    capital_expenditures: Optional[Decimal] = None

    @property
    def free_cash_flow(self) -> Optional[Decimal]:
        if self.operating_cash_flow is None:
            return None
        if self.capital_expenditures is None:
            return self.operating_cash_flow
        return self.operating_cash_flow - abs(self.capital_expenditures)


@dataclass(frozen=True)
class HistoricalDataPoint:
    """Margin and headline figures for one historical period"""
    period: str
    gross_margin: Optional[Decimal]
    operating_margin: Optional[Decimal]
    net_margin: Optional[Decimal]
    revenue: Optional[Decimal]
    net_income: Optional[Decimal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            f.name: _json_value(getattr(self, f.name))
            for f in fields(self)
        }


@dataclass(frozen=True)
class FinancialFacts:
    """
    Immutable snapshot of provider-sourced figures for one ticker and period

    Ratios and growth rates are decimal fractions (0.0607 means 6.07%).
    """
    ticker: str
    company_name: str
    period: str
    filing_date: Optional[str] = None
    currency: str = "USD"

    revenue: Optional[Decimal] = None
    revenue_yoy: Optional[Decimal] = None
    revenue_qoq: Optional[Decimal] = None

    gross_profit: Optional[Decimal] = None
    gross_margin: Optional[Decimal] = None
    gross_margin_change: Optional[Decimal] = None
    operating_income: Optional[Decimal] = None
    operating_margin: Optional[Decimal] = None
    operating_margin_change: Optional[Decimal] = None
    net_income: Optional[Decimal] = None
    net_margin: Optional[Decimal] = None
    net_margin_change: Optional[Decimal] = None

    operating_cash_flow: Optional[Decimal] = None
    operating_cash_flow_yoy: Optional[Decimal] = None
    free_cash_flow: Optional[Decimal] = None
    free_cash_flow_yoy: Optional[Decimal] = None

    total_assets: Optional[Decimal] = None
    total_liabilities: Optional[Decimal] = None
    total_equity: Optional[Decimal] = None
    debt_to_equity_ratio: Optional[Decimal] = None
    return_on_equity: Optional[Decimal] = None
    return_on_assets: Optional[Decimal] = None

    additional_metrics: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        if not isinstance(self.additional_metrics, MappingProxyType):
            object.__setattr__(self, "additional_metrics",
                               MappingProxyType(dict(self.additional_metrics)))

    def scalar_values(self) -> Iterator[Decimal]:
        """Yield every numeric figure, including additional metrics"""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal):
                yield value
        for value in self.additional_metrics.values():
            if value is not None:
                yield Decimal(str(value))

    def to_prompt_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the facts with None values dropped"""
        data = {}
        for f in fields(self):
            if f.name == "additional_metrics":
                continue
            value = getattr(self, f.name)
            if value is not None:
                data[f.name] = _json_value(value)
        if self.additional_metrics:
            data["additional_metrics"] = {
                name: _json_value(value)
                for name, value in self.additional_metrics.items()
            }
        return data


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Integral amounts stay integers, ratios become floats
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    return value
