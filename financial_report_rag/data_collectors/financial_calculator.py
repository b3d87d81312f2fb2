"""
Financial Calculator

Turns raw financial statements into a FinancialFacts snapshot.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from .financial_models import (BalanceSheet, CashFlowStatement,
                               FinancialFacts, IncomeStatement, PRECISION,
                               safe_divide)

logger = logging.getLogger(__name__)


class FinancialCalculator:
    """Computes growth rates, margin deltas and return ratios"""

    @staticmethod
    def growth_rate(previous: Optional[Decimal],
                    current: Optional[Decimal]) -> Decimal:
        """
        Growth between two periods: (current - previous) / |previous|

        Returns zero when either value is missing or previous is zero.
        """
        if previous is None or current is None or previous == 0:
            return Decimal(0)
        return ((current - previous) / abs(previous)).quantize(
            PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def _change(current: Optional[Decimal],
                previous: Optional[Decimal]) -> Optional[Decimal]:
        if current is None or previous is None:
            return None
        return current - previous

    def build_financial_facts(
            self,
            ticker: str,
            company_name: str,
            period: str,
            current_income: Optional[IncomeStatement],
            current_balance: Optional[BalanceSheet],
            current_cash_flow: Optional[CashFlowStatement],
            previous_income: Optional[IncomeStatement] = None,
            previous_cash_flow: Optional[CashFlowStatement] = None,
            filing_date: Optional[str] = None,
            additional_metrics: Optional[Dict[str, Decimal]] = None
    ) -> FinancialFacts:
        """
        Build complete FinancialFacts from financial statements

        Args:
            ticker: Stock ticker symbol
            company_name: Company name
            period: Reporting period label
            current_income: Current period income statement
            current_balance: Current period balance sheet
            current_cash_flow: Current period cash flow statement
            previous_income: Previous period income statement (for YoY)
            previous_cash_flow: Previous period cash flow statement (for YoY)
            filing_date: Optional filing date
            additional_metrics: Optional extra named figures

        Returns:
            FinancialFacts with all computed metrics
        """
        values = {}

        if current_income is not None:
            values.update(
                currency=current_income.currency or "USD",
                revenue=current_income.revenue,
                gross_profit=current_income.gross_profit,
                gross_margin=current_income.gross_margin,
                operating_income=current_income.operating_income,
                operating_margin=current_income.operating_margin,
                net_income=current_income.net_income,
                net_margin=current_income.net_margin,
            )

            if previous_income is not None:
                if previous_income.revenue is not None:
                    values["revenue_yoy"] = self.growth_rate(
                        previous_income.revenue, current_income.revenue)
                values["gross_margin_change"] = self._change(
                    current_income.gross_margin, previous_income.gross_margin)
                values["operating_margin_change"] = self._change(
                    current_income.operating_margin,
                    previous_income.operating_margin)
                values["net_margin_change"] = self._change(
                    current_income.net_margin, previous_income.net_margin)

        if current_balance is not None:
            values.update(
                total_assets=current_balance.total_assets,
                total_liabilities=current_balance.total_liabilities,
                total_equity=current_balance.total_equity,
                debt_to_equity_ratio=current_balance.debt_to_equity_ratio,
            )

            net_income = current_income.net_income if current_income else None
            if net_income is not None:
                equity = current_balance.total_equity
                if equity is not None and equity > 0:
                    values["return_on_equity"] = safe_divide(net_income, equity)
                assets = current_balance.total_assets
                if assets is not None and assets > 0:
                    values["return_on_assets"] = safe_divide(net_income, assets)

        if current_cash_flow is not None:
            values.update(
                operating_cash_flow=current_cash_flow.operating_cash_flow,
                free_cash_flow=current_cash_flow.free_cash_flow,
            )

            if (previous_cash_flow is not None
                    and previous_cash_flow.operating_cash_flow is not None):
                values["operating_cash_flow_yoy"] = self.growth_rate(
                    previous_cash_flow.operating_cash_flow,
                    current_cash_flow.operating_cash_flow)
                if previous_cash_flow.free_cash_flow is not None:
                    values["free_cash_flow_yoy"] = self.growth_rate(
                        previous_cash_flow.free_cash_flow,
                        current_cash_flow.free_cash_flow)

        logger.debug(f"Calculated {len(values)} figures for {ticker} {period}")

        return FinancialFacts(ticker=ticker,
                              company_name=company_name,
                              period=period,
                              filing_date=filing_date,
                              additional_metrics=additional_metrics or {},
                              **values)
