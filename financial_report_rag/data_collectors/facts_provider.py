"""
Financial Facts Providers

Structured, provider-sourced numbers used to ground model output. The
Financial Modeling Prep provider talks to the FMP JSON API; the mock
provider serves a small fixed data set for offline use.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests

from ..config import settings as default_settings, Settings
from .financial_calculator import FinancialCalculator
from .financial_models import (BalanceSheet, CashFlowStatement,
                               FinancialFacts, HistoricalDataPoint,
                               IncomeStatement)

logger = logging.getLogger(__name__)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a JSON number to Decimal, None when missing or invalid"""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class FinancialFactsProvider(ABC):
    """Source of FinancialFacts for a ticker"""

    name = "base"

    @abstractmethod
    def get_financial_facts(self, ticker: str) -> Optional[FinancialFacts]:
        """Return the latest facts for a ticker, or None when unavailable"""

    @abstractmethod
    def get_historical_data(self, ticker: str) -> List[HistoricalDataPoint]:
        """Return margin history for a ticker, oldest period first"""

    @abstractmethod
    def is_supported(self, ticker: str) -> bool:
        """Check whether the provider can serve a ticker"""


class FMPFactsProvider(FinancialFactsProvider):
    """
    Financial Modeling Prep provider

    Reads annual income, balance sheet and cash flow statements and runs them
    through the FinancialCalculator.
    """

    name = "fmp"

    def __init__(self,
                 config: Settings = None,
                 session: requests.Session = None,
                 calculator: FinancialCalculator = None):
        self.config = config or default_settings
        if not self.config.fmp_api_key:
            raise ValueError("FMP_API_KEY is required for the FMP provider")
        self.session = session or requests.Session()
        self.calculator = calculator or FinancialCalculator()
        self.base_url = self.config.fmp_base_url.rstrip("/")

    def is_supported(self, ticker: str) -> bool:
        return bool(ticker) and ticker.isalpha() and len(ticker) <= 5

    def get_financial_facts(self, ticker: str) -> Optional[FinancialFacts]:
        """
        Fetch and calculate the latest annual facts for a ticker

        Args:
            ticker: Stock ticker symbol

        Returns:
            FinancialFacts, or None when the provider has no data
        """
        ticker = ticker.upper()
        logger.info(f"Fetching financial statements for {ticker} from FMP")

        try:
            income_rows = self._fetch("income-statement", ticker, limit=5)
            if not income_rows:
                logger.warning(f"No income statements returned for {ticker}")
                return None

            balance_rows = self._fetch("balance-sheet-statement",
                                       ticker,
                                       limit=1)
            cash_flow_rows = self._fetch("cash-flow-statement", ticker, limit=5)
            company_name = self._fetch_company_name(ticker)
        except requests.RequestException as e:
            logger.error(f"Error fetching FMP data for {ticker}: {e}")
            return None

        current_income = self._parse_income(income_rows[0])
        previous_income = (self._parse_income(income_rows[1])
                           if len(income_rows) > 1 else None)
        current_balance = (self._parse_balance(balance_rows[0])
                           if balance_rows else None)
        current_cash_flow = (self._parse_cash_flow(cash_flow_rows[0])
                             if cash_flow_rows else None)
        previous_cash_flow = (self._parse_cash_flow(cash_flow_rows[1])
                              if len(cash_flow_rows) > 1 else None)

        latest = income_rows[0]
        additional = {}
        eps = to_decimal(latest.get("epsdiluted", latest.get("epsDiluted")))
        if eps is not None:
            additional["eps_diluted"] = eps

        facts = self.calculator.build_financial_facts(
            ticker=ticker,
            company_name=company_name or ticker,
            period=current_income.period,
            current_income=current_income,
            current_balance=current_balance,
            current_cash_flow=current_cash_flow,
            previous_income=previous_income,
            previous_cash_flow=previous_cash_flow,
            filing_date=latest.get("filingDate") or latest.get("fillingDate"),
            additional_metrics=additional)

        logger.info(f"Built financial facts for {ticker} ({facts.period})")
        return facts

    def get_historical_data(self, ticker: str) -> List[HistoricalDataPoint]:
        """Margin history from the last five annual income statements"""
        ticker = ticker.upper()
        try:
            income_rows = self._fetch("income-statement", ticker, limit=5)
        except requests.RequestException as e:
            logger.error(f"Error fetching FMP history for {ticker}: {e}")
            return []

        history = []
        for row in reversed(income_rows or []):
            income = self._parse_income(row)
            history.append(
                HistoricalDataPoint(period=income.period,
                                    gross_margin=income.gross_margin,
                                    operating_margin=income.operating_margin,
                                    net_margin=income.net_margin,
                                    revenue=income.revenue,
                                    net_income=income.net_income))
        return history

    def _fetch(self, endpoint: str, ticker: str,
               **params) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/{endpoint}"
        query = {"symbol": ticker, "apikey": self.config.fmp_api_key}
        if endpoint != "profile":
            query["period"] = "annual"
        query.update(params)

        response = self.session.get(url, params=query, timeout=30)
        response.raise_for_status()
        data = response.json()

        if isinstance(data, dict):
            # FMP reports errors as an object instead of a list
            message = data.get("Error Message") or data.get("error") or data
            logger.warning(f"FMP {endpoint} for {ticker} returned: {message}")
            return []
        return data or []

    def _fetch_company_name(self, ticker: str) -> Optional[str]:
        try:
            rows = self._fetch("profile", ticker)
        except requests.RequestException as e:
            logger.warning(f"Could not fetch company profile for {ticker}: {e}")
            return None
        if rows:
            return rows[0].get("companyName")
        return None

    @staticmethod
    def _period_label(row: Dict[str, Any]) -> str:
        year = row.get("calendarYear") or row.get("fiscalYear")
        if year is None and row.get("date"):
            year = str(row["date"])[:4]
        period = row.get("period") or "FY"
        return f"{period} {year}" if year else period

    def _parse_income(self, row: Dict[str, Any]) -> IncomeStatement:
        return IncomeStatement(
            period=self._period_label(row),
            revenue=to_decimal(row.get("revenue")),
            cost_of_revenue=to_decimal(row.get("costOfRevenue")),
            gross_profit=to_decimal(row.get("grossProfit")),
            research_and_development=to_decimal(
                row.get("researchAndDevelopmentExpenses")),
            selling_general_and_administrative=to_decimal(
                row.get("sellingGeneralAndAdministrativeExpenses")),
            operating_income=to_decimal(row.get("operatingIncome")),
            net_income=to_decimal(row.get("netIncome")),
            earnings_per_share_diluted=to_decimal(
                row.get("epsdiluted", row.get("epsDiluted"))),
            currency=row.get("reportedCurrency") or "USD")

    def _parse_balance(self, row: Dict[str, Any]) -> BalanceSheet:
        return BalanceSheet(
            period=self._period_label(row),
            cash_and_cash_equivalents=to_decimal(
                row.get("cashAndCashEquivalents")),
            total_current_assets=to_decimal(row.get("totalCurrentAssets")),
            total_assets=to_decimal(row.get("totalAssets")),
            total_current_liabilities=to_decimal(
                row.get("totalCurrentLiabilities")),
            short_term_debt=to_decimal(row.get("shortTermDebt")),
            long_term_debt=to_decimal(row.get("longTermDebt")),
            total_liabilities=to_decimal(row.get("totalLiabilities")),
            total_equity=to_decimal(row.get("totalStockholdersEquity")))

    def _parse_cash_flow(self, row: Dict[str, Any]) -> CashFlowStatement:
        capex = to_decimal(row.get("capitalExpenditure"))
        if capex is not None and capex > 0:
            capex = -capex
        return CashFlowStatement(
            period=self._period_label(row),
            net_income=to_decimal(row.get("netIncome")),
            depreciation_and_amortization=to_decimal(
                row.get("depreciationAndAmortization")),
            operating_cash_flow=to_decimal(row.get("operatingCashFlow")),
            capital_expenditures=capex)


class MockFactsProvider(FinancialFactsProvider):
    """
    Fixed financial data for AAPL, MSFT and TSLA

    Used when no FMP key is configured, and in tests.
    """

    name = "mock"

    def __init__(self, calculator: FinancialCalculator = None):
        self.calculator = calculator or FinancialCalculator()
        self._facts: Dict[str, FinancialFacts] = {
            "AAPL": self._apple(),
            "MSFT": self._microsoft(),
            "TSLA": self._tesla(),
        }
        logger.info(f"Initialized mock financial data for: "
                    f"{sorted(self._facts)}")

    @property
    def supported_tickers(self) -> List[str]:
        return sorted(self._facts)

    def is_supported(self, ticker: str) -> bool:
        return bool(ticker) and ticker.upper() in self._facts

    def get_financial_facts(self, ticker: str) -> Optional[FinancialFacts]:
        facts = self._facts.get((ticker or "").upper())
        if facts is None:
            logger.warning(f"Ticker {ticker} not found in mock data. "
                           f"Supported: {self.supported_tickers}")
        else:
            logger.info(f"Retrieved mock financial data for {ticker}")
        return facts

    def get_historical_data(self, ticker: str) -> List[HistoricalDataPoint]:
        if (ticker or "").upper() != "AAPL":
            return []

        rows = [
            ("Q4 2023", "0.452", "0.301", "0.253", "119580000000",
             "33920000000"),
            ("Q1 2024", "0.459", "0.307", "0.261", "90750000000",
             "23640000000"),
            ("Q2 2024", "0.466", "0.312", "0.265", "85780000000",
             "21450000000"),
            ("Q3 2024", "0.463", "0.298", "0.248", "89500000000",
             "22960000000"),
            ("Q4 2024", "0.449", "0.295", "0.242", "94930000000",
             "22960000000"),
        ]
        return [
            HistoricalDataPoint(period, Decimal(gross), Decimal(operating),
                                Decimal(net), Decimal(revenue),
                                Decimal(net_income))
            for period, gross, operating, net, revenue, net_income in rows
        ]

    def _apple(self) -> FinancialFacts:
        D = Decimal
        return self.calculator.build_financial_facts(
            ticker="AAPL",
            company_name="Apple Inc.",
            period="Q4 2024",
            current_income=IncomeStatement(
                period="Q4 2024",
                revenue=D("94930000000"),
                cost_of_revenue=D("52300000000"),
                gross_profit=D("42630000000"),
                research_and_development=D("8100000000"),
                selling_general_and_administrative=D("6500000000"),
                operating_income=D("28030000000"),
                net_income=D("22956000000"),
                earnings_per_share_diluted=D("1.46")),
            current_balance=BalanceSheet(
                period="Q4 2024",
                cash_and_cash_equivalents=D("30740000000"),
                total_current_assets=D("143566000000"),
                total_assets=D("365730000000"),
                total_current_liabilities=D("176620000000"),
                long_term_debt=D("106630000000"),
                total_liabilities=D("308030000000"),
                total_equity=D("57700000000")),
            current_cash_flow=CashFlowStatement(
                period="Q4 2024",
                net_income=D("22956000000"),
                depreciation_and_amortization=D("3050000000"),
                operating_cash_flow=D("31200000000"),
                capital_expenditures=D("-2910000000")),
            previous_income=IncomeStatement(period="Q4 2023",
                                            revenue=D("89498000000"),
                                            cost_of_revenue=D("49370000000"),
                                            gross_profit=D("40128000000"),
                                            operating_income=D("26350000000"),
                                            net_income=D("22956000000")),
            previous_cash_flow=CashFlowStatement(
                period="Q4 2023",
                operating_cash_flow=D("29540000000"),
                capital_expenditures=D("-2710000000")),
            additional_metrics={"eps_diluted": D("1.46")})

    def _microsoft(self) -> FinancialFacts:
        D = Decimal
        return self.calculator.build_financial_facts(
            ticker="MSFT",
            company_name="Microsoft Corporation",
            period="Q2 FY2024",
            current_income=IncomeStatement(period="Q2 FY2024",
                                           revenue=D("62020000000"),
                                           cost_of_revenue=D("19310000000"),
                                           gross_profit=D("42710000000"),
                                           operating_income=D("27030000000"),
                                           net_income=D("21870000000"),
                                           earnings_per_share_diluted=D("2.93")),
            current_balance=BalanceSheet(period="Q2 FY2024",
                                         total_assets=D("411976000000"),
                                         total_liabilities=D("198298000000"),
                                         total_equity=D("213678000000")),
            current_cash_flow=CashFlowStatement(
                period="Q2 FY2024",
                operating_cash_flow=D("33740000000"),
                capital_expenditures=D("-8950000000")),
            previous_income=IncomeStatement(period="Q2 FY2023",
                                            revenue=D("52747000000"),
                                            gross_profit=D("36266000000"),
                                            operating_income=D("20399000000"),
                                            net_income=D("16425000000")),
            previous_cash_flow=CashFlowStatement(
                period="Q2 FY2023", operating_cash_flow=D("28523000000")),
            additional_metrics={"eps_diluted": D("2.93")})

    def _tesla(self) -> FinancialFacts:
        D = Decimal
        return self.calculator.build_financial_facts(
            ticker="TSLA",
            company_name="Tesla, Inc.",
            period="Q3 2024",
            current_income=IncomeStatement(period="Q3 2024",
                                           revenue=D("25182000000"),
                                           cost_of_revenue=D("20340000000"),
                                           gross_profit=D("4842000000"),
                                           operating_income=D("1762000000"),
                                           net_income=D("2167000000"),
                                           earnings_per_share_diluted=D("0.72")),
            current_balance=BalanceSheet(period="Q3 2024",
                                         total_assets=D("123000000000"),
                                         total_liabilities=D("54100000000"),
                                         total_equity=D("68900000000")),
            current_cash_flow=CashFlowStatement(
                period="Q3 2024",
                operating_cash_flow=D("6250000000"),
                capital_expenditures=D("-3510000000")),
            previous_income=IncomeStatement(period="Q3 2023",
                                            revenue=D("23350000000"),
                                            gross_profit=D("4178000000"),
                                            operating_income=D("1757000000"),
                                            net_income=D("1853000000")),
            previous_cash_flow=CashFlowStatement(
                period="Q3 2023", operating_cash_flow=D("3305000000")),
            additional_metrics={"eps_diluted": D("0.72")})


def build_facts_provider(config: Settings = None) -> FinancialFactsProvider:
    """FMP when an API key is configured, otherwise the mock data set"""
    config = config or default_settings
    if config.fmp_api_key:
        return FMPFactsProvider(config)
    logger.info("FMP_API_KEY not set, using mock financial data")
    return MockFactsProvider()
