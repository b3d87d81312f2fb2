"""
Data Collectors Module

Contains the SEC EDGAR filing collector and the financial facts providers
"""

from .edgar_collector import EdgarFilingCollector, EdgarFiling
from .facts_provider import (FinancialFactsProvider, FMPFactsProvider,
                             MockFactsProvider, build_facts_provider)
from .financial_calculator import FinancialCalculator
from .financial_models import (FinancialFacts, HistoricalDataPoint,
                               IncomeStatement, BalanceSheet,
                               CashFlowStatement)

__all__ = [
    "EdgarFilingCollector",
    "EdgarFiling",
    "FinancialFactsProvider",
    "FMPFactsProvider",
    "MockFactsProvider",
    "build_facts_provider",
    "FinancialCalculator",
    "FinancialFacts",
    "HistoricalDataPoint",
    "IncomeStatement",
    "BalanceSheet",
    "CashFlowStatement",
]
