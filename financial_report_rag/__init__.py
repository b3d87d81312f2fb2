"""
Financial Report RAG - Filing-grounded Financial Analysis

A system for producing verifiable financial analysis reports using:
- SEC EDGAR 10-K / 20-F filing collection and cleaning
- Company-specific vector collections for narrative evidence
- Structured financial facts from Financial Modeling Prep
- Interchangeable streaming LLM backends with a deterministic fallback

Key Features:
- Numeric claims checked against provider facts
- Citations checked against the retrieved filing text
- Headline metrics always taken from ground truth
"""

from .core import FinancialReportRAG, AnalysisEvent, generate_report
from .config import settings

__version__ = "1.0.0"
__author__ = "Emily Chen"

__all__ = ["FinancialReportRAG", "AnalysisEvent", "generate_report", "settings"]
