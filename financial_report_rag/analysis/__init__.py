"""
Analysis Module

Contract assembly, prompt rendering, report parsing, validation and the
headline metric overwrite
"""

from .contract import (AnalysisContract, Language, build_analysis_contract,
                       DEFAULT_TASKS, EVIDENCE_QUERIES)
from .metrics import format_currency, format_percent, overwrite_key_metrics
from .parser import ReportParser
from .prompts import PromptRenderer
from .report import AnalysisReport, MetricInsight, Citation
from .validator import FactValidator, ValidationResult

__all__ = [
    "AnalysisContract", "Language", "build_analysis_contract",
    "DEFAULT_TASKS", "EVIDENCE_QUERIES", "format_currency", "format_percent",
    "overwrite_key_metrics", "ReportParser", "PromptRenderer",
    "AnalysisReport", "MetricInsight", "Citation", "FactValidator",
    "ValidationResult"
]
