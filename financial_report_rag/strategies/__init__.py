"""
Strategies Module

Interchangeable generation backends, the registry that selects between them
and the aggregator that drains their streams
"""

from .aggregator import StreamAggregator
from .base import AnalysisStrategy
from .mock import MockStrategy
from .registry import (StrategyRegistry, build_strategy_registry,
                       FALLBACK_STRATEGY)

__all__ = [
    "StreamAggregator", "AnalysisStrategy", "MockStrategy", "StrategyRegistry",
    "build_strategy_registry", "FALLBACK_STRATEGY"
]
