"""
Model strategy registry

An immutable name -> strategy map, built once at startup from configuration.
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from ..config import Settings, settings
from .base import AnalysisStrategy
from .mock import MockStrategy

logger = logging.getLogger(__name__)

FALLBACK_STRATEGY = "mock"


class StrategyRegistry:
    """Read-only lookup of registered strategies"""

    def __init__(self,
                 strategies: Mapping[str, AnalysisStrategy],
                 default_name: Optional[str] = None,
                 fallback_name: str = FALLBACK_STRATEGY):
        if fallback_name not in strategies:
            raise ValueError(
                f"Fallback strategy '{fallback_name}' is not registered")
        self._strategies = MappingProxyType(dict(strategies))
        self.default_name = default_name
        self.fallback_name = fallback_name

    @property
    def strategies(self) -> Mapping[str, AnalysisStrategy]:
        return self._strategies

    def get(self, name: str) -> Optional[AnalysisStrategy]:
        return self._strategies.get(name)

    def select(self, name: Optional[str] = None) -> AnalysisStrategy:
        """
        Resolve the strategy for a request

        Args:
            name: Requested strategy name, if any

        Returns:
            The requested strategy when registered, else the configured
            default when registered, else the fallback
        """
        if name and name in self._strategies:
            return self._strategies[name]
        if self.default_name and self.default_name in self._strategies:
            return self._strategies[self.default_name]
        return self.fallback

    @property
    def fallback(self) -> AnalysisStrategy:
        return self._strategies[self.fallback_name]

    def available_models(self) -> List[str]:
        return list(self._strategies)

    @property
    def default_model(self) -> str:
        return self.select().name

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)


def build_strategy_registry(config: Settings = None) -> StrategyRegistry:
    """Register every backend whose credentials are configured, plus mock"""
    config = config or settings
    strategies: Dict[str, AnalysisStrategy] = {}

    if config.openai_api_key:
        from .langchain_strategy import create_openai_strategy
        strategies["openai"] = create_openai_strategy(config)
    if config.groq_api_key:
        from .langchain_strategy import create_groq_strategy
        strategies["groq"] = create_groq_strategy(config)
    if config.anthropic_api_key:
        from .langchain_strategy import create_anthropic_strategy
        strategies["anthropic"] = create_anthropic_strategy(config)
    if config.gemini_api_key:
        from .gemini import GeminiStrategy
        strategies["gemini"] = GeminiStrategy.from_settings(config)
    if config.enable_ollama:
        from .ollama import OllamaStrategy
        strategies["ollama"] = OllamaStrategy.from_settings(config)

    strategies[FALLBACK_STRATEGY] = MockStrategy()
    logger.info(f"Registered model strategies: {', '.join(strategies)}")

    return StrategyRegistry(strategies,
                            default_name=config.default_llm_provider,
                            fallback_name=FALLBACK_STRATEGY)
