"""
Model strategy interface

A strategy wraps one generation backend. Whatever the backend's wire format,
it exposes the same thing: an async iterator of text fragments, in order,
consumable once.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

RATE_LIMIT_STATUS = 429


class AnalysisStrategy(ABC):
    """A named, interchangeable generation backend"""

    name: str = "base"
    model_name: str = ""

    @abstractmethod
    def stream(self, system_prompt: str, user_prompt: str,
               language: str) -> AsyncIterator[str]:
        """
        Stream the model's answer

        Args:
            system_prompt: Rendered system instructions
            user_prompt: Rendered user prompt
            language: Report language code

        Returns:
            Async iterator of text fragments

        Raises:
            UpstreamRateLimited: The backend rejected the call with a rate limit
            UpstreamError: Any other backend failure
        """

    @property
    def display_name(self) -> str:
        return f"{self.name}:{self.model_name}" if self.model_name else self.name


def status_code_of(error: BaseException) -> Optional[int]:
    """HTTP status carried by a client library exception, if any"""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None
