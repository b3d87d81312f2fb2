"""
Ollama strategy

Streams ``/api/chat`` from a local Ollama server. The response is newline
delimited JSON: one object per line with ``message.content``, a final object
with ``done: true``, and errors reported in-band as ``{"error": ...}``.
"""

import json
import logging
from typing import AsyncIterator, Optional

import httpx

from ..config import Settings
from ..exceptions import UpstreamError, UpstreamRateLimited
from .base import AnalysisStrategy, RATE_LIMIT_STATUS

logger = logging.getLogger(__name__)


class OllamaStrategy(AnalysisStrategy):
    """Local Ollama chat backend"""

    name = "ollama"

    def __init__(self,
                 model_name: str,
                 base_url: str = "http://localhost:11434",
                 temperature: float = 0.1,
                 timeout: float = 120.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "OllamaStrategy":
        return cls(model_name=config.ollama_model,
                   base_url=config.ollama_base_url,
                   temperature=config.llm_temperature,
                   timeout=config.generation_timeout)

    async def stream(self, system_prompt: str, user_prompt: str,
                     language: str) -> AsyncIterator[str]:
        url = f"{self.base_url}/api/chat"
        body = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": True,
            "format": "json",
            "options": {"temperature": self.temperature},
        }
        logger.info(f"Making LLM request (ollama, lang={language}) to: {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout,
                                         transport=self._transport) as client:
                async with client.stream("POST", url, json=body) as response:
                    if response.status_code == RATE_LIMIT_STATUS:
                        raise UpstreamRateLimited(self.name)
                    if response.status_code >= 400:
                        text = (await response.aread()).decode(
                            "utf-8", errors="replace")
                        raise UpstreamError(
                            self.name,
                            f"HTTP {response.status_code}: {text[:200]}")

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        chunk = json.loads(line)
                        if chunk.get("error"):
                            raise UpstreamError(self.name, chunk["error"])
                        text = (chunk.get("message") or {}).get("content", "")
                        if text:
                            yield text
                        if chunk.get("done"):
                            break
        except httpx.HTTPError as e:
            raise UpstreamError(self.name, f"transport error: {e}") from e
        except json.JSONDecodeError as e:
            raise UpstreamError(self.name, f"invalid stream line: {e}") from e
