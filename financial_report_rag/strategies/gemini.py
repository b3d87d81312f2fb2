"""
Gemini strategy

Streams ``models/{model}:streamGenerateContent?alt=sse`` over httpx. Every
server-sent event is a ``data:`` line holding a JSON chunk whose text sits in
``candidates[0].content.parts``.
"""

import json
import logging
from typing import AsyncIterator, Optional

import httpx

from ..config import Settings
from ..exceptions import UpstreamError, UpstreamRateLimited
from .base import AnalysisStrategy, RATE_LIMIT_STATUS

logger = logging.getLogger(__name__)


class GeminiStrategy(AnalysisStrategy):
    """Google Gemini REST streaming backend"""

    name = "gemini"

    def __init__(self,
                 api_key: str,
                 model_name: str,
                 base_url: str = "https://generativelanguage.googleapis.com/v1beta",
                 temperature: float = 0.1,
                 max_tokens: int = 4000,
                 timeout: float = 120.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "GeminiStrategy":
        return cls(api_key=config.gemini_api_key,
                   model_name=config.gemini_model,
                   base_url=config.gemini_base_url,
                   temperature=config.llm_temperature,
                   max_tokens=config.llm_max_tokens,
                   timeout=config.generation_timeout)

    def _request_body(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "systemInstruction": {
                "parts": [{
                    "text": system_prompt
                }]
            },
            "contents": [{
                "role": "user",
                "parts": [{
                    "text": user_prompt
                }]
            }],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def stream(self, system_prompt: str, user_prompt: str,
                     language: str) -> AsyncIterator[str]:
        url = f"{self.base_url}/models/{self.model_name}:streamGenerateContent"
        params = {"alt": "sse", "key": self.api_key}
        logger.info(f"Making LLM request (gemini, lang={language}) to: {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout,
                                         transport=self._transport) as client:
                async with client.stream(
                        "POST",
                        url,
                        params=params,
                        json=self._request_body(system_prompt,
                                                user_prompt)) as response:
                    if response.status_code == RATE_LIMIT_STATUS:
                        raise UpstreamRateLimited(self.name)
                    if response.status_code >= 400:
                        body = (await response.aread()).decode(
                            "utf-8", errors="replace")
                        raise UpstreamError(
                            self.name,
                            f"HTTP {response.status_code}: {body[:200]}")

                    async for line in response.aiter_lines():
                        text = self._parse_event(line)
                        if text:
                            yield text
        except httpx.HTTPError as e:
            raise UpstreamError(self.name, f"transport error: {e}") from e

    def _parse_event(self, line: str) -> str:
        """Text carried by one SSE line, empty for non-data lines"""
        line = line.strip()
        if not line.startswith("data:"):
            return ""

        payload = line[len("data:"):].strip()
        if not payload or payload == "[DONE]":
            return ""

        try:
            chunk = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Skipping undecodable Gemini event: {payload[:100]}")
            return ""

        error = chunk.get("error")
        if error:
            if error.get("code") == RATE_LIMIT_STATUS:
                raise UpstreamRateLimited(self.name, error.get("message", ""))
            raise UpstreamError(self.name, error.get("message", str(error)))

        candidates = chunk.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(
            part.get("text", "") for part in parts if not part.get("thought"))
