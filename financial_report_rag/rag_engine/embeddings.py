"""
Embedding providers

Text -> fixed-length vector. The Gemini provider calls the REST
``embedContent`` endpoint one text at a time with a fixed delay between
calls; a call that keeps failing yields a zero vector instead of aborting
the batch.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, List

import requests

from ..config import settings as default_settings, Settings

logger = logging.getLogger(__name__)

GEMINI_EMBED_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:embedContent"


class EmbeddingProvider(ABC):
    """Turns text into vectors"""

    dimensions: int

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """Embed a single text"""

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, in order"""
        return [self.embed(text) for text in texts]

    def zero_vector(self) -> List[float]:
        return [0.0] * self.dimensions


class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Gemini ``embedContent`` REST embeddings

    Requests run sequentially with ``embedding_request_delay`` seconds between
    them. HTTP 429 responses are retried with exponential backoff
    (1s, 2s, 4s); other failures give up immediately.
    """

    max_attempts = 3

    def __init__(self,
                 config: Settings = None,
                 session: requests.Session = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or default_settings
        if not self.config.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required for Gemini embeddings")
        self.model = self.config.gemini_embedding_model
        self.dimensions = self.config.embedding_dimension
        self.session = session or requests.Session()
        self._sleep = sleep

    def embed(self, text: str) -> List[float]:
        """
        Embed one text

        Args:
            text: Text to embed, truncated to the configured maximum length

        Returns:
            Embedding vector, or a zero vector when every attempt failed
        """
        text = text[:self.config.embedding_max_text_length]
        url = GEMINI_EMBED_URL.format(model=self.model)
        payload = {
            "model": f"models/{self.model}",
            "content": {
                "parts": [{
                    "text": text
                }]
            },
        }

        for attempt in range(self.max_attempts):
            try:
                response = self.session.post(
                    url,
                    params={"key": self.config.gemini_api_key},
                    json=payload,
                    timeout=30)
            except requests.RequestException as e:
                logger.error(f"Gemini embedding request failed: {e}")
                break

            if response.status_code == 429:
                logger.warning(f"Gemini embedding rate limited (attempt "
                               f"{attempt + 1}/{self.max_attempts})")
                if attempt < self.max_attempts - 1:
                    self._sleep(2**attempt)
                continue

            if response.status_code >= 400:
                logger.error(f"Gemini embedding error {response.status_code}: "
                             f"{response.text[:200]}")
                break

            try:
                values = response.json().get("embedding", {}).get("values")
            except ValueError as e:
                logger.error(f"Gemini embedding response was not JSON: {e}")
                break
            if values:
                return [float(v) for v in values]

            logger.error("Gemini embedding response had no values")
            break

        logger.warning("Falling back to zero vector for embedding")
        return self.zero_vector()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        vectors = []
        for i, text in enumerate(texts):
            if i > 0:
                self._sleep(self.config.embedding_request_delay)
            vectors.append(self.embed(text))
            logger.debug(f"Embedded {i + 1}/{len(texts)} passages")
        return vectors


def build_embedding_provider(config: Settings = None) -> EmbeddingProvider:
    """Create the embedding provider named by ``embedding_provider``"""
    config = config or default_settings
    provider = config.embedding_provider.lower()

    if provider == "gemini":
        return GeminiEmbeddingProvider(config)
    if provider == "local":
        from .local_embeddings import SentenceTransformerEmbeddingProvider
        return SentenceTransformerEmbeddingProvider(config.embedding_model)

    raise ValueError(f"Unsupported embedding provider: {provider}")
