"""
Local sentence-transformers embeddings
"""

import logging
import os
from typing import List

from sentence_transformers import SentenceTransformer

from .embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

# Fix tokenizers fork warning
os.environ["TOKENIZERS_PARALLELISM"] = "false"


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Embeddings computed in-process, no API key required"""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        logger.info(f"Loading sentence-transformers model {model_name}")
        self.embedding_model = SentenceTransformer(model_name)
        self.dimensions = self.embedding_model.get_sentence_embedding_dimension()

    def embed(self, text: str) -> List[float]:
        return self.embedding_model.encode(text,
                                           normalize_embeddings=True).tolist()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        return self.embedding_model.encode(texts,
                                           normalize_embeddings=True).tolist()
