"""
RAG Engine Module

Passage chunking, embeddings and the company-partitioned vector index
"""

from .chunker import Passage, chunk_text
from .embeddings import (EmbeddingProvider, GeminiEmbeddingProvider,
                         build_embedding_provider)
from .vector_rag import SearchResult, VectorIndex

__all__ = [
    'Passage', 'chunk_text', 'EmbeddingProvider', 'GeminiEmbeddingProvider',
    'build_embedding_provider', 'SearchResult', 'VectorIndex'
]
