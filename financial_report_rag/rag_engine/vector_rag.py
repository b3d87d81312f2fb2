"""
Vector Index

Passage embeddings stored in ChromaDB, one collection per company so that
searches never mix companies. Passage ids are content hashes, which makes
re-ingesting the same filing text idempotent.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import chromadb

from ..config import settings as default_settings, Settings
from .chunker import Passage
from .embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """A passage returned by a similarity search"""
    id: str
    text: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndex:
    """
    Company-partitioned passage store backed by ChromaDB
    """

    def __init__(self,
                 embedding_provider: EmbeddingProvider,
                 config: Settings = None,
                 client=None):
        """
        Initialize the vector index

        Args:
            embedding_provider: Provider used for passages and queries
            config: Settings, defaults to the global settings
            client: Optional ChromaDB client (a persistent client at
                ``chroma_persist_directory`` is created otherwise)
        """
        self.config = config or default_settings
        self.embedding_provider = embedding_provider
        self.chroma_client = client or chromadb.PersistentClient(
            path=self.config.chroma_persist_directory)

    @staticmethod
    def _normalize_company_name(company_id: str) -> str:
        """Normalize company id for collection naming"""
        # Remove special characters and spaces, convert to lowercase
        normalized = re.sub(r'[^a-zA-Z0-9_]', '_', company_id.lower())
        # Remove consecutive underscores
        normalized = re.sub(r'_+', '_', normalized)
        # Remove leading/trailing underscores
        normalized = normalized.strip('_')
        # Limit length
        if len(normalized) > 50:
            normalized = normalized[:50]
        return f"company_{normalized}"

    def _get_collection(self, company_id: str, create: bool = False):
        name = self._normalize_company_name(company_id)
        try:
            return self.chroma_client.get_collection(name=name)
        except Exception:
            # Chroma raises different error types across versions
            # for a missing collection
            if not create:
                return None

        logger.info(f"Creating collection for {company_id}: {name}")
        return self.chroma_client.get_or_create_collection(
            name=name,
            metadata={
                "hnsw:space": "cosine",
                "company_id": company_id.upper(),
                "created_at": datetime.now().isoformat(),
            })

    def exists(self, company_id: str) -> bool:
        """Check whether any passages are stored for a company"""
        collection = self._get_collection(company_id)
        return collection is not None and collection.count() > 0

    def upsert(self, passages: List[Passage]) -> int:
        """
        Embed and store passages

        Args:
            passages: Passages to store; may span several companies

        Returns:
            Number of passages written
        """
        by_company: Dict[str, List[Passage]] = {}
        for passage in passages:
            if not passage.text.strip():
                continue
            by_company.setdefault(passage.company_id.upper(), []).append(passage)

        stored = 0
        for company_id, company_passages in by_company.items():
            collection = self._get_collection(company_id, create=True)
            embeddings = self.embedding_provider.embed_batch(
                [p.text for p in company_passages])

            ids, documents, vectors, metadatas = [], [], [], []
            for passage, vector in zip(company_passages, embeddings):
                if passage.content_hash in ids:
                    continue
                if not any(vector):
                    logger.warning(
                        f"Skipping passage {passage.index} for {company_id}: "
                        f"embedding failed")
                    continue
                ids.append(passage.content_hash)
                documents.append(passage.text)
                vectors.append(vector)
                metadatas.append({
                    "company_id": company_id,
                    "chunk_index": passage.index,
                    "start": passage.start,
                    "end": passage.end,
                    "source": passage.source,
                    "added_at": datetime.now().isoformat(),
                })

            if not ids:
                continue

            collection.upsert(ids=ids,
                              documents=documents,
                              embeddings=vectors,
                              metadatas=metadatas)
            stored += len(ids)
            logger.info(f"Stored {len(ids)} passages for {company_id}")

        return stored

    def search(self,
               company_id: str,
               query: str,
               top_k: Optional[int] = None,
               min_score: Optional[float] = None) -> List[SearchResult]:
        """
        Retrieve the passages of one company most similar to a query

        Args:
            company_id: Company ticker
            query: Search query
            top_k: Number of passages to return
            min_score: Minimum cosine similarity

        Returns:
            Search results ranked by score, highest first
        """
        top_k = top_k or self.config.search_top_k
        if min_score is None:
            min_score = self.config.similarity_threshold

        collection = self._get_collection(company_id)
        if collection is None:
            logger.warning(f"No collection found for company {company_id}")
            return []

        count = collection.count()
        if count == 0:
            logger.warning(f"No passages stored for {company_id}")
            return []

        query_embedding = self.embedding_provider.embed(query)
        if not any(query_embedding):
            logger.warning(f"Query embedding failed for '{query}'")
            return []

        # Over-fetch, then filter and rank
        results = collection.query(query_embeddings=[query_embedding],
                                   n_results=min(top_k * 3, count))

        hits = []
        if results["documents"] and results["documents"][0]:
            metadatas = (results.get("metadatas") or [[]])[0] or []
            for i, document in enumerate(results["documents"][0]):
                score = 1.0 - float(results["distances"][0][i])
                if score < min_score:
                    continue
                hits.append(
                    SearchResult(id=results["ids"][0][i],
                                 text=document,
                                 score=score,
                                 metadata=dict(metadatas[i] or {})
                                 if i < len(metadatas) else {}))

        hits.sort(key=lambda hit: hit.score, reverse=True)
        top_hits = hits[:top_k]

        logger.info(f"Retrieved {len(top_hits)} passages for {company_id} "
                    f"(query: '{query[:40]}')")
        return top_hits

    def clear(self, company_id: str) -> bool:
        """Delete all passages of a company"""
        if self._get_collection(company_id) is None:
            return False
        self.chroma_client.delete_collection(
            name=self._normalize_company_name(company_id))
        logger.info(f"Deleted collection for {company_id}")
        return True

    def get_status(self) -> Dict[str, int]:
        """Passage counts per stored company"""
        status = {}
        for collection in self.chroma_client.list_collections():
            # list_collections returns names in newer Chroma releases
            name = collection if isinstance(collection, str) else collection.name
            if name.startswith("company_"):
                status[name[len("company_"):].upper()] = (
                    self.chroma_client.get_collection(name=name).count())
        return status
