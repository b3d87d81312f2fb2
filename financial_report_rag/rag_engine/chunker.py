"""
Passage chunking for filing text
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

CHUNK_SIZE = 3000
CHUNK_OVERLAP = 300
MAX_CHUNKS = 30

SENTENCE_ENDINGS = ['. ', '.\n', '! ', '!\n', '? ', '?\n']


@dataclass(frozen=True)
class Passage:
    """A slice of cleaned filing text, located by character offsets"""
    company_id: str
    text: str
    start: int
    end: int
    index: int
    source: str = ""

    @property
    def content_hash(self) -> str:
        digest = hashlib.sha256()
        digest.update(self.company_id.upper().encode("utf-8"))
        digest.update(b"\x00")
        digest.update(self.text.encode("utf-8"))
        return digest.hexdigest()


def chunk_text(company_id: str,
               text: str,
               chunk_size: int = CHUNK_SIZE,
               overlap: int = CHUNK_OVERLAP,
               max_chunks: int = MAX_CHUNKS,
               source: str = "") -> List[Passage]:
    """
    Split text into overlapping passages

    A chunk ends at the last sentence boundary in its second half when one
    exists. Every passage starts strictly after the previous one and never
    after its end, so the passages cover the text without gaps.

    Args:
        company_id: Company the passages belong to
        text: Text to chunk
        chunk_size: Maximum characters per passage
        overlap: Characters shared by consecutive passages
        max_chunks: Maximum number of passages
        source: Optional source label (e.g. document URL)

    Returns:
        List of passages in text order
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not text:
        return []

    passages: List[Passage] = []
    start = 0
    length = len(text)

    while start < length and len(passages) < max_chunks:
        end = min(start + chunk_size, length)

        if end < length:
            midpoint = start + chunk_size // 2
            sentence_ends = []
            for pattern in SENTENCE_ENDINGS:
                pos = text.rfind(pattern, midpoint, end)
                if pos != -1:
                    # Keep the punctuation, leave the whitespace for the next chunk
                    sentence_ends.append(pos + 1)
            if sentence_ends:
                end = max(sentence_ends)

        passages.append(
            Passage(company_id=company_id,
                    text=text[start:end],
                    start=start,
                    end=end,
                    index=len(passages),
                    source=source))

        if end >= length:
            break

        next_start = end - overlap
        if next_start <= start:
            next_start = start + 1
        start = next_start

    if len(passages) == max_chunks and passages[-1].end < length:
        logger.warning(f"Chunk limit of {max_chunks} reached for {company_id}; "
                       f"{length - passages[-1].end} characters not indexed")

    return passages
