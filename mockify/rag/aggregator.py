"""
Aggregator - Turns chunk-level search hits into document-level results.

A search returns individual chunks, but users pick study materials, not
chunks. This module groups hits by document, ranks documents by their best
chunk, and keeps the few best chunks of each as evidence.

It also renders hits as a numbered context block for question generation:

    [Context 1] (Biology - 83.2% relevant)
    Photosynthesis converts light energy...

    ---

    [Context 2] (Study Material - 61.0% relevant)
    ...
"""

import math
from dataclasses import dataclass, field

from mockify.config import CHUNKS_PER_DOCUMENT, DEFAULT_SOURCE_LABEL
from mockify.embeddings.vector_store import SearchHit

PREVIEW_LENGTH = 200
CONTEXT_SEPARATOR = "\n\n---\n\n"


def to_percent(similarity: float) -> int:
    """Similarity as a whole percentage, halves rounded up."""
    return math.floor(similarity * 100 + 0.5)


@dataclass
class MatchedChunk:
    """One chunk shown as evidence for a document match."""

    text: str
    similarity: float
    chunk_index: int
    start_char: int
    end_char: int

    @property
    def similarity_percent(self) -> int:
        return to_percent(self.similarity)

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "MatchedChunk":
        return cls(
            text=hit.chunk.text,
            similarity=hit.similarity,
            chunk_index=hit.chunk.chunk_index,
            start_char=hit.chunk.start_char,
            end_char=hit.chunk.end_char,
        )

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "similarity": self.similarity,
            "similarity_percent": self.similarity_percent,
            "chunk_index": self.chunk_index,
            "start_char": self.start_char,
            "end_char": self.end_char,
        }


@dataclass
class DocumentRelevanceResult:
    """
    How well one document matches a query.

    Attributes:
        document_id: The matching document
        topic: Topic label of the document
        similarity: Best chunk similarity in the document
        matched_chunks: Best chunks, highest similarity first
        total_matched_chunks: How many of the document's chunks matched
    """

    document_id: str
    topic: str
    similarity: float
    matched_chunks: list[MatchedChunk] = field(default_factory=list)
    total_matched_chunks: int = 0

    @property
    def similarity_percent(self) -> int:
        return to_percent(self.similarity)

    @property
    def preview(self) -> str:
        """Start of the best matching chunk, for result lists."""
        if not self.matched_chunks:
            return ""
        text = self.matched_chunks[0].text
        if len(text) <= PREVIEW_LENGTH:
            return text
        return text[:PREVIEW_LENGTH] + "..."

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "topic": self.topic,
            "similarity": self.similarity,
            "similarity_percent": self.similarity_percent,
            "preview": self.preview,
            "matched_chunks": [chunk.to_dict() for chunk in self.matched_chunks],
            "total_matched_chunks": self.total_matched_chunks,
        }


def aggregate_hits(
    hits: list[SearchHit],
    max_documents: int | None = None,
    chunks_per_document: int = CHUNKS_PER_DOCUMENT,
) -> list[DocumentRelevanceResult]:
    """
    Group chunk hits by document and rank the documents.

    Documents are ordered by their best chunk's similarity, highest first.
    Ties keep the order in which documents first appear in ``hits``.

    Args:
        hits: Search hits in any order
        max_documents: Keep only this many documents (None = all)
        chunks_per_document: Evidence chunks kept per document

    Returns:
        List of DocumentRelevanceResult, best document first
    """
    if chunks_per_document < 1:
        raise ValueError("chunks_per_document must be at least 1")

    grouped: dict[str, list[SearchHit]] = {}
    for hit in hits:
        grouped.setdefault(hit.document_id, []).append(hit)

    results = []
    for document_id, document_hits in grouped.items():
        ranked = sorted(document_hits, key=lambda hit: hit.similarity, reverse=True)
        results.append(
            DocumentRelevanceResult(
                document_id=document_id,
                topic=ranked[0].chunk.topic,
                similarity=ranked[0].similarity,
                matched_chunks=[MatchedChunk.from_hit(hit) for hit in ranked[:chunks_per_document]],
                total_matched_chunks=len(document_hits),
            )
        )

    # sorted() is stable, so equal scores keep first-seen order
    results = sorted(results, key=lambda result: result.similarity, reverse=True)
    if max_documents is not None:
        results = results[:max_documents]
    return results


def format_context(hits: list[SearchHit], max_chunks: int | None = None) -> str:
    """
    Render hits as numbered context sections for a prompt.

    Args:
        hits: Search hits in any order
        max_chunks: Include at most this many sections (None = all)

    Returns:
        Sections joined by a ``---`` rule, best hit first ("" for no hits)
    """
    ranked = sorted(hits, key=lambda hit: hit.similarity, reverse=True)
    if max_chunks is not None:
        ranked = ranked[:max_chunks]

    sections = []
    for i, hit in enumerate(ranked, start=1):
        label = hit.chunk.topic or DEFAULT_SOURCE_LABEL
        sections.append(
            f"[Context {i}] ({label} - {hit.similarity * 100:.1f}% relevant)\n{hit.chunk.text}"
        )
    return CONTEXT_SEPARATOR.join(sections)
