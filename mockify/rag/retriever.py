"""
Retriever - Finds the study materials most relevant to a query.

This module handles the retrieval side of the app:
1. Takes a user's query text
2. Converts it to an embedding (same model as the indexed chunks)
3. Searches the user's chunks in the vector store
4. Groups the hits by document and ranks the documents

Key Concept:
A search fetches more chunks than documents requested (max_results * 3) so
that one long, highly relevant document cannot crowd every other document
out of the chunk list before grouping.

The same machinery also builds the context block used for question
generation (lower threshold, up to 30 chunks).
"""

import logging

from mockify.config import (
    CHUNK_FETCH_MULTIPLIER,
    CHUNKS_PER_DOCUMENT,
    CONTEXT_MAX_CHUNKS,
    CONTEXT_SIMILARITY_THRESHOLD,
    DEFAULT_MAX_RESULTS,
    DEFAULT_SIMILARITY_THRESHOLD,
)
from mockify.embeddings.embedder import BaseEmbedder
from mockify.embeddings.vector_store import BaseVectorStore, SearchHit
from mockify.rag.aggregator import DocumentRelevanceResult, aggregate_hits, format_context

logger = logging.getLogger(__name__)


class Retriever:
    """
    Retrieves relevant documents and context from the vector store.

    This class handles:
    - Embedding queries
    - Searching the vector store, scoped to one user
    - Aggregating chunk hits into ranked documents
    - Formatting context for question generation

    Example:
        retriever = Retriever(embedder, vector_store)
        results = retriever.search_relevant_content("u1", "cell respiration")
        for result in results:
            print(f"{result.topic}: {result.similarity_percent}%")
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_results: int = DEFAULT_MAX_RESULTS,
        chunks_per_document: int = CHUNKS_PER_DOCUMENT,
    ):
        """
        Initialize the retriever.

        Args:
            embedder: Embedding client (must match the one used at ingest)
            vector_store: Where the chunks are indexed
            threshold: Default minimum similarity score
            max_results: Default number of documents returned
            chunks_per_document: Evidence chunks kept per document
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.threshold = threshold
        self.max_results = max_results
        self.chunks_per_document = chunks_per_document

    def retrieve_hits(
        self,
        user_id: str,
        query_text: str,
        threshold: float,
        limit: int,
        document_ids: list[str] | None = None,
    ) -> list[SearchHit]:
        """
        Embed a query and return the user's matching chunks, best first.

        Raises:
            ValueError: If the query is empty or user_id is missing
            EmbeddingUnavailable: If the query cannot be embedded
        """
        if not query_text or not query_text.strip():
            raise ValueError("Search query cannot be empty")
        if not user_id:
            raise ValueError("user_id is required to search")

        query_vector = self.embedder.embed(query_text)
        return self.vector_store.search(
            query_vector,
            threshold=threshold,
            max_results=limit,
            user_id=user_id,
            document_ids=document_ids,
        )

    def search_relevant_content(
        self,
        user_id: str,
        query_text: str,
        threshold: float | None = None,
        max_results: int | None = None,
        document_ids: list[str] | None = None,
        chunks_per_document: int | None = None,
        best_effort: bool = False,
    ) -> list[DocumentRelevanceResult]:
        """
        Find the user's documents most relevant to a query.

        Args:
            user_id: Whose materials to search
            query_text: The search query
            threshold: Minimum chunk similarity (default 0.4)
            max_results: Maximum documents returned (default 10)
            document_ids: Optional restriction to these documents
            chunks_per_document: Evidence chunks per document (default 3)
            best_effort: If nothing clears the threshold, retry at 0.0 and
                         return the closest documents anyway

        Returns:
            DocumentRelevanceResults ordered by best chunk similarity

        Raises:
            ValueError: If the query is empty or user_id is missing
            EmbeddingUnavailable: If the query cannot be embedded

        Example:
            results = retriever.search_relevant_content(
                "u1", "mitochondria", threshold=0.3, max_results=5
            )
        """
        threshold = self.threshold if threshold is None else threshold
        max_results = max_results or self.max_results
        chunks_per_document = chunks_per_document or self.chunks_per_document
        limit = max_results * CHUNK_FETCH_MULTIPLIER

        hits = self.retrieve_hits(user_id, query_text, threshold, limit, document_ids)

        if not hits and best_effort and threshold > 0.0:
            logger.info(
                "No chunks above %.2f for user %s; retrying with threshold 0.0",
                threshold,
                user_id,
            )
            hits = self.retrieve_hits(user_id, query_text, 0.0, limit, document_ids)
            if hits:
                logger.info("Best match below threshold: %.3f", hits[0].similarity)

        results = aggregate_hits(
            hits, max_documents=max_results, chunks_per_document=chunks_per_document
        )
        logger.info(
            "Search '%s' for user %s: %d chunks in %d documents",
            query_text[:50],
            user_id,
            len(hits),
            len(results),
        )
        return results

    def build_context(
        self,
        user_id: str,
        query_text: str,
        document_ids: list[str] | None = None,
        threshold: float = CONTEXT_SIMILARITY_THRESHOLD,
        max_chunks: int = CONTEXT_MAX_CHUNKS,
    ) -> str:
        """
        Build a numbered context block for question generation.

        Returns:
            Formatted context sections, or "" when nothing matches so the
            caller can fall back to generic content
        """
        hits = self.retrieve_hits(user_id, query_text, threshold, max_chunks, document_ids)
        if not hits:
            logger.info("No context found for '%s' (user %s)", query_text[:50], user_id)
            return ""
        return format_context(hits, max_chunks=max_chunks)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def search_relevant_content(
    user_id: str,
    query_text: str,
    *,
    embedder: BaseEmbedder,
    vector_store: BaseVectorStore,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    max_results: int = DEFAULT_MAX_RESULTS,
    document_ids: list[str] | None = None,
    chunks_per_document: int = CHUNKS_PER_DOCUMENT,
) -> list[DocumentRelevanceResult]:
    """
    Simple function to search a user's materials.

    Example:
        results = search_relevant_content(
            "u1", "What is osmosis?", embedder=embedder, vector_store=store
        )
    """
    retriever = Retriever(embedder, vector_store)
    return retriever.search_relevant_content(
        user_id,
        query_text,
        threshold=threshold,
        max_results=max_results,
        document_ids=document_ids,
        chunks_per_document=chunks_per_document,
    )
