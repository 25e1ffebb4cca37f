"""
RAG module - Retrieval side of the pipeline.

This module is responsible for:
1. Retrieving relevant chunks for a query
2. Grouping them into ranked documents
3. Formatting context for question generation
"""

from .aggregator import DocumentRelevanceResult, MatchedChunk, aggregate_hits, format_context
from .retriever import Retriever, search_relevant_content

__all__ = [
    "DocumentRelevanceResult",
    "MatchedChunk",
    "aggregate_hits",
    "format_context",
    "Retriever",
    "search_relevant_content",
]
