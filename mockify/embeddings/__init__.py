"""
Embeddings module - Handles embedding generation and vector storage.

This module is responsible for:
1. Converting text chunks to embeddings
2. Storing embeddings and searching them by cosine similarity
"""

from .embedder import BaseEmbedder, Embedder, EmbeddingBatch, OllamaEmbedder
from .vector_store import BaseVectorStore, InMemoryVectorStore, SearchHit, VectorStore

__all__ = [
    "BaseEmbedder",
    "Embedder",
    "EmbeddingBatch",
    "OllamaEmbedder",
    "BaseVectorStore",
    "InMemoryVectorStore",
    "SearchHit",
    "VectorStore",
]
