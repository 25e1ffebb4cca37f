"""
Mockify - document chunking and semantic retrieval for exam preparation.

This package provides:
- Text extraction from uploaded PDFs and plain-text files
- Overlapping, boundary-aware text chunking
- Embedding generation (sentence-transformers or Ollama)
- Vector storage and similarity search (ChromaDB or in-memory)
- Document-level aggregation of search results
- CLI and HTTP interfaces
"""

__version__ = "0.1.0"
