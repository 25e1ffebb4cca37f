"""
Ingestion module - Handles text extraction, chunking and indexing.

This module is responsible for:
1. Extracting text from PDF and plain-text uploads
2. Splitting text into overlapping chunks for embedding
3. Running the extract -> chunk -> embed -> index pipeline
"""

from .chunker import ChunkStrategy, TextChunk, TextChunker, chunk_text, sanitize_text
from .extractor import TextExtractor, extract_text
from .pipeline import IngestionPipeline, IngestResult, ingest_document

__all__ = [
    "ChunkStrategy",
    "TextChunk",
    "TextChunker",
    "chunk_text",
    "sanitize_text",
    "TextExtractor",
    "extract_text",
    "IngestionPipeline",
    "IngestResult",
    "ingest_document",
]
