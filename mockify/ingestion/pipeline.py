"""
Ingestion Pipeline - Turns an uploaded file into searchable chunks.

This module orchestrates the full ingestion flow for one document:
1. Mark the document as processing
2. Extract text from the uploaded bytes
3. Split the text into overlapping chunks
4. Generate an embedding for each chunk (in parallel)
5. Store the embedded chunks in the vector store
6. Mark the document completed (or failed)

Failure policy:
- Extraction or chunking errors fail the whole document
- A chunk whose embedding fails is skipped and reported; the rest are indexed
- If no chunk could be embedded the document fails with EmbeddingUnavailable
- A document id the user already has indexed is rejected with DocumentExists

Example:
    pipeline = IngestionPipeline(Embedder(), VectorStore())
    document = Document(id="doc-1", user_id="u1", topic="Biology")
    result = pipeline.ingest(document, pdf_bytes, "application/pdf")
    print(result.status, len(result.chunks), result.failed_chunks)
"""

import logging
from dataclasses import dataclass, field

from mockify.embeddings.embedder import BaseEmbedder
from mockify.embeddings.vector_store import BaseVectorStore
from mockify.exceptions import DocumentExists, EmbeddingUnavailable
from mockify.ingestion.chunker import ChunkStrategy, TextChunker, sanitize_text
from mockify.ingestion.extractor import TextExtractor
from mockify.models import Chunk, Document, DocumentStatus

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """
    Outcome of ingesting one document.

    Attributes:
        document: The document, in its final status
        chunks: Chunks that were embedded and indexed
        failed_chunks: Reason per chunk index that could not be embedded
    """

    document: Document
    chunks: list[Chunk] = field(default_factory=list)
    failed_chunks: dict[int, str] = field(default_factory=dict)

    @property
    def status(self) -> DocumentStatus:
        return self.document.status

    @property
    def is_partial(self) -> bool:
        """True when some, but not all, chunks were indexed."""
        return bool(self.chunks) and bool(self.failed_chunks)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document.id,
            "status": self.status.value,
            "chunk_count": len(self.chunks),
            "failed_chunks": sorted(self.failed_chunks),
            "is_partial": self.is_partial,
        }


class IngestionPipeline:
    """
    Extract, chunk, embed and index documents.

    The embedder and vector store are injected so the same pipeline runs
    against a local model, Ollama, ChromaDB or the in-memory index.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        extractor: TextExtractor | None = None,
        chunker: TextChunker | None = None,
    ):
        """
        Args:
            embedder: Embedding client used for every chunk
            vector_store: Where embedded chunks are indexed
            extractor: Text extractor (default settings if None)
            chunker: Chunker (adaptive strategy if None)
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.extractor = extractor or TextExtractor()
        self.chunker = chunker or TextChunker()

    def ingest(
        self,
        document: Document,
        raw_bytes: bytes,
        content_type: str,
        strategy: ChunkStrategy | None = None,
    ) -> IngestResult:
        """
        Ingest one document end to end.

        Args:
            document: A pending document; its status is updated in place
            raw_bytes: The uploaded file contents
            content_type: Declared MIME type of the upload
            strategy: Chunk strategy override for this document

        Returns:
            IngestResult with the indexed chunks and any per-chunk failures

        Raises:
            UnsupportedType, InsufficientContent: From extraction
            DocumentExists: If the user already has chunks under this document id
            ChunkingFailure: If the text produces no chunks
            EmbeddingUnavailable: If no chunk could be embedded
            DimensionMismatch: If the embedder and index disagree on size
        """
        document.mark(DocumentStatus.PROCESSING)
        logger.info("Ingesting document %s for user %s", document.id, document.user_id)

        try:
            result = self._run(document, raw_bytes, content_type, strategy)
        except Exception:
            document.mark(DocumentStatus.FAILED)
            logger.error("Ingestion of document %s failed", document.id)
            raise

        document.mark(DocumentStatus.COMPLETED)
        logger.info(
            "Document %s completed: %d chunks indexed, %d failed",
            document.id,
            len(result.chunks),
            len(result.failed_chunks),
        )
        return result

    def _run(
        self,
        document: Document,
        raw_bytes: bytes,
        content_type: str,
        strategy: ChunkStrategy | None,
    ) -> IngestResult:
        # Indexed documents are only changed by deleting them
        if self.vector_store.get_document_chunks(document.id, document.user_id):
            raise DocumentExists(document.id, {"user_id": document.user_id})

        text = self.extractor.extract(raw_bytes, content_type)
        # Chunk offsets point into the sanitized text, so that is what we keep
        document.raw_text = sanitize_text(text)

        chunker = TextChunker(strategy) if strategy else self.chunker
        text_chunks = chunker.chunk_text(document.raw_text)

        batch = self.embedder.embed_many([chunk.text for chunk in text_chunks])
        if batch.all_failed:
            raise EmbeddingUnavailable(
                f"None of the {len(text_chunks)} chunks could be embedded",
                {"document_id": document.id, "failed_chunks": batch.failed_indices},
            )

        pairs = [
            (
                Chunk(
                    document_id=document.id,
                    user_id=document.user_id,
                    chunk_index=text_chunk.chunk_index,
                    text=text_chunk.text,
                    start_char=text_chunk.start_char,
                    end_char=text_chunk.end_char,
                    topic=document.topic,
                ),
                batch.vectors[text_chunk.chunk_index],
            )
            for text_chunk in text_chunks
            if text_chunk.chunk_index in batch.vectors
        ]
        stored = self.vector_store.index_many(pairs)

        return IngestResult(document=document, chunks=stored, failed_chunks=dict(batch.failures))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def ingest_document(
    document_id: str,
    user_id: str,
    raw_bytes: bytes,
    content_type: str,
    *,
    embedder: BaseEmbedder,
    vector_store: BaseVectorStore,
    topic: str = "General",
    strategy: ChunkStrategy | None = None,
) -> IngestResult:
    """
    Simple function to ingest one uploaded file.

    Example:
        result = ingest_document(
            "doc-1", "u1", pdf_bytes, "application/pdf",
            embedder=embedder, vector_store=store, topic="Chemistry",
        )
    """
    document = Document(id=document_id, user_id=user_id, topic=topic)
    pipeline = IngestionPipeline(embedder, vector_store)
    return pipeline.ingest(document, raw_bytes, content_type, strategy=strategy)
