"""
Web App - HTTP surface for uploading study materials and searching them.

Endpoints:
    GET    /health                              Liveness + indexed chunk count
    POST   /api/documents?topic=&document_id=   Upload raw PDF / text bytes
    GET    /api/documents/{document_id}/chunks  Chunks of one document
    DELETE /api/documents/{document_id}         Remove a document's chunks
    POST   /api/search                          Rank the user's documents for a query
    POST   /api/context                         Context block for question generation

Authentication happens upstream; the caller's identity arrives in the
X-User-Id header and every read is scoped to it.

Run with:
    python -m mockify serve
"""

import logging
import uuid

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.concurrency import run_in_threadpool

from mockify import __version__
from mockify.config import (
    CONTEXT_MAX_CHUNKS,
    DEFAULT_MAX_RESULTS,
    DEFAULT_SIMILARITY_THRESHOLD,
    MAX_UPLOAD_BYTES,
)
from mockify.embeddings.embedder import Embedder
from mockify.embeddings.vector_store import VectorStore
from mockify.exceptions import (
    ChunkingFailure,
    DimensionMismatch,
    DocumentExists,
    EmbeddingUnavailable,
    InsufficientContent,
    MockifyError,
    UnsupportedType,
)
from mockify.ingestion.pipeline import IngestionPipeline
from mockify.models import Document
from mockify.rag.retriever import Retriever

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    UnsupportedType: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    InsufficientContent: 422,
    ChunkingFailure: 422,
    EmbeddingUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    DimensionMismatch: status.HTTP_500_INTERNAL_SERVER_ERROR,
    DocumentExists: status.HTTP_409_CONFLICT,
}


# ── Request schemas ─────────────────────────────────────────────────────────


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    threshold: float = Field(DEFAULT_SIMILARITY_THRESHOLD, ge=-1.0, le=1.0)
    limit: int = Field(DEFAULT_MAX_RESULTS, ge=1, le=50)
    document_ids: list[str] | None = None
    best_effort: bool = False

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query cannot be blank")
        return value


class ContextRequest(BaseModel):
    query: str = Field(..., min_length=1)
    document_ids: list[str] | None = None
    max_chunks: int = Field(CONTEXT_MAX_CHUNKS, ge=1, le=100)

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query cannot be blank")
        return value


# ── Dependencies ────────────────────────────────────────────────────────────


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id.strip()


def _status_for(exc: MockifyError) -> int:
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    pipeline: IngestionPipeline | None = None,
    retriever: Retriever | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        pipeline: Ingestion pipeline (local embedder + ChromaDB if None)
        retriever: Retriever (shares the pipeline's embedder and store if None)
    """
    if pipeline is None:
        pipeline = IngestionPipeline(Embedder(), VectorStore())
    if retriever is None:
        retriever = Retriever(pipeline.embedder, pipeline.vector_store)

    app = FastAPI(title="Mockify Retrieval API", version=__version__)

    @app.exception_handler(MockifyError)
    async def mockify_error_handler(request: Request, exc: MockifyError):
        code = _status_for(exc)
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, code, exc)
        return JSONResponse(
            status_code=code,
            content={"error": exc.user_message, "details": str(exc)},
        )

    # ── Health ──────────────────────────────────────────────────────────────

    @app.get("/health")
    def health():
        return {"status": "ok", "total_chunks": retriever.vector_store.count}

    # ── Documents ───────────────────────────────────────────────────────────

    @app.post("/api/documents", status_code=status.HTTP_201_CREATED)
    async def upload_document(
        request: Request,
        topic: str = Query("General", min_length=1),
        document_id: str | None = Query(None),
        user_id: str = Depends(get_user_id),
    ):
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="File too large")

        raw_bytes = await request.body()
        if len(raw_bytes) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="File too large")

        document = Document(id=document_id or str(uuid.uuid4()), user_id=user_id, topic=topic)
        content_type = request.headers.get("content-type", "")

        result = await run_in_threadpool(pipeline.ingest, document, raw_bytes, content_type)
        return result.to_dict()

    @app.get("/api/documents/{document_id}/chunks")
    def document_chunks(document_id: str, user_id: str = Depends(get_user_id)):
        chunks = retriever.vector_store.get_document_chunks(document_id, user_id)
        if not chunks:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

        records = []
        for chunk in chunks:
            record = chunk.to_record()
            record.pop("embedding")
            records.append(record)
        return {"document_id": document_id, "count": len(records), "chunks": records}

    @app.delete("/api/documents/{document_id}")
    def delete_document(document_id: str, user_id: str = Depends(get_user_id)):
        deleted = retriever.vector_store.delete_document(document_id, user_id)
        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return {"document_id": document_id, "deleted_chunks": deleted}

    # ── Search ──────────────────────────────────────────────────────────────

    @app.post("/api/search")
    def search(body: SearchRequest, user_id: str = Depends(get_user_id)):
        results = retriever.search_relevant_content(
            user_id,
            body.query,
            threshold=body.threshold,
            max_results=body.limit,
            document_ids=body.document_ids,
            best_effort=body.best_effort,
        )
        return {
            "success": True,
            "query": body.query,
            "count": len(results),
            "results": [result.to_dict() for result in results],
        }

    @app.post("/api/context")
    def context(body: ContextRequest, user_id: str = Depends(get_user_id)):
        text = retriever.build_context(
            user_id, body.query, document_ids=body.document_ids, max_chunks=body.max_chunks
        )
        return {"query": body.query, "has_context": bool(text), "context": text}

    return app
