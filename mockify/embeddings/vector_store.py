"""
Vector Store - Stores chunk embeddings and answers similarity searches.

Key Concepts:
- Every chunk belongs to exactly one user; every read is scoped to a user
- Similarity is cosine similarity in [-1, 1] (1 = same direction)
- A search returns chunks with similarity >= threshold, best first,
  at most max_results of them

Two implementations share the same interface:
- InMemoryVectorStore: exact linear scan (numpy + scikit-learn). Small
  corpora, tests, and the reference for what a search should return.
- VectorStore: persistent ChromaDB collection in the cosine space.

How it works:
1. Index: chunk + embedding + metadata -> store
2. Search: query embedding -> user's chunks ranked by similarity -> SearchHits
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

import chromadb
import numpy as np
from chromadb.api import ClientAPI

from mockify.config import CHROMA_DB_DIR, COLLECTION_NAME, EMBEDDING_DIMENSION
from mockify.embeddings.similarity import check_dimension, cosine_scores
from mockify.models import Chunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    """
    A single search result from the vector store.

    Attributes:
        chunk: The matching chunk (embedding attached)
        similarity: Cosine similarity to the query (higher = more similar)
    """

    chunk: Chunk
    similarity: float

    @property
    def document_id(self) -> str:
        return self.chunk.document_id

    @property
    def text(self) -> str:
        return self.chunk.text


def _require_user(user_id: str | None) -> str:
    if not user_id:
        raise ValueError("user_id is required for every vector store read")
    return user_id


class BaseVectorStore(ABC):
    """
    Validation, ranking and truncation shared by all vector stores.

    Subclasses store chunks (``_add``) and produce scored candidates for one
    user (``_candidates``); this class applies the threshold, ordering and
    ``max_results`` so every backend returns the same shape.
    """

    def __init__(self, dimension: int = EMBEDDING_DIMENSION):
        self.dimension = dimension

    @abstractmethod
    def _add(self, chunks: list[Chunk]) -> None:
        """Persist chunks that already carry validated embeddings."""

    @abstractmethod
    def _candidates(
        self,
        query_vector: list[float],
        user_id: str,
        document_ids: list[str] | None,
    ) -> list[SearchHit]:
        """Score the user's chunks (optionally restricted to some documents)."""

    @abstractmethod
    def get_document_chunks(self, document_id: str, user_id: str) -> list[Chunk]:
        """Return a document's chunks ordered by chunk_index."""

    @abstractmethod
    def delete_document(self, document_id: str, user_id: str) -> int:
        """Remove a document's chunks, returning how many were removed."""

    @property
    @abstractmethod
    def count(self) -> int:
        """Total number of indexed chunks (all users)."""

    @abstractmethod
    def get_stats(self) -> dict:
        """Summary of what the store holds."""

    def _attach(self, chunk: Chunk, vector: Sequence[float]) -> Chunk:
        check_dimension(vector, self.dimension)
        return replace(chunk, embedding=tuple(float(x) for x in vector))

    def index(self, chunk: Chunk, vector: Sequence[float]) -> Chunk:
        """
        Store one chunk with its embedding.

        Returns:
            The stored chunk, with its embedding attached

        Raises:
            DimensionMismatch: If the vector length differs from ``dimension``
        """
        stored = self._attach(chunk, vector)
        self._add([stored])
        return stored

    def index_many(self, pairs: Iterable[tuple[Chunk, Sequence[float]]]) -> list[Chunk]:
        """
        Store several chunks at once. All vectors are validated before any write.
        """
        stored = [self._attach(chunk, vector) for chunk, vector in pairs]
        if stored:
            self._add(stored)
            logger.debug("Indexed %d chunks", len(stored))
        return stored

    def search(
        self,
        query_vector: Sequence[float],
        threshold: float,
        max_results: int,
        user_id: str,
        document_ids: list[str] | None = None,
    ) -> list[SearchHit]:
        """
        Find the user's chunks most similar to a query vector.

        Args:
            query_vector: Embedding of the query (same model as the chunks)
            threshold: Minimum similarity; 0.0 and negative values are allowed
            max_results: Maximum number of hits to return
            user_id: Only this user's chunks are searched
            document_ids: Optional restriction to these documents
                          (an empty list matches nothing)

        Returns:
            SearchHits sorted by similarity, highest first

        Raises:
            ValueError: If user_id is missing or max_results < 1
            DimensionMismatch: If the query vector has the wrong length
        """
        _require_user(user_id)
        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        check_dimension(query_vector, self.dimension)
        if document_ids is not None and not document_ids:
            return []

        candidates = self._candidates([float(x) for x in query_vector], user_id, document_ids)
        hits = [hit for hit in candidates if hit.similarity >= threshold]
        hits.sort(key=lambda hit: hit.similarity, reverse=True)

        logger.debug(
            "Search for user %s: %d/%d chunks above threshold %.2f",
            user_id,
            len(hits),
            len(candidates),
            threshold,
        )
        return hits[:max_results]


class InMemoryVectorStore(BaseVectorStore):
    """
    Exact, non-persistent vector store.

    Example:
        store = InMemoryVectorStore(dimension=384)
        store.index(chunk, embedder.embed(chunk.text))
        hits = store.search(query_vector, threshold=0.4, max_results=10, user_id="u1")
    """

    def __init__(self, dimension: int = EMBEDDING_DIMENSION):
        super().__init__(dimension)
        self._chunks: dict[str, Chunk] = {}

    def _add(self, chunks: list[Chunk]) -> None:
        for chunk in chunks:
            self._chunks[chunk.id] = chunk

    def _owned(self, user_id: str) -> list[Chunk]:
        return [chunk for chunk in self._chunks.values() if chunk.user_id == user_id]

    def _candidates(self, query_vector, user_id, document_ids):
        chunks = self._owned(user_id)
        if document_ids is not None:
            wanted = set(document_ids)
            chunks = [chunk for chunk in chunks if chunk.document_id in wanted]
        if not chunks:
            return []

        matrix = np.asarray([chunk.embedding for chunk in chunks], dtype=np.float64)
        scores = cosine_scores(query_vector, matrix)
        return [SearchHit(chunk=chunk, similarity=float(score)) for chunk, score in zip(chunks, scores)]

    def get_document_chunks(self, document_id: str, user_id: str) -> list[Chunk]:
        _require_user(user_id)
        chunks = [chunk for chunk in self._owned(user_id) if chunk.document_id == document_id]
        return sorted(chunks, key=lambda chunk: chunk.chunk_index)

    def delete_document(self, document_id: str, user_id: str) -> int:
        doomed = [chunk.id for chunk in self.get_document_chunks(document_id, user_id)]
        for chunk_id in doomed:
            del self._chunks[chunk_id]
        return len(doomed)

    @property
    def count(self) -> int:
        return len(self._chunks)

    def get_stats(self) -> dict:
        return {
            "backend": "memory",
            "chunk_count": self.count,
            "document_count": len({chunk.document_id for chunk in self._chunks.values()}),
            "dimension": self.dimension,
        }


class VectorStore(BaseVectorStore):
    """
    ChromaDB-based vector store for chunk embeddings.

    Chunk text is stored as the Chroma document; everything else about the
    chunk lives in its metadata so a hit can be turned back into a Chunk.

    Example:
        store = VectorStore()
        store.index_many(zip(chunks, vectors))
        hits = store.search(query_vector, threshold=0.4, max_results=10, user_id="u1")
        for hit in hits:
            print(f"Score: {hit.similarity:.2f}, Text: {hit.text[:50]}...")
    """

    def __init__(
        self,
        collection_name: str | None = None,
        persist_directory: str | Path | None = None,
        dimension: int = EMBEDDING_DIMENSION,
        client: ClientAPI | None = None,
    ):
        """
        Initialize the vector store.

        Args:
            collection_name: Name of the collection to use/create
            persist_directory: Where to store the database files
            dimension: Embedding length this collection accepts
            client: Existing Chroma client (e.g. chromadb.EphemeralClient());
                    persist_directory is ignored when given
        """
        super().__init__(dimension)
        self.collection_name = collection_name or COLLECTION_NAME

        if client is None:
            self.persist_directory = Path(persist_directory or CHROMA_DB_DIR)
            self.persist_directory.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=str(self.persist_directory))
        else:
            self.persist_directory = None
        self._client = client

        # Cosine space: distance = 1 - cosine similarity
        self._collection = self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={
                "description": "Study material chunks",
                "hnsw:space": "cosine",
            },
        )

    @staticmethod
    def _where(user_id: str, document_ids: list[str] | None = None) -> dict:
        if document_ids is None:
            return {"user_id": user_id}
        return {"$and": [{"user_id": user_id}, {"document_id": {"$in": list(document_ids)}}]}

    @staticmethod
    def _metadata(chunk: Chunk) -> dict:
        return {
            "document_id": chunk.document_id,
            "user_id": chunk.user_id,
            "chunk_index": chunk.chunk_index,
            "start_char": chunk.start_char,
            "end_char": chunk.end_char,
            "topic": chunk.topic,
            "created_at": chunk.created_at.isoformat(),
        }

    @staticmethod
    def _to_chunk(chunk_id: str, text: str, meta: dict, embedding) -> Chunk:
        return Chunk(
            id=chunk_id,
            document_id=meta["document_id"],
            user_id=meta["user_id"],
            chunk_index=int(meta["chunk_index"]),
            text=text,
            start_char=int(meta["start_char"]),
            end_char=int(meta["end_char"]),
            topic=meta.get("topic", "General"),
            embedding=tuple(float(x) for x in embedding) if embedding is not None else None,
            created_at=datetime.fromisoformat(meta["created_at"]),
        )

    def _add(self, chunks: list[Chunk]) -> None:
        self._collection.add(
            ids=[chunk.id for chunk in chunks],
            embeddings=[list(chunk.embedding) for chunk in chunks],
            documents=[chunk.text for chunk in chunks],
            metadatas=[self._metadata(chunk) for chunk in chunks],
        )

    def _candidates(self, query_vector, user_id, document_ids):
        where = self._where(user_id, document_ids)

        # Chroma rejects n_results larger than the filtered set on some versions
        matching = len(self._collection.get(where=where, include=[])["ids"])
        if matching == 0:
            return []

        results = self._collection.query(
            query_embeddings=[query_vector],
            n_results=matching,
            where=where,
            include=["documents", "metadatas", "distances", "embeddings"],
        )

        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]
        embeddings = results["embeddings"][0] if results.get("embeddings") is not None else [None] * len(ids)

        hits = []
        for chunk_id, text, meta, distance, embedding in zip(ids, documents, metadatas, distances, embeddings):
            similarity = float(np.clip(1.0 - distance, -1.0, 1.0))
            hits.append(
                SearchHit(chunk=self._to_chunk(chunk_id, text, meta, embedding), similarity=similarity)
            )
        return hits

    def get_document_chunks(self, document_id: str, user_id: str) -> list[Chunk]:
        _require_user(user_id)
        result = self._collection.get(
            where=self._where(user_id, [document_id]),
            include=["documents", "metadatas", "embeddings"],
        )
        embeddings = result.get("embeddings")
        if embeddings is None:
            embeddings = [None] * len(result["ids"])

        chunks = [
            self._to_chunk(chunk_id, text, meta, embedding)
            for chunk_id, text, meta, embedding in zip(
                result["ids"], result["documents"], result["metadatas"], embeddings
            )
        ]
        return sorted(chunks, key=lambda chunk: chunk.chunk_index)

    def delete_document(self, document_id: str, user_id: str) -> int:
        _require_user(user_id)
        ids = self._collection.get(where=self._where(user_id, [document_id]), include=[])["ids"]
        if ids:
            self._collection.delete(ids=ids)
            logger.info("Deleted %d chunks of document %s", len(ids), document_id)
        return len(ids)

    @property
    def count(self) -> int:
        """Get the number of chunks in the collection."""
        return self._collection.count()

    def get_stats(self) -> dict:
        """
        Get statistics about the collection.

        Returns:
            Dict with chunk count, distinct documents, etc.
        """
        count = self.count

        documents = set()
        if count > 0:
            result = self._collection.get(include=["metadatas"])
            for meta in result["metadatas"] or []:
                if meta and "document_id" in meta:
                    documents.add(meta["document_id"])

        return {
            "backend": "chromadb",
            "collection_name": self.collection_name,
            "chunk_count": count,
            "document_count": len(documents),
            "dimension": self.dimension,
            "persist_directory": str(self.persist_directory) if self.persist_directory else None,
        }
