"""Shared fixtures for the Mockify test suite."""

import hashlib
import threading
import uuid

import chromadb
import fitz
import pytest
from fastapi.testclient import TestClient

from mockify.embeddings.embedder import BaseEmbedder
from mockify.embeddings.vector_store import InMemoryVectorStore, VectorStore
from mockify.exceptions import EmbeddingUnavailable
from mockify.ingestion.pipeline import IngestionPipeline
from mockify.models import Chunk

FAKE_DIMENSION = 256

# ---------------------------------------------------------------------------
# Sample study material used across tests
# ---------------------------------------------------------------------------

BIOLOGY_TEXT = (
    "Photosynthesis is the process by which green plants use sunlight to make food.\n\n"
    "Chlorophyll in the leaves absorbs light energy. Carbon dioxide and water are "
    "converted into glucose and oxygen.\n\n"
    "Cellular respiration releases the energy stored in glucose. It happens in the "
    "mitochondria of every living cell."
)

HISTORY_TEXT = (
    "The French Revolution began in 1789 with the storming of the Bastille.\n\n"
    "It ended the absolute monarchy of Louis XVI and spread ideas of liberty, "
    "equality and fraternity across Europe."
)


# ---------------------------------------------------------------------------
# Fake embedder that never loads a model or touches the network
# ---------------------------------------------------------------------------


class FakeEmbedder(BaseEmbedder):
    """
    Deterministic bag-of-words embedder.

    Each lower-cased word adds 1.0 to the bucket picked by its md5 hash, so
    texts sharing words have a high cosine similarity. Texts containing any
    string from ``fail_on`` raise EmbeddingUnavailable.
    """

    model_name = "fake-hash"

    def __init__(self, dimension: int = FAKE_DIMENSION, fail_on: set[str] | None = None, **kwargs):
        kwargs.setdefault("timeout", None)
        kwargs.setdefault("retry_initial_wait", 0)
        kwargs.setdefault("retry_max_wait", 0)
        super().__init__(dimension=dimension, **kwargs)
        self.fail_on = fail_on or set()
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def _encode(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingUnavailable("fake backend refused the text")

        vector = [0.0] * self.dimension
        for word in text.lower().split():
            bucket = int(hashlib.md5(word.strip(".,!?").encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        return vector


def make_chunk(
    document_id: str = "doc-1",
    user_id: str = "user-1",
    chunk_index: int = 0,
    text: str = "some chunk text",
    topic: str = "General",
) -> Chunk:
    """Chunk without an embedding, ready to be indexed."""
    return Chunk(
        document_id=document_id,
        user_id=user_id,
        chunk_index=chunk_index,
        text=text,
        start_char=chunk_index * 100,
        end_char=chunk_index * 100 + len(text),
        topic=topic,
    )


def unit_vector(position: int, dimension: int = FAKE_DIMENSION, sign: float = 1.0) -> list[float]:
    vector = [0.0] * dimension
    vector[position] = sign
    return vector


def make_pdf_bytes(pages: list[str]) -> bytes:
    """Build a PDF with one page per entry (empty string = blank page)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture()
def memory_store():
    return InMemoryVectorStore(dimension=FAKE_DIMENSION)


@pytest.fixture()
def chroma_store():
    """ChromaDB store backed by an in-memory client and a throwaway collection."""
    return VectorStore(
        collection_name=f"test_{uuid.uuid4().hex}",
        dimension=FAKE_DIMENSION,
        client=chromadb.EphemeralClient(),
    )


@pytest.fixture(params=["memory", "chroma"])
def store(request):
    """Every vector store implementation, to check they behave the same."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture()
def pipeline(fake_embedder, memory_store):
    return IngestionPipeline(fake_embedder, memory_store)


@pytest.fixture()
def test_client(pipeline):
    """
    TestClient wired to the fake embedder and in-memory store.

    No model download, no ChromaDB files, no Ollama.
    """
    from mockify.interfaces.web_app import create_app

    app = create_app(pipeline=pipeline)
    yield TestClient(app)
