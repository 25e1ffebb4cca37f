"""Tests for the FastAPI web interface."""

import pytest
from fastapi.testclient import TestClient

from mockify.embeddings.vector_store import InMemoryVectorStore
from mockify.ingestion.pipeline import IngestionPipeline
from mockify.interfaces.web_app import create_app

from .conftest import BIOLOGY_TEXT, HISTORY_TEXT, FakeEmbedder, make_pdf_bytes

USER = {"X-User-Id": "student-1"}
OTHER_USER = {"X-User-Id": "student-2"}
FULL_SENTENCE = (
    "Chlorophyll in the leaves absorbs light energy. "
    "Carbon dioxide and water are converted into glucose and oxygen."
)


def upload(client, text=BIOLOGY_TEXT, headers=USER, content_type="text/plain", **params):
    return client.post(
        "/api/documents",
        content=text.encode() if isinstance(text, str) else text,
        headers={**headers, "Content-Type": content_type},
        params=params,
    )


# ── Health ───────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health_ok(self, test_client):
        resp = test_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "total_chunks": 0}

    def test_counts_indexed_chunks(self, test_client):
        body = upload(test_client).json()
        assert test_client.get("/health").json()["total_chunks"] == body["chunk_count"]


# ── Authentication ──────────────────────────────────────────────────────────


class TestUserHeader:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("post", "/api/documents"),
            ("post", "/api/search"),
            ("post", "/api/context"),
            ("get", "/api/documents/doc-1/chunks"),
            ("delete", "/api/documents/doc-1"),
        ],
    )
    def test_missing_header_is_rejected(self, test_client, method, path):
        kwargs = {"json": {"query": "cells"}} if path in ("/api/search", "/api/context") else {}
        resp = getattr(test_client, method)(path, **kwargs)
        assert resp.status_code == 401

    def test_blank_header_is_rejected(self, test_client):
        resp = test_client.post("/api/search", json={"query": "cells"}, headers={"X-User-Id": "  "})
        assert resp.status_code == 401


# ── POST /api/documents ─────────────────────────────────────────────────────


class TestUpload:
    def test_text_upload(self, test_client):
        resp = upload(test_client, topic="Biology", document_id="bio-notes")
        assert resp.status_code == 201

        body = resp.json()
        assert body["document_id"] == "bio-notes"
        assert body["status"] == "completed"
        assert body["chunk_count"] >= 1
        assert body["failed_chunks"] == []
        assert body["is_partial"] is False

    def test_generates_document_id(self, test_client):
        body = upload(test_client).json()
        assert body["document_id"]

    def test_pdf_upload(self, test_client):
        pdf = make_pdf_bytes(
            ["Cells are the basic unit of life.\nAll organisms are made of cells.",
             "Tissues are groups of similar cells\nworking together."]
        )
        resp = upload(test_client, pdf, content_type="application/pdf")
        assert resp.status_code == 201

    def test_unsupported_type(self, test_client):
        resp = upload(test_client, b"\x89PNG\r\n\x1a\n", content_type="image/png")

        assert resp.status_code == 415
        assert "error" in resp.json()
        assert test_client.get("/health").json()["total_chunks"] == 0

    def test_insufficient_content(self, test_client):
        resp = upload(test_client, "Too short.")
        assert resp.status_code == 422
        assert resp.json()["error"]

    def test_duplicate_document_id_is_rejected(self, test_client):
        first = upload(test_client, document_id="doc-1").json()

        resp = upload(test_client, document_id="doc-1")
        assert resp.status_code == 409
        assert resp.json()["error"]

        chunks = test_client.get("/api/documents/doc-1/chunks", headers=USER).json()["chunks"]
        assert [c["chunk_index"] for c in chunks] == list(range(first["chunk_count"]))

        body = test_client.post(
            "/api/search", json={"query": FULL_SENTENCE, "threshold": -1.0}, headers=USER
        ).json()
        assert body["results"][0]["total_matched_chunks"] == first["chunk_count"]

    def test_too_large(self, test_client, monkeypatch):
        monkeypatch.setattr("mockify.interfaces.web_app.MAX_UPLOAD_BYTES", 100)
        resp = upload(test_client, BIOLOGY_TEXT)
        assert resp.status_code == 413


# ── POST /api/search ────────────────────────────────────────────────────────


class TestSearch:
    @pytest.fixture()
    def client(self, test_client):
        upload(test_client, BIOLOGY_TEXT, topic="Biology", document_id="bio")
        upload(test_client, HISTORY_TEXT, topic="History", document_id="hist")
        upload(test_client, BIOLOGY_TEXT, headers=OTHER_USER, topic="Biology", document_id="bio-2")
        return test_client

    def test_finds_relevant_document(self, client):
        resp = client.post(
            "/api/search",
            json={"query": "French Revolution Bastille", "threshold": 0.1},
            headers=USER,
        )
        assert resp.status_code == 200

        body = resp.json()
        assert body["success"] is True
        assert body["query"] == "French Revolution Bastille"
        assert body["count"] == len(body["results"]) >= 1

        top = body["results"][0]
        assert top["document_id"] == "hist"
        assert top["topic"] == "History"
        assert 0 <= top["similarity_percent"] <= 100
        assert top["matched_chunks"]
        assert top["preview"]

    def test_scoped_to_caller(self, client):
        body = client.post(
            "/api/search", json={"query": "photosynthesis", "threshold": -1.0}, headers=OTHER_USER
        ).json()
        assert {r["document_id"] for r in body["results"]} == {"bio-2"}

    def test_restricts_to_documents(self, client):
        body = client.post(
            "/api/search",
            json={"query": "photosynthesis", "threshold": -1.0, "document_ids": ["hist"]},
            headers=USER,
        ).json()
        assert [r["document_id"] for r in body["results"]] == ["hist"]

    def test_limit(self, client):
        body = client.post(
            "/api/search", json={"query": "energy", "threshold": -1.0, "limit": 1}, headers=USER
        ).json()
        assert body["count"] == 1

    def test_best_effort(self, client):
        strict = client.post(
            "/api/search", json={"query": "Photosynthesis in plants", "threshold": 0.99}, headers=USER
        ).json()
        loose = client.post(
            "/api/search",
            json={"query": "Photosynthesis in plants", "threshold": 0.99, "best_effort": True},
            headers=USER,
        ).json()

        assert strict["count"] == 0
        assert loose["count"] >= 1

    @pytest.mark.parametrize("query", ["", "   "])
    def test_empty_query(self, client, query):
        resp = client.post("/api/search", json={"query": query}, headers=USER)
        assert resp.status_code == 422

    @pytest.mark.parametrize("payload", [{"query": "x", "threshold": 1.5}, {"query": "x", "limit": 0}])
    def test_out_of_range_parameters(self, client, payload):
        assert client.post("/api/search", json=payload, headers=USER).status_code == 422

    def test_embedding_unavailable(self):
        embedder = FakeEmbedder(fail_on={"photosynthesis"})
        client = TestClient(create_app(pipeline=IngestionPipeline(embedder, InMemoryVectorStore(256))))

        resp = client.post("/api/search", json={"query": "photosynthesis"}, headers=USER)

        assert resp.status_code == 503
        assert resp.json()["error"]


# ── Chunks / delete ─────────────────────────────────────────────────────────


class TestDocumentChunks:
    def test_lists_chunks_in_order(self, test_client):
        upload(test_client, document_id="bio")
        resp = test_client.get("/api/documents/bio/chunks", headers=USER)
        assert resp.status_code == 200

        body = resp.json()
        assert body["document_id"] == "bio"
        assert body["count"] == len(body["chunks"])
        assert [c["chunk_index"] for c in body["chunks"]] == list(range(body["count"]))
        assert all("embedding" not in c for c in body["chunks"])

    def test_unknown_document(self, test_client):
        assert test_client.get("/api/documents/missing/chunks", headers=USER).status_code == 404

    def test_other_users_document_is_hidden(self, test_client):
        upload(test_client, document_id="bio")
        assert test_client.get("/api/documents/bio/chunks", headers=OTHER_USER).status_code == 404

    def test_delete(self, test_client):
        count = upload(test_client, document_id="bio").json()["chunk_count"]

        resp = test_client.delete("/api/documents/bio", headers=USER)
        assert resp.status_code == 200
        assert resp.json() == {"document_id": "bio", "deleted_chunks": count}
        assert test_client.get("/api/documents/bio/chunks", headers=USER).status_code == 404

    def test_delete_unknown(self, test_client):
        assert test_client.delete("/api/documents/missing", headers=USER).status_code == 404


# ── POST /api/context ───────────────────────────────────────────────────────


class TestContext:
    def test_builds_context(self, test_client):
        upload(test_client, topic="Biology")
        body = test_client.post(
            "/api/context", json={"query": FULL_SENTENCE}, headers=USER
        ).json()

        assert body["has_context"] is True
        assert body["context"].startswith("[Context 1] (Biology - ")

    def test_no_documents(self, test_client):
        body = test_client.post("/api/context", json={"query": "anything"}, headers=USER).json()
        assert body == {"query": "anything", "has_context": False, "context": ""}
