"""Tests for the Document and Chunk records."""

import dataclasses

import pytest

from mockify.models import Chunk, Document, DocumentStatus

from .conftest import make_chunk


class TestDocumentStatus:
    def test_starts_pending(self):
        document = Document(id="d", user_id="u")
        assert document.status == DocumentStatus.PENDING
        assert not document.is_terminal

    @pytest.mark.parametrize("final", [DocumentStatus.COMPLETED, DocumentStatus.FAILED])
    def test_happy_path(self, final):
        document = Document(id="d", user_id="u")
        document.mark(DocumentStatus.PROCESSING)
        document.mark(final)

        assert document.status == final
        assert document.is_terminal

    def test_cannot_skip_processing(self):
        document = Document(id="d", user_id="u")
        with pytest.raises(ValueError):
            document.mark(DocumentStatus.COMPLETED)

    @pytest.mark.parametrize("final", [DocumentStatus.COMPLETED, DocumentStatus.FAILED])
    def test_terminal_states_are_final(self, final):
        document = Document(id="d", user_id="u")
        document.mark(DocumentStatus.PROCESSING)
        document.mark(final)

        for status in DocumentStatus:
            with pytest.raises(ValueError):
                document.mark(status)
        assert document.status == final

    def test_status_values(self):
        assert DocumentStatus.COMPLETED.value == "completed"
        assert DocumentStatus("failed") is DocumentStatus.FAILED


class TestChunk:
    def test_counts(self):
        chunk = make_chunk(chunk_index=2, text="Plants make food from sunlight")
        assert chunk.char_count == len("Plants make food from sunlight")
        assert chunk.word_count == 5

    def test_frozen(self):
        chunk = make_chunk()
        with pytest.raises(dataclasses.FrozenInstanceError):
            chunk.text = "changed"

    def test_unique_ids(self):
        assert make_chunk().id != make_chunk().id

    def test_to_record(self):
        chunk = dataclasses.replace(make_chunk(text="abc", topic="Biology"), embedding=(0.5, 0.25))
        record = chunk.to_record()

        assert set(record) == {
            "id", "document_id", "user_id", "chunk_index", "text", "embedding",
            "start_char", "end_char", "char_count", "word_count", "topic", "created_at",
        }
        assert record["embedding"] == [0.5, 0.25]
        assert record["char_count"] == 3
        assert record["topic"] == "Biology"
        assert isinstance(record["created_at"], str)

    def test_record_without_embedding(self):
        assert Chunk("d", "u", 0, "t", 0, 1).to_record()["embedding"] is None
