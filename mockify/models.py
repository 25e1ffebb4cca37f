"""
Shared records passed between ingestion, the vector index and retrieval.

Key Concepts:
- Document: an uploaded study material and its processing status
- Chunk: one indexed slice of a document's text, with its embedding
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Processing status of an uploaded document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed status moves; completed and failed are terminal
_TRANSITIONS = {
    DocumentStatus.PENDING: {DocumentStatus.PROCESSING},
    DocumentStatus.PROCESSING: {DocumentStatus.COMPLETED, DocumentStatus.FAILED},
    DocumentStatus.COMPLETED: set(),
    DocumentStatus.FAILED: set(),
}


@dataclass
class Document:
    """
    An uploaded study material owned by exactly one user.

    Attributes:
        id: Unique document identifier
        user_id: Owning user
        topic: Topic label shown next to search results
        raw_text: Sanitized extracted text (None until extraction succeeds)
        status: Processing status
        created_at: Upload timestamp (UTC)
    """

    id: str
    user_id: str
    topic: str = "General"
    raw_text: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)

    def mark(self, status: DocumentStatus) -> None:
        """
        Move the document to a new status.

        Raises:
            ValueError: If the move is not allowed (e.g. out of a terminal state)
        """
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Document {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status

    @property
    def is_terminal(self) -> bool:
        return self.status in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous slice of a document's text, as persisted in the vector index.

    ``text`` equals ``raw_text[start_char:end_char]`` of the parent document.
    The embedding is attached once at indexing time and never changes.
    """

    document_id: str
    user_id: str
    chunk_index: int
    text: str
    start_char: int
    end_char: int
    topic: str = "General"
    embedding: tuple[float, ...] | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def char_count(self) -> int:
        return self.end_char - self.start_char

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def to_record(self) -> dict:
        """Return the logical persisted record shape."""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "chunk_index": self.chunk_index,
            "text": self.text,
            "embedding": list(self.embedding) if self.embedding is not None else None,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "char_count": self.char_count,
            "word_count": self.word_count,
            "topic": self.topic,
            "created_at": self.created_at.isoformat(),
        }
