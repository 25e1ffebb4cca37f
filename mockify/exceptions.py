"""
Exception hierarchy for the Mockify retrieval core.

Every error carries a human-readable ``user_message`` for the upload/search
surfaces and a ``retryable`` flag so callers can decide between asking the
user to fix their input and simply trying again later.
"""

from typing import Any


class MockifyError(Exception):
    """Base exception for all retrieval-core errors."""

    retryable = False
    user_message = "Something went wrong while processing your material."

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Developer-facing error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UnsupportedType(MockifyError):
    """Raised when the uploaded file is not a format the extractor reads."""

    user_message = "This file type is not supported. Please upload a PDF or plain text file."

    def __init__(self, content_type: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["content_type"] = content_type
        super().__init__(f"Unsupported content type: {content_type}", details)


class InsufficientContent(MockifyError):
    """Raised when extraction yields too little text (scanned, encrypted, bad encoding)."""

    user_message = (
        "We could not read enough text from this file. It may contain scanned "
        "images and needs OCR processing."
    )

    def __init__(
        self,
        message: str,
        extracted_length: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["extracted_length"] = extracted_length
        super().__init__(message, details)


class EmbeddingUnavailable(MockifyError):
    """Raised when the embedding backend fails (quota, auth, network, timeout)."""

    retryable = True
    user_message = "Our search service is temporarily unavailable. Please try again shortly."


class DimensionMismatch(MockifyError):
    """Raised when a vector's length differs from the configured dimension."""

    user_message = "Search index is misconfigured. Please contact support."

    def __init__(self, expected: int, actual: int, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details.update(expected=expected, actual=actual)
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}", details
        )


class ChunkingFailure(MockifyError):
    """Raised when a document produces zero chunks."""

    user_message = "This file did not contain any usable text."


class DocumentExists(MockifyError):
    """Raised when a document id is already indexed for the same user."""

    user_message = "This document has already been uploaded. Delete it first to upload it again."

    def __init__(self, document_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["document_id"] = document_id
        super().__init__(f"Document {document_id} is already indexed", details)
