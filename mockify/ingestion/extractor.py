"""
Text Extractor - Pulls plain text out of uploaded study materials.

This module handles PDF and plain-text uploads. PDFs are read with pymupdf
(fitz), page by page, and the page texts are joined with a blank line in page
order.

Key Concepts:
- Images and diagrams are not extracted (text only)
- A PDF made of scanned pages has (almost) no text layer, so extraction
  "succeeds" with a handful of characters. We treat anything shorter than
  MIN_TEXT_LENGTH as InsufficientContent so callers can route the file to OCR
  instead of indexing near-empty text.
- No side effects: nothing is persisted here
"""

import logging
import mimetypes
import re
from pathlib import Path

import fitz  # pymupdf - the library is called 'fitz' historically

from mockify.config import MIN_TEXT_LENGTH, SUPPORTED_CONTENT_TYPES
from mockify.exceptions import InsufficientContent, UnsupportedType

logger = logging.getLogger(__name__)


def normalize_content_type(content_type: str | None) -> str:
    """Lower-case media type without parameters ('text/plain; charset=utf-8' -> 'text/plain')."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


class TextExtractor:
    """
    Extracts a single plain-text string from a document's bytes.

    Example:
        extractor = TextExtractor()
        text = extractor.extract(pdf_bytes, "application/pdf")
        print(text[:500])
    """

    def __init__(self, clean_text: bool = True, min_text_length: int = MIN_TEXT_LENGTH):
        """
        Initialize the extractor.

        Args:
            clean_text: If True, collapse blank runs and drop page-number lines
            min_text_length: Minimum characters for the result to count as readable
        """
        self.clean_text = clean_text
        self.min_text_length = min_text_length

    def _clean_extracted_text(self, text: str) -> str:
        """
        Clean extracted text by removing common artifacts.

        This handles issues like:
        - Multiple consecutive newlines
        - Extra whitespace
        - Page numbers on their own line
        """
        if not self.clean_text:
            return text

        # Replace multiple newlines with double newline (paragraph break)
        text = re.sub(r"\n{3,}", "\n\n", text)

        # Replace multiple spaces with single space
        text = re.sub(r" {2,}", " ", text)

        # Remove lines that are just numbers (likely page numbers)
        lines = text.split("\n")
        cleaned_lines = [
            line for line in lines if not (line.strip().isdigit() and len(line.strip()) < 4)
        ]
        return "\n".join(cleaned_lines).strip()

    def _extract_pdf(self, raw_bytes: bytes) -> str:
        try:
            doc = fitz.open(stream=raw_bytes, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise UnsupportedType(
                "application/pdf", {"reason": f"Failed to open PDF: {e}"}
            ) from e

        with doc:
            if doc.needs_pass:
                raise InsufficientContent("PDF is encrypted or password protected")

            pages = []
            for page in doc:
                cleaned = self._clean_extracted_text(page.get_text())
                if cleaned:  # Only keep pages with a text layer
                    pages.append(cleaned)

            logger.debug("Read %d/%d pages with text", len(pages), doc.page_count)

        return "\n\n".join(pages)

    def _extract_plain_text(self, raw_bytes: bytes) -> str:
        try:
            text = raw_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InsufficientContent(
                "Text file is not valid UTF-8", details={"position": e.start}
            ) from e
        return self._clean_extracted_text(text)

    def extract(self, raw_bytes: bytes, content_type: str) -> str:
        """
        Extract all text from a document.

        Args:
            raw_bytes: The uploaded file contents
            content_type: Declared MIME type of the upload

        Returns:
            The document's text

        Raises:
            UnsupportedType: If the content type is not PDF/plain text, or the
                             bytes are not a readable PDF
            InsufficientContent: If the document is encrypted, badly encoded or
                                 yields fewer than ``min_text_length`` characters
        """
        media_type = normalize_content_type(content_type)
        if media_type not in SUPPORTED_CONTENT_TYPES:
            raise UnsupportedType(content_type or "unknown")

        logger.info(
            "Extracting text from %s (%.2f MB)", media_type, len(raw_bytes) / 1024 / 1024
        )

        if media_type == "application/pdf":
            text = self._extract_pdf(raw_bytes)
        else:
            text = self._extract_plain_text(raw_bytes)

        length = len(text.strip())
        if length < self.min_text_length:
            logger.warning(
                "Extraction yielded only %d chars; document likely needs OCR", length
            )
            raise InsufficientContent(
                "Extracted text is too short; the document may contain scanned "
                "images, be protected, or use an unsupported encoding",
                extracted_length=length,
            )

        logger.info("Extracted %d characters", len(text))
        return text

    def extract_file(self, path: str | Path) -> str:
        """
        Extract text from a file on disk, guessing its type from the suffix.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        return self.extract(path.read_bytes(), guess_content_type(path))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def guess_content_type(path: str | Path) -> str:
    """Guess a MIME type from a filename ('notes.md' counts as plain text)."""
    path = Path(path)
    if path.suffix.lower() in (".txt", ".md"):
        return "text/plain"
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or "application/octet-stream"


def extract_text(raw_bytes: bytes, content_type: str, clean: bool = True) -> str:
    """
    Simple function to extract all text from a document.

    Example:
        text = extract_text(pdf_bytes, "application/pdf")
    """
    return TextExtractor(clean_text=clean).extract(raw_bytes, content_type)
