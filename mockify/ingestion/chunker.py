"""
Text Chunker - Splits document text into overlapping chunks for embedding.

Key Concepts:
- Chunk Size: How many characters per chunk
- Overlap: How many trailing characters of a chunk are repeated at the
  start of the next one, so context is not lost at chunk boundaries
- Cascading separators: a chunk preferably ends on a paragraph break, then
  a line break, then a sentence end, then any whitespace, and only as a last
  resort in the middle of a word

Example:
    Text: "ABCDEFGHIJ" (10 chars)
    Chunk size: 5, Overlap: 2

    Chunk 0: "ABCDE"   chars [0, 5)
    Chunk 1: "DEFGH"   chars [3, 8)   <- 'DE' overlaps with chunk 0
    Chunk 2: "GHIJ"    chars [6, 10)  <- 'GH' overlaps with chunk 1

Every chunk is an exact slice of the sanitized text, so ``start_char`` and
``end_char`` can be used to locate it in the stored document.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from mockify.config import (
    ADAPTIVE_MEDIUM_DOCUMENT_CHARS,
    ADAPTIVE_SMALL_DOCUMENT_CHARS,
    CHUNK_STRATEGIES,
)
from mockify.exceptions import ChunkingFailure

logger = logging.getLogger(__name__)

# Null bytes and control characters other than tab (\x09), newline (\x0a)
# and carriage return (\x0d, normalized below)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_INVISIBLE_CHARS = re.compile(r"[\ufeff\u2028\u2029]")

_SENTENCE_END = re.compile(r"[.!?]\s")
_WHITESPACE = re.compile(r"\s")


def sanitize_text(text: str) -> str:
    """
    Remove characters that corrupt storage and normalize line endings.

    Strips null bytes, control characters (keeping tab and newline), byte
    order marks and Unicode line/paragraph separators, converts ``\\r\\n``
    and ``\\r`` to ``\\n`` and trims the ends. Idempotent.
    """
    text = _CONTROL_CHARS.sub("", text)
    text = _INVISIBLE_CHARS.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.strip()


@dataclass(frozen=True)
class ChunkStrategy:
    """
    Chunk size and overlap, both in characters.

    Raises:
        ValueError: If size is not positive or overlap is not in [0, size)
    """

    size: int
    overlap: int
    name: str = "custom"

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError("Chunk size must be positive")
        if self.overlap < 0:
            raise ValueError("Overlap cannot be negative")
        if self.overlap >= self.size:
            raise ValueError("Overlap must be less than chunk size")

    @property
    def step(self) -> int:
        """Distance between the starts of two full-size adjacent chunks."""
        return self.size - self.overlap

    @classmethod
    def named(cls, name: str) -> "ChunkStrategy":
        """Look up one of the configured strategies (small, medium, large, embedding)."""
        try:
            size, overlap = CHUNK_STRATEGIES[name]
        except KeyError:
            raise ValueError(
                f"Unknown chunk strategy '{name}'. Choose from: {', '.join(CHUNK_STRATEGIES)}"
            ) from None
        return cls(size=size, overlap=overlap, name=name)


def adaptive_strategy(text_length: int) -> ChunkStrategy:
    """
    Pick a strategy from the document length.

    Short documents get large chunks (more context each); bulk documents get
    small chunks so search stays precise.
    """
    if text_length < ADAPTIVE_SMALL_DOCUMENT_CHARS:
        return ChunkStrategy.named("large")
    if text_length < ADAPTIVE_MEDIUM_DOCUMENT_CHARS:
        return ChunkStrategy.named("medium")
    return ChunkStrategy.named("small")


@dataclass
class TextChunk:
    """
    Represents a single chunk of text with its position.

    Attributes:
        text: The chunk content (exact slice of the source text)
        chunk_index: Position of this chunk (0-indexed)
        start_char: Character position where chunk starts in the source text
        end_char: Character position where chunk ends (exclusive)
    """

    text: str
    chunk_index: int
    start_char: int
    end_char: int

    @property
    def char_count(self) -> int:
        """Return the number of characters in this chunk."""
        return self.end_char - self.start_char

    @property
    def word_count(self) -> int:
        """Return approximate word count."""
        return len(self.text.split())


def _last_literal(separator: str) -> Callable[[str, int, int], int | None]:
    def find(text: str, floor: int, limit: int) -> int | None:
        idx = text.rfind(separator, floor, limit)
        return idx + len(separator) if idx != -1 else None

    return find


def _last_match(pattern: re.Pattern) -> Callable[[str, int, int], int | None]:
    def find(text: str, floor: int, limit: int) -> int | None:
        end = None
        for match in pattern.finditer(text, floor, limit):
            end = match.end()
        return end

    return find


# Priority order: paragraph, line, sentence, word
SEPARATORS = (
    _last_literal("\n\n"),
    _last_literal("\n"),
    _last_match(_SENTENCE_END),
    _last_match(_WHITESPACE),
)


class TextChunker:
    """
    Splits text into overlapping chunks for embedding.

    Each chunk after the first starts exactly ``overlap`` characters before
    the previous chunk's end. A chunk's end is chosen by the cascading
    separators inside the window ``(start + max(overlap, size // 2), start + size]``
    so boundaries land on meaningful breaks without producing tiny chunks.

    Example:
        chunker = TextChunker(ChunkStrategy.named("medium"))
        chunks = chunker.chunk_text("Your long text here...")
        for chunk in chunks:
            print(f"Chunk {chunk.chunk_index}: {chunk.char_count} chars")
    """

    def __init__(self, strategy: ChunkStrategy | None = None):
        """
        Initialize the chunker.

        Args:
            strategy: Fixed size/overlap policy. If None, the adaptive policy
                      picks one per document from its length.
        """
        self.strategy = strategy

    def strategy_for(self, text: str) -> ChunkStrategy:
        return self.strategy or adaptive_strategy(len(text))

    def _find_end(self, text: str, start: int, strategy: ChunkStrategy) -> int:
        limit = start + strategy.size
        if limit >= len(text):
            return len(text)

        floor = start + max(strategy.overlap, strategy.size // 2)
        for find in SEPARATORS:
            end = find(text, floor, limit)
            if end is not None:
                return end

        # No separator in the window: cut mid-word
        return limit

    def chunk_text(self, text: str) -> list[TextChunk]:
        """
        Sanitize and split text into overlapping chunks.

        Args:
            text: The text to chunk

        Returns:
            List of TextChunk objects covering the sanitized text with no gaps

        Raises:
            ChunkingFailure: If nothing is left to chunk after sanitizing
        """
        text = sanitize_text(text)
        if not text:
            raise ChunkingFailure("No text left to chunk after sanitizing")

        strategy = self.strategy_for(text)
        logger.debug(
            "Splitting %d chars into chunks (size=%d, overlap=%d)",
            len(text),
            strategy.size,
            strategy.overlap,
        )

        chunks: list[TextChunk] = []
        start = 0
        while True:
            end = self._find_end(text, start, strategy)
            chunks.append(
                TextChunk(
                    text=text[start:end],
                    chunk_index=len(chunks),
                    start_char=start,
                    end_char=end,
                )
            )
            if end >= len(text):
                break
            start = end - strategy.overlap

        logger.info(
            "Created %d chunks from %d chars (strategy: %s)",
            len(chunks),
            len(text),
            strategy.name,
        )
        return chunks


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def chunk_text(text: str, strategy: ChunkStrategy | None = None) -> list[str]:
    """
    Simple function to chunk text and return just the text strings.

    Example:
        chunks = chunk_text("Your long text...", ChunkStrategy(500, 100))
        print(f"Created {len(chunks)} chunks")
    """
    return [chunk.text for chunk in TextChunker(strategy).chunk_text(text)]


def estimate_chunks(text_length: int, strategy: ChunkStrategy | None = None) -> int:
    """
    Estimate how many chunks will be created from text of given length.

    Exact for text with no separators; separator-aligned boundaries can only
    add chunks.
    """
    if text_length <= 0:
        return 0
    strategy = strategy or adaptive_strategy(text_length)
    if text_length <= strategy.size:
        return 1
    return -(-(text_length - strategy.size) // strategy.step) + 1
