"""
Configuration settings for the Mockify retrieval core.

This file centralizes all tunable parameters so ingestion and search can be
adjusted in one place. Every component also accepts these values as explicit
constructor arguments, so tests and callers can override them without
touching module state.
"""

from pathlib import Path

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Base directory (where this project lives)
BASE_DIR = Path(__file__).parent.parent

# Data storage directory
DATA_DIR = BASE_DIR / "data"

# ChromaDB storage location
CHROMA_DB_DIR = DATA_DIR / "chroma_db"

# Collection holding every user's chunks (rows are scoped by user_id metadata)
COLLECTION_NAME = "document_chunks"

# =============================================================================
# EXTRACTION CONFIGURATION
# =============================================================================

# Below this many characters the document is treated as scanned/encrypted
# and must go through OCR instead.
MIN_TEXT_LENGTH = 50

SUPPORTED_CONTENT_TYPES = ("application/pdf", "text/plain")

# Upload limit enforced by the HTTP surface
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# =============================================================================
# CHUNKING CONFIGURATION
# =============================================================================

# (size, overlap) pairs in characters
#   small:     precise search, used for bulk documents
#   medium:    general purpose
#   large:     more context per chunk, used for short documents
#   embedding: sized for sentence-transformer input limits
CHUNK_STRATEGIES: dict[str, tuple[int, int]] = {
    "small": (500, 100),
    "medium": (1000, 200),
    "large": (2000, 400),
    "embedding": (1500, 300),
}

# Adaptive sizing: documents shorter than the first limit get large chunks,
# shorter than the second get medium chunks, everything else small chunks.
ADAPTIVE_SMALL_DOCUMENT_CHARS = 5_000
ADAPTIVE_MEDIUM_DOCUMENT_CHARS = 50_000

# =============================================================================
# EMBEDDING CONFIGURATION
# =============================================================================

# Local sentence-transformers model, 384-dimensional vectors
EMBEDDING_MODEL = "all-MiniLM-L6-v2"
EMBEDDING_DIMENSION = 384

# Ollama-served embedding model, 768-dimensional vectors
OLLAMA_BASE_URL = "http://localhost:11434"
OLLAMA_EMBEDDING_MODEL = "nomic-embed-text"
OLLAMA_EMBEDDING_DIMENSION = 768

# Text beyond this is cut before embedding (~2000 tokens)
EMBEDDING_MAX_INPUT_CHARS = 8000

# Cap on in-flight embedding requests during ingestion
EMBEDDING_MAX_WORKERS = 4

# Seconds before a single embedding call is abandoned as unavailable
EMBEDDING_TIMEOUT_SECONDS = 10.0

# Attempts per chunk (first try included) and backoff bounds in seconds
EMBEDDING_RETRY_ATTEMPTS = 2
EMBEDDING_RETRY_INITIAL_WAIT = 1.0
EMBEDDING_RETRY_MAX_WAIT = 5.0

# =============================================================================
# RETRIEVAL CONFIGURATION
# =============================================================================

# Semantic similarity between a short query and a chunk rarely exceeds 0.6,
# so search uses a permissive default.
DEFAULT_SIMILARITY_THRESHOLD = 0.4

# Number of documents returned by a search
DEFAULT_MAX_RESULTS = 10

# Chunk hits fetched per requested document before grouping
CHUNK_FETCH_MULTIPLIER = 3

# Matched chunks kept per document for presentation
CHUNKS_PER_DOCUMENT = 3

# Context assembly for question generation
CONTEXT_SIMILARITY_THRESHOLD = 0.3
CONTEXT_MAX_CHUNKS = 30

# Label used when a chunk has no topic
DEFAULT_SOURCE_LABEL = "Study Material"
