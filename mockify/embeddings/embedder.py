"""
Embedder - Converts text to vector embeddings.

This module handles the conversion of text into fixed-length numerical
vectors. The same model must be used for indexing chunks and for embedding
search queries, otherwise similarities are meaningless.

Two backends are provided:
- Embedder: local sentence-transformers model (all-MiniLM-L6-v2, 384 dims)
- OllamaEmbedder: embedding model served by an Ollama instance (768 dims)

Failure policy:
- Any backend failure (model download, network, quota, auth, timeout) is
  raised as EmbeddingUnavailable, which is retryable
- A vector of the wrong length raises DimensionMismatch
- We never substitute a zero vector for a failed or empty input

Example:
    embedder = Embedder()

    # Single text
    vector = embedder.embed("What is photosynthesis?")
    print(len(vector))  # 384

    # Many chunks, failures isolated per chunk
    batch = embedder.embed_many(["chunk 1", "chunk 2", "chunk 3"])
    print(batch.failed_indices)
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Sequence

import httpx
import numpy as np
import ollama
from sentence_transformers import SentenceTransformer
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from mockify.config import (
    EMBEDDING_DIMENSION,
    EMBEDDING_MAX_INPUT_CHARS,
    EMBEDDING_MAX_WORKERS,
    EMBEDDING_MODEL,
    EMBEDDING_RETRY_ATTEMPTS,
    EMBEDDING_RETRY_INITIAL_WAIT,
    EMBEDDING_RETRY_MAX_WAIT,
    EMBEDDING_TIMEOUT_SECONDS,
    OLLAMA_BASE_URL,
    OLLAMA_EMBEDDING_DIMENSION,
    OLLAMA_EMBEDDING_MODEL,
)
from mockify.embeddings.similarity import check_dimension, cosine
from mockify.exceptions import EmbeddingUnavailable

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingBatch:
    """
    Result of embedding many texts.

    Attributes:
        vectors: Embedding per input index that succeeded
        failures: Reason per input index that failed
    """

    vectors: dict[int, list[float]] = field(default_factory=dict)
    failures: dict[int, str] = field(default_factory=dict)

    @property
    def failed_indices(self) -> list[int]:
        return sorted(self.failures)

    @property
    def all_failed(self) -> bool:
        return not self.vectors and bool(self.failures)


class BaseEmbedder(ABC):
    """
    Common embedding client behaviour: validation, timeouts, retries, batching.

    Subclasses only implement ``_encode`` and raise EmbeddingUnavailable for
    backend failures.
    """

    model_name: str

    def __init__(
        self,
        dimension: int | None = None,
        max_workers: int = EMBEDDING_MAX_WORKERS,
        timeout: float | None = EMBEDDING_TIMEOUT_SECONDS,
        retry_attempts: int = EMBEDDING_RETRY_ATTEMPTS,
        retry_initial_wait: float = EMBEDDING_RETRY_INITIAL_WAIT,
        retry_max_wait: float = EMBEDDING_RETRY_MAX_WAIT,
        max_input_chars: int = EMBEDDING_MAX_INPUT_CHARS,
    ):
        """
        Args:
            dimension: Expected vector length (None = ask the backend)
            max_workers: Cap on in-flight embedding calls
            timeout: Seconds before a call is abandoned (None = wait forever)
            retry_attempts: Tries per text in ``embed_many`` (first try included)
            retry_initial_wait: First backoff delay in seconds
            retry_max_wait: Longest backoff delay in seconds
            max_input_chars: Input is truncated to this many characters
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._dimension = dimension
        self.max_workers = max_workers
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_initial_wait = retry_initial_wait
        self.retry_max_wait = retry_max_wait
        self.max_input_chars = max_input_chars
        self._call_pool: ThreadPoolExecutor | None = None

    @property
    def dimension(self) -> int:
        return self._dimension

    @abstractmethod
    def _encode(self, text: str) -> Sequence[float]:
        """Return the raw embedding for one (already validated) text."""

    def _prepare(self) -> None:
        """Load whatever the backend needs before the first timed call."""

    def _encode_with_timeout(self, text: str) -> Sequence[float]:
        if self.timeout is None:
            return self._encode(text)

        if self._call_pool is None:
            self._call_pool = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="embed-call"
            )
        future = self._call_pool.submit(self._encode, text)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout as e:
            future.cancel()
            raise EmbeddingUnavailable(
                f"Embedding call timed out after {self.timeout}s",
                {"model": self.model_name},
            ) from e

    def embed(self, text: str) -> list[float]:
        """
        Convert a single text to an embedding vector.

        Args:
            text: The text to embed (truncated to ``max_input_chars``)

        Returns:
            List of floats of length ``dimension``

        Raises:
            ValueError: If text is empty
            EmbeddingUnavailable: If the backend fails or times out
            DimensionMismatch: If the backend returns the wrong vector length
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        self._prepare()
        raw = self._encode_with_timeout(text.strip()[: self.max_input_chars])
        vector = [float(x) for x in raw]
        check_dimension(vector, self.dimension)
        return vector

    def _embed_with_retry(self, text: str) -> list[float]:
        retrying = Retrying(
            retry=retry_if_exception_type(EmbeddingUnavailable),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_initial_wait, max=self.retry_max_wait)
            + wait_random(0, self.retry_initial_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self.embed, text)

    def embed_many(self, texts: Sequence[str]) -> EmbeddingBatch:
        """
        Embed many texts concurrently, isolating failures per text.

        At most ``max_workers`` calls are in flight. A text that still fails
        after its retries is recorded in ``failures`` and the rest of the
        batch carries on. DimensionMismatch is not isolated: it means model
        skew and aborts the batch.

        Args:
            texts: Texts to embed; result keys are their positions

        Returns:
            EmbeddingBatch with vectors and failures keyed by index

        Raises:
            EmbeddingUnavailable: If the backend cannot be prepared (e.g. model load)
            DimensionMismatch: If the backend returns the wrong vector length
        """
        batch = EmbeddingBatch()
        if not texts:
            return batch

        self._prepare()
        workers = min(self.max_workers, len(texts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed-batch") as pool:
            futures = {i: pool.submit(self._embed_with_retry, text) for i, text in enumerate(texts)}
            for i, future in futures.items():
                try:
                    batch.vectors[i] = future.result()
                except (EmbeddingUnavailable, ValueError) as e:
                    logger.warning("Embedding failed for text %d: %s", i, e)
                    batch.failures[i] = str(e)

        logger.info(
            "Embedded %d/%d texts with %s", len(batch.vectors), len(texts), self.model_name
        )
        return batch

    def similarity(self, text1: str, text2: str) -> float:
        """
        Calculate cosine similarity between two texts.

        Returns:
            Similarity score in [-1, 1] (1 = identical meaning)
        """
        return cosine(self.embed(text1), self.embed(text2))

    def close(self) -> None:
        """Release the timeout worker threads."""
        if self._call_pool is not None:
            self._call_pool.shutdown(wait=False, cancel_futures=True)
            self._call_pool = None


class Embedder(BaseEmbedder):
    """
    Converts text to vector embeddings using sentence-transformers.

    IMPORTANT: Always use the same model for indexing and querying!
    If you index with 'all-MiniLM-L6-v2', you must query with the same model.

    Example:
        embedder = Embedder()
        question_embedding = embedder.embed("What is 5 + 3?")
    """

    def __init__(
        self,
        model_name: str | None = None,
        model: SentenceTransformer | None = None,
        dimension: int | None = None,
        **kwargs,
    ):
        """
        Initialize the embedder with a model.

        Args:
            model_name: Name of the sentence-transformer model to use.
                        Defaults to the model specified in config.
            model: Already-loaded model (skips lazy loading)
            dimension: Expected vector length. Defaults to the configured
                       dimension for the default model, otherwise the
                       model's own dimension.
            **kwargs: Batching/timeout/retry options, see BaseEmbedder

        Note:
            First run will download the model (~90MB for MiniLM).
            Subsequent runs use the cached version.
        """
        self.model_name = model_name or EMBEDDING_MODEL
        if dimension is None and self.model_name == EMBEDDING_MODEL and model is None:
            dimension = EMBEDDING_DIMENSION
        super().__init__(dimension=dimension, **kwargs)
        self._model = model
        self._model_lock = threading.Lock()

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the model on first use (once, even under concurrent callers)."""
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    logger.info("Loading embedding model: %s", self.model_name)
                    try:
                        self._model = SentenceTransformer(self.model_name)
                    except (OSError, RuntimeError, ValueError) as e:
                        raise EmbeddingUnavailable(
                            f"Failed to load embedding model {self.model_name}: {e}"
                        ) from e
                    logger.info("Model loaded! Embedding dimension: %s", self.dimension)
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension

    def _prepare(self) -> None:
        # Model load runs outside the per-call timeout
        self.model

    def _encode(self, text: str) -> Sequence[float]:
        try:
            embedding = self.model.encode(text, convert_to_numpy=True)
        except (RuntimeError, ValueError) as e:
            raise EmbeddingUnavailable(f"Embedding model failed: {e}") from e
        return np.asarray(embedding).tolist()


class OllamaEmbedder(BaseEmbedder):
    """
    Generates embeddings through an Ollama server.

    Example:
        embedder = OllamaEmbedder(model_name="nomic-embed-text")
        vector = embedder.embed("Newton's second law")
    """

    def __init__(
        self,
        model_name: str | None = None,
        host: str | None = None,
        dimension: int | None = None,
        client: ollama.Client | None = None,
        timeout: float | None = EMBEDDING_TIMEOUT_SECONDS,
        **kwargs,
    ):
        """
        Args:
            model_name: Ollama embedding model (pulled with `ollama pull <name>`)
            host: Ollama base URL
            dimension: Expected vector length for the model
            client: Preconfigured ollama.Client (host/timeout are then ignored)
            timeout: Seconds per request
        """
        self.model_name = model_name or OLLAMA_EMBEDDING_MODEL
        super().__init__(
            dimension=dimension or OLLAMA_EMBEDDING_DIMENSION, timeout=timeout, **kwargs
        )
        self._client = client or ollama.Client(host=host or OLLAMA_BASE_URL, timeout=timeout)

    def _encode(self, text: str) -> Sequence[float]:
        try:
            response = self._client.embed(model=self.model_name, input=text)
        except ollama.ResponseError as e:
            raise EmbeddingUnavailable(
                f"Ollama rejected the embedding request: {e.error}",
                {"status_code": e.status_code, "model": self.model_name},
            ) from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise EmbeddingUnavailable(
                f"Cannot reach Ollama: {e}", {"model": self.model_name}
            ) from e

        embeddings = response["embeddings"]
        if not embeddings:
            raise EmbeddingUnavailable(
                "Empty embedding returned from Ollama", {"model": self.model_name}
            )
        return embeddings[0]
