"""Embedding service for semantic merge and vector search.

Wraps a text -> vector backend with normalization, an LRU cache,
bounded-concurrency batching, timeouts, and vector math (cosine
similarity, Euclidean distance).

Uses sentence-transformers all-MiniLM-L6-v2 by default (384 dimensions).
Any object with initialize(), is_ready() and embed(text) can be injected
as the backend instead, which is how tests run without a model download.

Public API:
    EmbeddingBackend: Protocol for pluggable backends
    SentenceTransformerBackend: Default sentence-transformers backend
    TextEmbedding: Dataclass for one embedded text
    EmbeddingService: Cached, batched embedding with vector math
    cosine_similarity(a, b) -> float
    euclidean_distance(a, b) -> float
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

import numpy as np
from cachetools import LRUCache

from .config import EmbeddingConfig
from .exceptions import (
    DimensionMismatchError,
    EmbeddingBackendError,
    EmbeddingError,
    EmbeddingInitializationError,
    EmbeddingTimeoutError,
)

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


@runtime_checkable
class EmbeddingBackend(Protocol):
    """Text -> vector capability consumed by EmbeddingService."""

    def initialize(self) -> None:
        """Load the model. Raise on failure."""
        ...

    def is_ready(self) -> bool:
        """Whether initialize() has completed."""
        ...

    def embed(self, text: str) -> Sequence[float]:
        """Embed one (already normalized) text."""
        ...


class SentenceTransformerBackend:
    """sentence-transformers backend, model loaded lazily in initialize().

    Args:
        model_name: Hugging Face / sentence-transformers model name
        normalize: Return unit-length vectors
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", normalize: bool = True) -> None:
        self._model_name = model_name
        self._normalize = normalize
        self._model: Any = None
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    def initialize(self) -> None:
        if self._model is not None:
            return
        with self._lock:
            if self._model is not None:
                return
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s", self._model_name)
            self._model = SentenceTransformer(self._model_name)
            logger.info("Embedding model loaded successfully")

    def is_ready(self) -> bool:
        return self._model is not None

    def embed(self, text: str) -> Sequence[float]:
        if self._model is None:
            raise RuntimeError("Model not loaded; call initialize() first")
        vector = self._model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=self._normalize,
        )
        return vector.astype(np.float32).tolist()


@dataclass(frozen=True)
class TextEmbedding:
    """An embedded text.

    Attributes:
        text: The original (unnormalized) text
        embedding: Vector components
        dimension: Vector length
        timestamp: ISO-8601 UTC time the embedding was returned
        model_version: Name of the model that produced it
    """

    text: str
    embedding: tuple[float, ...]
    dimension: int
    timestamp: str
    model_version: str = ""


def _as_array(vector: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64).ravel()


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity clamped to [-1, 1]; 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    vec_a = _as_array(a)
    vec_b = _as_array(b)
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatchError(
            f"Cannot compare vectors of dimension {vec_a.size} and {vec_b.size}"
        )
    norm_a = float(np.linalg.norm(vec_a))
    norm_b = float(np.linalg.norm(vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    similarity = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


def euclidean_distance(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Euclidean (L2) distance between two vectors.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    vec_a = _as_array(a)
    vec_b = _as_array(b)
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatchError(
            f"Cannot compare vectors of dimension {vec_a.size} and {vec_b.size}"
        )
    return float(np.linalg.norm(vec_a - vec_b))


class EmbeddingService:
    """Cached, batched text embedding.

    Thread-safe: the cache is guarded by a lock and holds immutable
    tuples; initialization is idempotent and serialized. Failures are
    never retried, they surface as EmbeddingError subclasses.

    Args:
        config: Embedding settings (defaults when None)
        backend: Text -> vector backend; a SentenceTransformerBackend
            for config.model_name when None
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        backend: EmbeddingBackend | None = None,
    ) -> None:
        self._config = config or EmbeddingConfig()
        self._backend = backend or SentenceTransformerBackend(
            self._config.model_name, normalize=self._config.normalize
        )
        self._cache: LRUCache | None = (
            LRUCache(maxsize=self._config.cache_size) if self._config.cache_size > 0 else None
        )
        self._cache_lock = threading.Lock()
        self._init_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()
        self._ready = False

    # ── lifecycle ─────────────────────────────────────────────

    @property
    def config(self) -> EmbeddingConfig:
        """Effective embedding settings."""
        return self._config

    @property
    def backend(self) -> EmbeddingBackend:
        return self._backend

    def initialize(self) -> None:
        """Initialize the backend (idempotent).

        Raises:
            EmbeddingInitializationError: If the backend fails to load.
        """
        if self._ready:
            return
        with self._init_lock:
            if self._ready:
                return
            try:
                self._backend.initialize()
            except Exception as e:
                logger.error("Failed to initialize embedding backend: %s", e)
                raise EmbeddingInitializationError(
                    f"Failed to initialize embedding service ({self._config.model_name}): {e}"
                ) from e
            self._ready = True

    def is_ready(self) -> bool:
        """Whether initialize() has completed successfully."""
        return self._ready

    def close(self) -> None:
        """Shut down the worker pool used for timeouts and batches."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

    def __enter__(self) -> EmbeddingService:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ── embedding ─────────────────────────────────────────────

    def normalize_text(self, text: str) -> str:
        """Trim, lowercase, collapse whitespace, truncate to max_sequence_length."""
        collapsed = _WHITESPACE_RE.sub(" ", text.strip().lower())
        return collapsed[: self._config.max_sequence_length]

    def embed(self, text: str) -> TextEmbedding:
        """Embed one text, using the cache when possible.

        Raises:
            EmbeddingInitializationError: If the backend fails to load.
            EmbeddingBackendError: If the backend fails on this text.
            EmbeddingTimeoutError: If the call exceeds timeout_seconds.
            DimensionMismatchError: If the vector length is unexpected.
        """
        self.initialize()
        timeout = self._config.timeout_seconds
        if timeout is None:
            return self._embed_one(text)

        future = self._get_executor().submit(self._embed_one, text)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            logger.error("Embedding timed out after %.1fs (text_length=%d)", timeout, len(text))
            raise EmbeddingTimeoutError(f"Embedding timed out after {timeout}s") from e

    def embed_batch(self, texts: Sequence[str]) -> list[TextEmbedding]:
        """Embed many texts in fixed-size batches.

        Items within a batch run concurrently (at most batch_size at a
        time); batches run sequentially; output order matches input order.
        Each batch as a whole waits at most timeout_seconds.

        Raises:
            EmbeddingTimeoutError: If a batch does not finish within timeout_seconds.
            EmbeddingError: The first failure (in input order) of a batch, after
                every item of that batch has settled.
        """
        if not texts:
            return []
        self.initialize()

        size = self._config.batch_size
        timeout = self._config.timeout_seconds
        executor = self._get_executor()
        results: list[TextEmbedding] = []

        for start in range(0, len(texts), size):
            batch = texts[start : start + size]
            futures = [executor.submit(self._embed_one, text) for text in batch]
            _, pending = wait(futures, timeout=timeout)
            if pending:
                for future in pending:
                    future.cancel()
                logger.error("Batch embedding timed out (batch_size=%d)", len(batch))
                raise EmbeddingTimeoutError(f"Batch embedding timed out after {timeout}s")
            for future in futures:
                results.append(future.result())

        logger.debug("Embedded %d texts in batches of %d", len(texts), size)
        return results

    # ── vector math ───────────────────────────────────────────

    @staticmethod
    def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        """See module-level cosine_similarity()."""
        return cosine_similarity(a, b)

    @staticmethod
    def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
        """See module-level euclidean_distance()."""
        return euclidean_distance(a, b)

    # ── cache ─────────────────────────────────────────────────

    def clear_cache(self) -> None:
        """Drop every cached embedding."""
        if self._cache is None:
            return
        with self._cache_lock:
            self._cache.clear()

    @property
    def cache_size(self) -> int:
        """Number of cached embeddings."""
        if self._cache is None:
            return 0
        with self._cache_lock:
            return len(self._cache)

    # ── private ───────────────────────────────────────────────

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.batch_size,
                    thread_name_prefix="memgraft-embed",
                )
            return self._executor

    def _embed_one(self, text: str) -> TextEmbedding:
        key = self.normalize_text(text)
        vector = self._cache_get(key)
        if vector is None:
            vector = self._call_backend(key)
            self._cache_put(key, vector)
        return TextEmbedding(
            text=text,
            embedding=vector,
            dimension=len(vector),
            timestamp=datetime.now(timezone.utc).isoformat(),
            model_version=self._config.model_name,
        )

    def _call_backend(self, normalized: str) -> tuple[float, ...]:
        try:
            raw = self._backend.embed(normalized)
        except Exception as e:
            logger.error(
                "Failed to generate embedding: %s (text_length=%d, text_preview=%s)",
                e,
                len(normalized),
                normalized[:50] + "..." if len(normalized) > 50 else normalized,
            )
            raise EmbeddingBackendError(f"Failed to embed text: {e}") from e

        vector = tuple(float(x) for x in raw)
        expected = self._config.dimension
        if expected is not None and len(vector) != expected:
            raise DimensionMismatchError(
                f"Backend returned a {len(vector)}-dimensional vector, expected {expected}"
            )
        return vector

    def _cache_get(self, key: str) -> tuple[float, ...] | None:
        if self._cache is None:
            return None
        with self._cache_lock:
            return self._cache.get(key)

    def _cache_put(self, key: str, vector: tuple[float, ...]) -> None:
        if self._cache is None:
            return
        with self._cache_lock:
            self._cache[key] = vector


__all__ = [
    "EmbeddingBackend",
    "SentenceTransformerBackend",
    "TextEmbedding",
    "EmbeddingService",
    "cosine_similarity",
    "euclidean_distance",
]
